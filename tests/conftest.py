"""Shared fixtures: a scriptable in-process signtool and a real stand-in executable."""

import os
import stat
import sys
import threading

import pytest

from pysigntool import config, invoker, policy, scheduler, state


class FakeTool(invoker.ToolInvoker):
    """ToolInvoker whose process launch is replaced by per-command handlers.

    A handler receives the argument list and returns True (exit 0), False
    (exit 1) or raises to simulate a launch failure.
    """

    def __init__(self, sign=None, verify=None, remove=None):
        invoker.ToolInvoker.__init__(self, 'signtool', timeout=5, verify_timeout=5)
        self.handlers = {
            'sign': sign or (lambda args: True),
            'verify': verify or (lambda args: False),
            'remove': remove or (lambda args: True),
        }
        self.calls = []
        self.lock = threading.Lock()

    def _execute(self, cmd_line, timeout):
        arguments = cmd_line[1:]
        with self.lock:
            self.calls.append(arguments)
        if self.handlers[arguments[0]](arguments):
            return invoker.ExecutionResult(invoker.ExecutionResult.SUCCESS, exit_code=0)
        return invoker.ExecutionResult(invoker.ExecutionResult.FAILURE, 'exit code 1', exit_code=1)

    def calls_for(self, command, path=None):
        with self.lock:
            return [x for x in self.calls if x[0] == command and (path is None or x[-1] == path)]


SERVERS = [config.TimestampServer('http://a.example', 'Server A'),
           config.TimestampServer('http://b.example', 'Server B'),
           config.TimestampServer('http://c.example', 'Server C')]


@pytest.fixture
def servers():
    return list(SERVERS)


@pytest.fixture
def signing_log(tmp_path):
    return state.SigningLog(str(tmp_path / 'signing_log.txt'))


@pytest.fixture
def make_scheduler(signing_log, servers):
    def _make(tool, server_list=None, max_workers=4):
        signing_policy = policy.SigningPolicy(tool, server_list or servers, 'AB' * 20)
        run_state = state.RunState(signing_log)
        return scheduler.BatchScheduler(signing_policy, run_state, tool, max_workers), run_state

    return _make


@pytest.fixture
def make_binary(tmp_path):
    def _make(relative, content=b'MZ\x90\x00binary'):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return str(path)

    return _make


FAKE_SIGNTOOL = '''#!{python}
import os
import sys
import time

command = sys.argv[1]
target = sys.argv[-1]
if os.path.basename(target).startswith('slow'):
    time.sleep(30)
if os.path.basename(target).startswith('bad'):
    sys.stderr.write('SignTool Error: No certificates were found\\n')
    sys.exit(1)
if command == 'verify' and os.path.basename(target).startswith('unsigned'):
    sys.stderr.write('SignTool Error: No signature found.\\n')
    sys.exit(1)
sys.stdout.write('Done Adding Additional Store\\n')
sys.stdout.write('Successfully %s: %s\\n' % (command, target))
sys.exit(0)
'''


@pytest.fixture
def fake_signtool(tmp_path):
    """A real executable speaking the signtool exit code contract."""
    if os.name == 'nt':
        pytest.skip('shebang scripts are not executable on windows')
    path = tmp_path / 'bin' / 'signtool'
    path.parent.mkdir()
    path.write_text(FAKE_SIGNTOOL.format(python=sys.executable))
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return str(path)
