import logging
import os
import signal
import subprocess
from pysigntool import config

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT = 2


class ExecutionResult:
    SUCCESS = 'success'
    FAILURE = 'failure'
    TIMEOUT = 'timeout'

    def __init__(self, status: str, reason='', exit_code=None, output='', error=''):
        self.status_ = status
        self.reason_ = reason
        self.exit_code_ = exit_code
        self.output_ = output
        self.error_ = error

    def status(self) -> str:
        return self.status_

    def reason(self) -> str:
        return self.reason_

    def exit_code(self):
        return self.exit_code_

    def output(self) -> str:
        return self.output_

    def error(self) -> str:
        return self.error_

    def succeeded(self) -> bool:
        return self.status_ == self.SUCCESS

    def __repr__(self):
        return 'ExecutionResult(%s, %r, exit_code=%r)' % (self.status_, self.reason_, self.exit_code_)


def sign_arguments(url: str, thumbprint: str, path: str, digest=config.DEFAULT_DIGEST) -> list:
    return ['sign', '/fd', digest, '/tr', url, '/td', digest, '/sha1', thumbprint, path]


def verify_arguments(path: str) -> list:
    return ['verify', '/pa', path]


def remove_arguments(path: str) -> list:
    return ['remove', '/s', path]


def _creation_flags() -> int:
    # CREATE_NO_WINDOW only exists on windows builds of python
    return getattr(subprocess, 'CREATE_NO_WINDOW', 0)


def _launch_options() -> dict:
    if os.name == 'nt':
        return {'creationflags': _creation_flags()}
    # own process group, so a timeout also reaches children of wrapper scripts
    return {'start_new_session': True}


def _kill(process: subprocess.Popen):
    if os.name != 'nt':
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except OSError:
            logger.debug('could not kill process group %d', process.pid, exc_info=True)
    process.kill()


class ToolInvoker(object):
    def __init__(self, tool_path: str, timeout=config.DEFAULT_TIMEOUT, verify_timeout=config.VERIFY_TIMEOUT):
        self.tool_path_ = tool_path
        self.timeout_ = timeout
        self.verify_timeout_ = verify_timeout

    def tool_path(self) -> str:
        return self.tool_path_

    def timeout(self):
        return self.timeout_

    def run(self, arguments: list, quiet=False, timeout=None) -> ExecutionResult:
        """
        Run the tool once and classify the outcome by exit code.
        Never raises: launch and communication errors become failures.
        """
        if timeout is None:
            timeout = self.timeout_
        cmd_line = [self.tool_path_] + list(arguments)
        try:
            result = self._execute(cmd_line, timeout)
        except Exception as ex:
            logger.debug('process exception for %s', cmd_line, exc_info=True)
            result = ExecutionResult(ExecutionResult.FAILURE, str(ex))

        if not quiet:
            self._report(result)
        return result

    def _execute(self, cmd_line: list, timeout) -> ExecutionResult:
        with subprocess.Popen(cmd_line, stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                              universal_newlines=True, errors='replace', **_launch_options()) as process:
            try:
                output, error = process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                _kill(process)
                try:
                    output, error = process.communicate(timeout=DRAIN_TIMEOUT)
                except subprocess.TimeoutExpired:
                    # something outside the group still holds the pipes
                    output, error = '', ''
                return ExecutionResult(ExecutionResult.TIMEOUT, 'timed out after %ss' % timeout,
                                       output=output or '', error=error or '')

        if process.returncode == 0:
            return ExecutionResult(ExecutionResult.SUCCESS, exit_code=0, output=output, error=error)
        return ExecutionResult(ExecutionResult.FAILURE, 'exit code %d' % process.returncode,
                               exit_code=process.returncode, output=output, error=error)

    @staticmethod
    def _report(result: ExecutionResult):
        if result.status() == ExecutionResult.TIMEOUT:
            print('      TIMEOUT: Process took too long, killed')
            return
        if result.output().strip():
            print('      Output: %s' % result.output().strip())
        if result.error().strip():
            print('      Error: %s' % result.error().strip())
        if result.exit_code() is None and not result.succeeded():
            print('      Process exception: %s' % result.reason())
        elif not result.succeeded():
            print('      Exit code: %d' % result.exit_code())

    def is_signed(self, path: str) -> bool:
        return self.run(verify_arguments(path), quiet=True, timeout=self.verify_timeout_).succeeded()
