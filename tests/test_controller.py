"""Tests for the run phases and the summary report."""

import pytest
from conftest import FakeTool

from pysigntool import cli, config, controller, discovery, policy, scheduler, state

Phase = controller.RunPhase


@pytest.fixture
def make_controller(tmp_path, servers):
    def _make(tool):
        sign_config = config.SignConfig(signtool_path='signtool', thumbprint='THUMB',
                                        log_file=str(tmp_path / 'signing_log.txt'), servers=servers)
        signing_policy = policy.SigningPolicy(tool, sign_config.servers(), sign_config.thumbprint())
        run_state = state.RunState(state.SigningLog(sign_config.log_file()))
        batch = scheduler.BatchScheduler(signing_policy, run_state, tool, max_workers=4)
        return controller.ModeController(sign_config, batch, signing_policy, run_state)

    return _make


@pytest.fixture
def project(make_binary, tmp_path):
    make_binary('project/app.exe')
    make_binary('project/MPTSCore.dll')
    make_binary('project/vendor.dll')
    make_binary('project/sub/bad_tool.exe')
    return str(tmp_path / 'project')


def test_directory_sign_runs_every_phase(make_controller, project, capsys):
    tool = FakeTool(sign=lambda args: 'bad_' not in args[-1])
    run = make_controller(tool)
    counts = run.run(cli.parse_arguments(['-dr', project]))

    assert run.state_history() == [Phase.IDLE, Phase.DISCOVER, Phase.PREFLIGHT, Phase.BULK_EXECUTE, Phase.RETRY,
                                   Phase.REPORT]
    assert counts == (2, 1, 0, 3)
    out = capsys.readouterr().out
    assert 'RETRYING 1 FAILED FILES...' in out
    assert 'Successfully signed: 2' in out
    assert 'Total processed: 3' in out
    assert '-> Server A' in out


def test_preflight_targets_first_discovered_file(make_controller, project):
    tool = FakeTool()
    make_controller(tool).run(cli.parse_arguments(['-dr', project]))

    first_sign = tool.calls_for('sign')[0]
    assert first_sign[-1] == discovery.find_candidate_files(project, True, ['.exe', '.dll'],
                                                            [config.NameRule('.dll', 'MPTS')])[0]


def test_no_retry_phase_when_everything_signs(make_controller, project):
    run = make_controller(FakeTool())
    counts = run.run(cli.parse_arguments(['-d', project]))

    assert Phase.RETRY not in run.state_history()
    assert counts == (2, 0, 0, 2)


def test_directory_remove_skips_preflight_and_retry(make_controller, project, capsys):
    tool = FakeTool(remove=lambda args: 'bad_' not in args[-1], verify=lambda args: True)
    run = make_controller(tool)
    counts = run.run(cli.parse_arguments(['-remove-dr', project]))

    assert run.state_history() == [Phase.IDLE, Phase.DISCOVER, Phase.BULK_EXECUTE, Phase.REPORT]
    assert tool.calls_for('sign') == []
    assert counts == (2, 1, 0, 3)
    assert 'Successfully unsigned: 2' in capsys.readouterr().out


def test_single_file_sign_counts_the_preflight_signature(make_controller, project, tmp_path, capsys):
    tool = FakeTool()
    run = make_controller(tool)
    target = project + '/vendor.dll'
    counts = run.run(cli.parse_arguments(['-file', target]))

    assert run.state_history() == [Phase.IDLE, Phase.PREFLIGHT, Phase.BULK_EXECUTE, Phase.REPORT]
    assert counts == (1, 0, 0, 1)
    assert len(tool.calls_for('sign', target)) == 1
    assert tool.calls_for('verify') == []
    assert 'File already signed successfully during test' in capsys.readouterr().out
    records = state.SigningLog(str(tmp_path / 'signing_log.txt')).records()
    assert [(x.server_name, x.path) for x in records] == [('Server A', target)]


def test_single_file_sign_falls_back_when_preflight_fails(make_controller, project):
    attempts = []

    def sign(args):
        attempts.append(args)
        return len(attempts) > 1

    tool = FakeTool(sign=sign)
    run = make_controller(tool)
    target = project + '/vendor.dll'
    counts = run.run(cli.parse_arguments(['-file', target]))

    assert run.state_history() == [Phase.IDLE, Phase.PREFLIGHT, Phase.BULK_EXECUTE, Phase.REPORT]
    assert counts == (1, 0, 0, 1)
    assert len(tool.calls_for('verify', target)) == 1
    assert [x[4] for x in tool.calls_for('sign', target)] == ['http://a.example', 'http://a.example']


def test_single_file_remove(make_controller, project):
    run = make_controller(FakeTool(remove=lambda args: False))
    counts = run.run(cli.parse_arguments(['-remove', project + '/app.exe']))

    assert run.state_history() == [Phase.IDLE, Phase.BULK_EXECUTE, Phase.REPORT]
    assert counts == (0, 0, 1, 1)


def test_missing_single_file_does_nothing(make_controller, project, capsys):
    tool = FakeTool()
    run = make_controller(tool)
    counts = run.run(cli.parse_arguments(['-exe', project + '/missing.exe']))

    assert run.state_history() == [Phase.IDLE, Phase.REPORT]
    assert tool.calls == []
    assert counts.total == 0
    assert 'ERROR: File does not exist' in capsys.readouterr().out


def test_missing_directory_does_nothing(make_controller, tmp_path):
    run = make_controller(FakeTool())
    counts = run.run(cli.parse_arguments(['-dr', str(tmp_path / 'nowhere')]))

    assert run.state_history() == [Phase.IDLE, Phase.DISCOVER, Phase.REPORT]
    assert counts.total == 0


def test_empty_directory_reports_no_files(make_controller, tmp_path, capsys):
    (tmp_path / 'empty').mkdir()
    run = make_controller(FakeTool())
    run.run(cli.parse_arguments(['-dr', str(tmp_path / 'empty'), '-types', 'msi']))

    assert 'INFO: No files found matching extensions: .msi' in capsys.readouterr().out


def test_unexpected_error_still_reaches_report(make_controller, project, monkeypatch, capsys):
    def explode(*args, **kwargs):
        raise RuntimeError('disk vanished')

    monkeypatch.setattr(discovery, 'find_candidate_files', explode)
    run = make_controller(FakeTool())
    counts = run.run(cli.parse_arguments(['-dr', project]))

    out = capsys.readouterr().out
    assert run.state_history()[-1] == Phase.REPORT
    assert counts.total == 0
    assert 'CRITICAL ERROR: disk vanished' in out
    assert 'SIGNING SUMMARY' in out
