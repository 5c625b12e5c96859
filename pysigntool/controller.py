import logging
import os
from pysigntool import config, discovery, policy, scheduler, state

logger = logging.getLogger(__name__)


class RunPhase:
    IDLE = 'idle'
    DISCOVER = 'discover'
    PREFLIGHT = 'preflight'
    BULK_EXECUTE = 'bulk_execute'
    RETRY = 'retry'
    REPORT = 'report'


class ModeController(object):
    """
    Drives one run: discovery, preflight test sign, bulk pass, retry pass, report.
    The report is always produced, also after an unexpected error.
    """

    def __init__(self, sign_config: config.SignConfig, batch: scheduler.BatchScheduler,
                 signing_policy: policy.SigningPolicy, run_state: state.RunState):
        self.config_ = sign_config
        self.batch_ = batch
        self.policy_ = signing_policy
        self.state_ = run_state
        self.history_ = [RunPhase.IDLE]
        self.remove_mode_ = False

    def state_history(self) -> list:
        return list(self.history_)

    def _enter(self, phase: str):
        self.history_.append(phase)

    def run(self, request) -> state.Counts:
        self.remove_mode_ = request.remove_signature
        print('Starting code signing process...')
        print('Mode: %s' % request.mode_name())
        print('Target: %s' % request.path)
        if request.extensions:
            print('Extensions: %s' % ', '.join(request.extensions))
        print()

        try:
            if request.is_single_file:
                self._run_single_file(request.path, request.remove_signature)
            else:
                self._run_directory(request.path, request.recursive, request.extensions, request.remove_signature)
        except Exception as ex:
            logger.exception('run aborted')
            print('CRITICAL ERROR: %s' % ex)

        self._enter(RunPhase.REPORT)
        self.print_summary()
        return self.state_.snapshot()

    def _run_single_file(self, path: str, remove_signature: bool):
        print('PROCESSING SINGLE FILE: %s' % path)
        print('Mode: %s' % ('REMOVE SIGNATURE' if remove_signature else 'SIGN'))
        if not os.path.isfile(path):
            print('ERROR: File does not exist: %s' % path)
            return

        if remove_signature:
            self._enter(RunPhase.BULK_EXECUTE)
            self.batch_.run_remove_pass([path])
            return

        signed = self._preflight(path)
        self._enter(RunPhase.BULK_EXECUTE)
        if signed:
            print('SUCCESS: File already signed successfully during test - %s' % os.path.basename(path))
            self.state_.record_success(path, self.policy_.servers()[0].name())
            return
        self.batch_.run_sign_pass([path])
        self._retry()

    def _run_directory(self, directory: str, recursive: bool, extensions: list, remove_signature: bool):
        self._enter(RunPhase.DISCOVER)
        print('SCANNING DIRECTORY: %s' % directory)
        print('Mode: %s' % ('Recursive' if recursive else 'Non-Recursive'))
        print('Action: %s' % ('REMOVE SIGNATURES' if remove_signature else 'SIGN FILES'))
        if not os.path.isdir(directory):
            print('ERROR: Directory does not exist: %s' % directory)
            return

        files = discovery.find_candidate_files(directory, recursive, extensions, self.config_.name_rules())
        print('FOUND %d FILES TO PROCESS' % len(files))
        print()
        if not files:
            print('INFO: No files found matching extensions: %s' % ', '.join(extensions or config.DEFAULT_EXTENSIONS))
            return

        if remove_signature:
            self._enter(RunPhase.BULK_EXECUTE)
            self.batch_.run_remove_pass(files)
            return

        self._preflight(files[0])
        print('CONTINUING WITH BULK SIGNING...')
        print()
        self._enter(RunPhase.BULK_EXECUTE)
        self.batch_.run_sign_pass(files)
        self._retry()

    def _preflight(self, path: str) -> bool:
        self._enter(RunPhase.PREFLIGHT)
        print('TESTING WITH FIRST FILE TO HANDLE PASSWORD PROMPT...')
        print('TEST SIGNING: %s' % os.path.basename(path))
        signed = self.policy_.preflight(path)
        print()
        return signed

    def _retry(self):
        if not self.state_.has_retryable_failures():
            return
        self._enter(RunPhase.RETRY)
        self.batch_.run_retry_pass()

    def print_summary(self):
        counts = self.state_.snapshot()
        print()
        print('SIGNING SUMMARY')
        print('===============')
        print('Successfully %s: %d' % ('unsigned' if self.remove_mode_ else 'signed', counts.success))
        print('Failed: %d' % counts.fail)
        print('Skipped: %d' % counts.skip)
        print('Total processed: %d' % counts.total)
        print()
        log = self.state_.log()
        location = log.location() if log else os.path.abspath(self.config_.log_file())
        print('Log file created: %s' % location)
        print('Timestamp Server Priority:')
        for server in self.config_.servers():
            print('-> %s' % server.name())
