import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pysigntool import config, discovery, invoker, policy, state

logger = logging.getLogger(__name__)


class Operation:
    SIGN = 'sign'
    REMOVE_SIGNATURE = 'remove_signature'


class Job:
    def __init__(self, candidate: discovery.CandidateFile, operation: str, is_retry=False):
        self.candidate_ = candidate
        self.operation_ = operation
        self.is_retry_ = is_retry

    def candidate(self) -> discovery.CandidateFile:
        return self.candidate_

    def operation(self) -> str:
        return self.operation_

    def is_retry(self) -> bool:
        return self.is_retry_

    def path(self) -> str:
        return self.candidate_.path()

    def __repr__(self):
        return 'Job(%r, %s%s)' % (self.path(), self.operation_, ', retry' if self.is_retry_ else '')


def default_max_workers() -> int:
    return config.SignConfig().max_workers()


class BatchScheduler(object):
    def __init__(self, signing_policy: policy.SigningPolicy, run_state: state.RunState,
                 tool: invoker.ToolInvoker = None, max_workers=None):
        self.policy_ = signing_policy
        self.state_ = run_state
        self.tool_ = tool if tool else signing_policy.tool()
        self.max_workers_ = max_workers if max_workers else default_max_workers()

    def max_workers(self) -> int:
        return self.max_workers_

    def sign_job(self, job: Job) -> str:
        candidate = job.candidate()
        path = job.path()
        if not job.is_retry() and self.tool_.is_signed(path):
            print('SKIPPED: %s (already signed)' % candidate.name())
            self.state_.record_skip(path)
            return policy.JobOutcome.SKIP

        print('PROCESSING: %s%s' % (candidate.name(), ' [RETRY]' if job.is_retry() else ''))
        print('  Location: %s' % (os.path.dirname(path) or 'Unknown Directory'))
        if not candidate.exists():
            print('  SKIPPED: File not found - %s' % candidate.name())
            self.state_.record_skip(path)
            return policy.JobOutcome.SKIP
        if candidate.is_empty():
            print('  SKIPPED: Empty file - %s' % candidate.name())
            self.state_.record_skip(path)
            return policy.JobOutcome.SKIP

        result = self.policy_.sign(path)
        if result.signed():
            self.state_.record_success(path, result.server().name())
            return policy.JobOutcome.SUCCESS

        print('  FAILED: Could not sign %s' % candidate.name())
        print('  Last error: %s' % result.last_error())
        self.state_.record_failure(path, retryable=not job.is_retry())
        return policy.JobOutcome.FAIL

    def remove_job(self, job: Job) -> str:
        name = job.candidate().name()
        print('REMOVING SIGNATURE: %s' % name)
        outcome = self.policy_.remove(job.path())
        if outcome == policy.JobOutcome.SUCCESS:
            print('SUCCESS: File unsigned - %s' % name)
            self.state_.record_success(job.path())
        elif outcome == policy.JobOutcome.SKIP:
            print('SKIPPED: File has no signature to remove - %s' % name)
            self.state_.record_skip(job.path())
        else:
            print('FAILED: Could not remove signature from %s' % name)
            self.state_.record_failure(job.path())
        return outcome

    def run_job(self, job: Job) -> str:
        try:
            if job.operation() == Operation.REMOVE_SIGNATURE:
                return self.remove_job(job)
            return self.sign_job(job)
        except OSError as ex:
            print('  IO ERROR: %s' % job.candidate().name())
            print('  Details: %s' % ex)
        except Exception as ex:
            logger.exception('unexpected error processing %s', job.path())
            print('  UNEXPECTED ERROR with %s: %s' % (job.candidate().name(), ex))
        self.state_.record_failure(job.path())
        return policy.JobOutcome.FAIL

    def run_jobs(self, jobs: list) -> list:
        if not jobs:
            return []
        with ThreadPoolExecutor(max_workers=self.max_workers_) as executor:
            return list(executor.map(self.run_job, jobs))

    def run_sign_pass(self, paths: list) -> list:
        print('STARTING PARALLEL PROCESSING WITH %d THREADS' % self.max_workers_)
        return self.run_jobs([Job(discovery.CandidateFile(x), Operation.SIGN) for x in paths])

    def run_remove_pass(self, paths: list) -> list:
        return self.run_jobs([Job(discovery.CandidateFile(x), Operation.REMOVE_SIGNATURE) for x in paths])

    def run_retry_pass(self) -> list:
        batch = self.state_.take_retry_batch()
        if not batch:
            return []

        print('RETRYING %d FAILED FILES...' % len(batch))
        return self.run_jobs([Job(discovery.CandidateFile(x), Operation.SIGN, is_retry=True) for x in batch])
