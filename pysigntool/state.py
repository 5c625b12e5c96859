import logging
import os
import threading
from collections import namedtuple
from datetime import datetime

LOG_TIME_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_SEPARATOR = ' | '

logger = logging.getLogger(__name__)

Counts = namedtuple('Counts', ['success', 'fail', 'skip', 'total'])
LogRecord = namedtuple('LogRecord', ['timestamp', 'server_name', 'path'])


def format_line(when: datetime, server_name: str, path: str) -> str:
    return '{0}{1}{2}{1}{3}\n'.format(when.strftime(LOG_TIME_FORMAT), LOG_SEPARATOR, server_name, path)


def parse_line(line: str) -> LogRecord:
    if not line.endswith('\n'):
        raise ValueError('unterminated log line: %r' % line)
    parts = line[:-1].split(LOG_SEPARATOR, 2)
    if len(parts) != 3:
        raise ValueError('malformed log line: %r' % line)
    return LogRecord(datetime.strptime(parts[0], LOG_TIME_FORMAT), parts[1], parts[2])


class SigningLog(object):
    def __init__(self, path: str):
        self.path_ = path
        self.lock_ = threading.Lock()

    def location(self) -> str:
        return os.path.abspath(self.path_)

    def append(self, path: str, server_name: str, when=None):
        if when is None:
            when = datetime.now()
        line = format_line(when, server_name, path)
        with self.lock_:
            with open(self.path_, 'a', encoding='utf-8') as log_file:
                log_file.write(line)
                log_file.flush()
                os.fsync(log_file.fileno())

    def records(self) -> list:
        if not os.path.exists(self.path_):
            return []
        with open(self.path_, encoding='utf-8') as log_file:
            return [parse_line(line) for line in log_file]


class RunState(object):
    """
    Counters and path lists shared by all workers, behind one lock.
    """

    def __init__(self, log: SigningLog = None):
        self.log_ = log
        self.lock_ = threading.Lock()
        self.success_ = 0
        self.fail_ = 0
        self.skip_ = 0
        self.signed_files_ = []
        self.failed_files_ = []

    def log(self):
        return self.log_

    def record_success(self, path: str, server_name=None):
        with self.lock_:
            self.success_ += 1
            if server_name is not None:
                self.signed_files_.append(path)
        if server_name is not None and self.log_:
            try:
                self.log_.append(path, server_name)
            except OSError as ex:
                logger.error('could not write signing log %s: %s', self.log_.location(), ex)

    def record_failure(self, path: str, retryable=False):
        with self.lock_:
            self.fail_ += 1
            if retryable:
                self.failed_files_.append(path)

    def record_skip(self, path: str):
        with self.lock_:
            self.skip_ += 1

    def take_retry_batch(self) -> list:
        # retried jobs replace the failures they came from
        with self.lock_:
            batch = self.failed_files_
            self.failed_files_ = []
            self.fail_ -= len(batch)
            return batch

    def has_retryable_failures(self) -> bool:
        with self.lock_:
            return len(self.failed_files_) > 0

    def signed_files(self) -> list:
        with self.lock_:
            return list(self.signed_files_)

    def failed_files(self) -> list:
        with self.lock_:
            return list(self.failed_files_)

    def snapshot(self) -> Counts:
        with self.lock_:
            return Counts(self.success_, self.fail_, self.skip_, self.success_ + self.fail_ + self.skip_)
