import os
from typing import Literal

from pydantic import PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pysigntool import system_info

ENV_PREFIX = 'PYSIGNTOOL_'

TOOL_NAME = 'Bulk Code Signing Tool'
WINDOWS_SIGNTOOL_PATH = 'C:\\Program Files (x86)\\Windows Kits\\10\\bin\\10.0.26100.0\\x64\\signtool.exe'
DEFAULT_LOG_FILE = 'signing_log.txt'
DEFAULT_LOG_LEVEL = 'WARNING'
DEFAULT_DIGEST = 'SHA256'
DEFAULT_TIMEOUT = 60
VERIFY_TIMEOUT = 10
WORKER_MULTIPLIER = 2

PRIMARY_EXTENSION = '.exe'
DEFAULT_EXTENSIONS = ['.exe', '.dll']
SMART_SEARCH_EXTENSIONS = ['.exe', '.dll', '.msi', '.sys', '.ocx', '.cab', '.cat']
DEFAULT_DLL_PREFIX = 'MPTS'

LogLevel = Literal['CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG']


class ConfigError(Exception):
    def __init__(self, value):
        self.value_ = value

    def __str__(self):
        return self.value_


class TimestampServer:
    def __init__(self, url: str, name: str):
        self.url_ = url
        self.name_ = name

    def url(self) -> str:
        return self.url_

    def name(self) -> str:
        return self.name_

    def __repr__(self):
        return 'TimestampServer(%r, %r)' % (self.url_, self.name_)


TIMESTAMP_SERVERS = [TimestampServer('http://timestamp.digicert.com', 'Digicert (Primary)'),
                     TimestampServer('http://timestamp.sectigo.com', 'Sectigo'),
                     TimestampServer('http://rfc3161timestamp.globalsign.com/advanced', 'GlobalSign'),
                     TimestampServer('http://timestamp.comodoca.com/rfc3161', 'Comodo')]


class NameRule:
    """
    Files with this extension are only picked up by discovery
    when their name starts with prefix (case-insensitive).
    """

    def __init__(self, extension: str, prefix: str):
        self.extension_ = normalize_extension(extension)
        self.prefix_ = prefix

    def extension(self) -> str:
        return self.extension_

    def prefix(self) -> str:
        return self.prefix_

    def accepts(self, file_name: str) -> bool:
        return file_name.lower().startswith(self.prefix_.lower())

    def __repr__(self):
        return 'NameRule(%r, %r)' % (self.extension_, self.prefix_)


def normalize_extension(token: str) -> str:
    ext = token.strip().lower()
    if not ext.startswith('.'):
        ext = '.' + ext
    return ext


def default_signtool_path() -> str:
    if system_info.get_os() == 'windows':
        return WINDOWS_SIGNTOOL_PATH
    return 'signtool'


def default_cert_dir() -> str:
    return os.path.join(os.path.expanduser('~'), '.pysigntool', 'certs')


class Settings(BaseSettings):
    """Environment overrides, all read with the PYSIGNTOOL_ prefix."""

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)

    signtool: str = ''
    thumbprint: str = ''
    log_file: str = DEFAULT_LOG_FILE
    log_level: LogLevel = DEFAULT_LOG_LEVEL
    dll_prefix: str = DEFAULT_DLL_PREFIX
    worker_multiplier: PositiveInt = WORKER_MULTIPLIER
    timeout: PositiveInt = DEFAULT_TIMEOUT
    cert_dir: str = ''

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, value):
        if isinstance(value, str):
            return value.strip().upper() or DEFAULT_LOG_LEVEL
        return value


def _describe_errors(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        field = '.'.join(str(x) for x in item['loc'])
        problems.append('invalid value for %s%s: %s (%s)' % (ENV_PREFIX, field.upper(), item.get('input'),
                                                             item['msg']))
    return '; '.join(problems)


class SignConfig(object):
    def __init__(self, signtool_path=None, thumbprint='', log_file=DEFAULT_LOG_FILE, name_rules=None,
                 worker_multiplier=WORKER_MULTIPLIER, timeout=DEFAULT_TIMEOUT, verify_timeout=VERIFY_TIMEOUT,
                 cert_dir=None, servers=None, digest=DEFAULT_DIGEST, log_level=DEFAULT_LOG_LEVEL):
        self.signtool_path_ = signtool_path if signtool_path else default_signtool_path()
        self.thumbprint_ = thumbprint
        self.log_file_ = log_file
        if name_rules is None:
            name_rules = [NameRule('.dll', DEFAULT_DLL_PREFIX)]
        self.name_rules_ = name_rules
        self.worker_multiplier_ = worker_multiplier
        self.timeout_ = timeout
        self.verify_timeout_ = verify_timeout
        self.cert_dir_ = cert_dir if cert_dir else default_cert_dir()
        self.servers_ = servers if servers else list(TIMESTAMP_SERVERS)
        self.digest_ = digest
        self.log_level_ = log_level

    @classmethod
    def from_env(cls):
        try:
            settings = Settings()
        except ValidationError as ex:
            raise ConfigError(_describe_errors(ex))

        name_rules = [NameRule('.dll', settings.dll_prefix)] if settings.dll_prefix else []
        return cls(signtool_path=settings.signtool,
                   thumbprint=settings.thumbprint,
                   log_file=settings.log_file or DEFAULT_LOG_FILE,
                   name_rules=name_rules,
                   worker_multiplier=settings.worker_multiplier,
                   timeout=settings.timeout,
                   cert_dir=settings.cert_dir,
                   log_level=settings.log_level)

    def signtool_path(self) -> str:
        return self.signtool_path_

    def thumbprint(self) -> str:
        return self.thumbprint_

    def log_file(self) -> str:
        return self.log_file_

    def log_level(self) -> str:
        return self.log_level_

    def name_rules(self) -> list:
        return self.name_rules_

    def worker_multiplier(self) -> int:
        return self.worker_multiplier_

    def max_workers(self) -> int:
        return (os.cpu_count() or 1) * self.worker_multiplier_

    def timeout(self) -> int:
        return self.timeout_

    def verify_timeout(self) -> int:
        return self.verify_timeout_

    def cert_dir(self) -> str:
        return self.cert_dir_

    def servers(self) -> list:
        return self.servers_

    def digest(self) -> str:
        return self.digest_
