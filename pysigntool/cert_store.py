import glob
import logging
import os
import subprocess
from abc import ABCMeta, abstractmethod

from Crypto.Hash import SHA1
from Crypto.IO import PEM

logger = logging.getLogger(__name__)

CERTIFICATE_PATTERNS = ['*.pem', '*.crt', '*.cer', '*.der']
PEM_MARKER = b'-----BEGIN '


class CertificateStoreError(Exception):
    def __init__(self, value):
        self.value_ = value

    def __str__(self):
        return self.value_


def normalize_thumbprint(thumbprint: str) -> str:
    return ''.join(thumbprint.split()).replace(':', '').upper()


def thumbprint_of(der_bytes: bytes) -> str:
    """
    A certificate thumbprint is the SHA-1 digest of its DER encoding.
    """
    return SHA1.new(der_bytes).hexdigest().upper()


def read_certificates(file_path: str) -> list:
    with open(file_path, 'rb') as cert_file:
        data = cert_file.read()
    if PEM_MARKER not in data:
        return [data]

    certificates = []
    text = data.decode('ascii', errors='ignore')
    for block in text.split('-----END CERTIFICATE-----')[:-1]:
        start = block.find('-----BEGIN CERTIFICATE-----')
        if start < 0:
            continue
        der, marker, encrypted = PEM.decode(block[start:] + '-----END CERTIFICATE-----')
        certificates.append(der)
    return certificates


class CertificateStore(metaclass=ABCMeta):
    def __init__(self, name: str):
        self.name_ = name

    def name(self) -> str:
        return self.name_

    @abstractmethod
    def _lookup(self, thumbprint: str) -> bool:
        pass

    def contains(self, thumbprint: str) -> bool:
        wanted = normalize_thumbprint(thumbprint or '')
        if not wanted:
            return False
        try:
            return self._lookup(wanted)
        except CertificateStoreError as ex:
            logger.warning('certificate store %s could not be queried: %s', self.name_, ex)
            return False


class DirectoryCertificateStore(CertificateStore):
    def __init__(self, directory: str):
        CertificateStore.__init__(self, 'directory:%s' % directory)
        self.directory_ = directory

    def directory(self) -> str:
        return self.directory_

    def _certificate_files(self) -> list:
        files = []
        for pattern in CERTIFICATE_PATTERNS:
            files.extend(glob.glob(os.path.join(self.directory_, pattern)))
        return sorted(set(files))

    def _lookup(self, thumbprint: str) -> bool:
        if not os.path.isdir(self.directory_):
            return False

        for file_path in self._certificate_files():
            try:
                certificates = read_certificates(file_path)
            except (OSError, ValueError) as ex:
                logger.warning('skipping unreadable certificate %s: %s', file_path, ex)
                continue
            if any(thumbprint_of(x) == thumbprint for x in certificates):
                return True
        return False


class WindowsCertificateStore(CertificateStore):
    def __init__(self, store_name='My'):
        CertificateStore.__init__(self, 'CurrentUser\\%s' % store_name)
        self.store_name_ = store_name

    def _lookup(self, thumbprint: str) -> bool:
        cmd_line = ['certutil', '-user', '-store', self.store_name_, thumbprint]
        try:
            completed = subprocess.run(cmd_line, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, timeout=30)
        except (OSError, subprocess.TimeoutExpired) as ex:
            raise CertificateStoreError(str(ex))
        return completed.returncode == 0


def get_certificate_store(os_name: str, cert_dir: str) -> CertificateStore:
    if os_name == 'windows':
        return WindowsCertificateStore()
    return DirectoryCertificateStore(cert_dir)
