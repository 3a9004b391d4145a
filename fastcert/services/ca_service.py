"""Local root CA management."""

import getpass
import logging
import os
import socket
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from fastcert.errors import CAKeyMissingError, CARootNotFoundError, CertificateError, FastcertIOError
from fastcert.models.ca import CAInfo, Subject
from fastcert.models.certificate import CertificateParams
from fastcert.models.config import CertificateSettings
from fastcert.services.crypto_service import CryptoService, PrivateKey, generate_serial_number
from fastcert.utils.file_utils import PRIVATE_FILE_MODE, PUBLIC_FILE_MODE, FileUtils

logger = logging.getLogger("fastcert")

ROOT_CERT_FILE = "rootCA.pem"
ROOT_KEY_FILE = "rootCA-key.pem"
LOCK_FILE = ".fastcert.lock"

UNIQUE_NAME_PREFIX = "fastcert_development_CA_"


def unique_name_for(cert: x509.Certificate) -> str:
    """Trust store tag of a CA certificate: ``fastcert_development_CA_<decimal serial>``."""
    return f"{UNIQUE_NAME_PREFIX}{cert.serial_number}"


def user_and_hostname() -> str:
    """
    Describe the current user for the CA subject.

    Returns:
        ``user@host`` string
    """
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


class CertificateAuthority:
    """
    The local root CA living in one directory.

    The key and certificate are loaded lazily on the first call that needs
    them and kept in memory afterwards.
    """

    def __init__(
        self,
        root_path: Path,
        crypto: CryptoService,
        settings: Optional[CertificateSettings] = None,
    ):
        """
        Initialize the CA manager.

        Args:
            root_path: Directory holding ``rootCA.pem`` and ``rootCA-key.pem``
            crypto: Crypto backend
            settings: Certificate settings (root validity)
        """
        self.root_path = Path(root_path)
        self.crypto = crypto
        self.settings = settings or CertificateSettings()
        self._cert: Optional[x509.Certificate] = None
        self._key: Optional[PrivateKey] = None

    @property
    def cert_path(self) -> Path:
        return self.root_path / ROOT_CERT_FILE

    @property
    def key_path(self) -> Path:
        return self.root_path / ROOT_KEY_FILE

    @property
    def is_ready(self) -> bool:
        return self._cert is not None and self._key is not None

    def exists(self) -> bool:
        """Whether both CA files are present on disk."""
        return self.cert_path.exists() and self.key_path.exists()

    def ensure_ready(self) -> None:
        """
        Load the CA from disk, creating it first if neither file exists.

        An existing CA is loaded without writing anything, so a read-only
        root directory works.

        Raises:
            CARootNotFoundError: If only the key exists
            CAKeyMissingError: If only the certificate exists
            CertificateError: If the files cannot be parsed or generation fails
            FastcertIOError: If the directory or files cannot be written
        """
        if self.is_ready:
            return
        if self.exists():
            self._load()
            return
        self._check_partial()

        try:
            FileUtils.ensure_directory(self.root_path)
        except OSError as e:
            raise FastcertIOError(f"Failed to create CA directory {self.root_path}: {e}") from e

        with self._creation_lock():
            # Another process may have created the CA while we waited
            if self.exists():
                self._load()
                return
            self._check_partial()
            self._create()

    def _check_partial(self) -> None:
        if self.key_path.exists() and not self.cert_path.exists():
            raise CARootNotFoundError(f"CA root certificate not found at {self.cert_path}")
        if self.cert_path.exists() and not self.key_path.exists():
            raise CAKeyMissingError(f"CA private key missing at {self.key_path}")

    def _load(self) -> None:
        try:
            cert = self.crypto.load_certificate(FileUtils.read_binary_file(self.cert_path))
            key = self.crypto.load_private_key(FileUtils.read_binary_file(self.key_path))
        except OSError as e:
            raise FastcertIOError(f"Failed to read CA from {self.root_path}: {e}") from e

        if not self._is_ca(cert):
            raise CertificateError(f"{self.cert_path} is not a CA certificate")

        self._cert = cert
        self._key = key
        logger.debug(f"Loaded CA from {self.root_path}")

    def _create(self) -> None:
        identity = user_and_hostname()
        subject = Subject(
            common_name=f"fastcert {identity}",
            organization="fastcert development CA",
            organizational_unit=identity,
        )

        key = self.crypto.generate_root_key()
        cert = self.crypto.build_root_certificate(
            key,
            subject,
            serial_number=generate_serial_number(),
            validity_days=self.settings.root_validity_days,
        )

        try:
            # Never leave a key without its certificate
            FileUtils.write_binary_files(
                [
                    (self.key_path, self.crypto.key_to_pem(key), PRIVATE_FILE_MODE),
                    (self.cert_path, self.crypto.cert_to_pem(cert), PUBLIC_FILE_MODE),
                ]
            )
        except OSError as e:
            raise FastcertIOError(f"Failed to write CA files to {self.root_path}: {e}") from e

        self._cert = cert
        self._key = key
        logger.info(f"Created a new local CA at {self.root_path}")

    @contextmanager
    def _creation_lock(self):
        """Hold an exclusive advisory lock on the root directory (POSIX only)."""
        if os.name != "posix":
            yield
            return

        import fcntl

        try:
            lock = open(self.root_path / LOCK_FILE, "a")
        except OSError as e:
            raise FastcertIOError(f"Cannot lock CA directory {self.root_path}: {e}") from e

        with lock:
            fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock.fileno(), fcntl.LOCK_UN)

    @property
    def certificate(self) -> x509.Certificate:
        self.ensure_ready()
        return self._cert

    @property
    def key(self) -> PrivateKey:
        self.ensure_ready()
        return self._key

    def sign(self, params: CertificateParams, public_key) -> x509.Certificate:
        """
        Sign a leaf certificate with the root key.

        Args:
            params: Certificate parameters
            public_key: Public key to certify

        Returns:
            Signed certificate whose issuer is the CA subject
        """
        self.ensure_ready()
        return self.crypto.build_and_sign(params, public_key, self._key, self._cert)

    def unique_name(self) -> str:
        """
        Name used to tag the CA inside external trust stores.

        Returns:
            ``fastcert_development_CA_<decimal serial>``
        """
        return unique_name_for(self.certificate)

    def fingerprint_sha256(self) -> str:
        """Colon-separated upper-case SHA-256 fingerprint of the root certificate."""
        return self.certificate.fingerprint(hashes.SHA256()).hex(":").upper()

    def info(self) -> CAInfo:
        """
        Summarize the CA.

        Returns:
            CA summary
        """
        cert = self.certificate

        def attribute(oid) -> Optional[str]:
            attrs = cert.subject.get_attributes_for_oid(oid)
            return attrs[0].value if attrs else None

        return CAInfo(
            root_path=str(self.root_path),
            cert_path=str(self.cert_path),
            key_path=str(self.key_path),
            unique_name=self.unique_name(),
            subject=Subject(
                common_name=attribute(x509.NameOID.COMMON_NAME) or "Unknown",
                organization=attribute(x509.NameOID.ORGANIZATION_NAME),
                organizational_unit=attribute(x509.NameOID.ORGANIZATIONAL_UNIT_NAME),
            ),
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            fingerprint_sha256=self.fingerprint_sha256(),
        )

    @staticmethod
    def _is_ca(cert: x509.Certificate) -> bool:
        try:
            return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
        except x509.ExtensionNotFound:
            return False
