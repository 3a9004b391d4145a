"""Common trust store driver contract."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from fastcert.errors import CommandFailedError, TrustStoreError
from fastcert.truststore.command import CommandResult, CommandRunner


class TrustStoreDriver(ABC):
    """
    One external store that can hold the CA certificate.

    Attributes:
        target: Configuration target this driver serves (system, nss, java)
        name: Human-readable driver name
    """

    target = "system"
    name = "trust store"

    def __init__(self, cert_path: Path, unique_name: str, runner: Optional[CommandRunner] = None):
        """
        Initialize driver.

        Args:
            cert_path: PEM file of the CA certificate
            unique_name: Name tagging the CA inside the store
            runner: Command runner for the platform utilities
        """
        self.cert_path = Path(cert_path)
        self.unique_name = unique_name
        self.runner = runner or CommandRunner()
        self._cert: Optional[x509.Certificate] = None

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the store and its tooling exist on this machine."""

    @abstractmethod
    def check(self) -> bool:
        """Whether the CA certificate is currently trusted by the store."""

    @abstractmethod
    def install(self) -> None:
        """Add the CA certificate. Raises TrustStoreError on failure."""

    @abstractmethod
    def uninstall(self) -> None:
        """Remove the CA certificate. Raises TrustStoreError on failure."""

    @property
    def certificate(self) -> x509.Certificate:
        if self._cert is None:
            try:
                self._cert = x509.load_pem_x509_certificate(self.read_pem().encode("ascii"))
            except ValueError as e:
                raise TrustStoreError(f"{self.name}: invalid CA certificate {self.cert_path}: {e}") from e
        return self._cert

    def read_pem(self) -> str:
        try:
            with open(self.cert_path, "r", encoding="ascii") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise TrustStoreError(f"{self.name}: cannot read {self.cert_path}: {e}") from e

    def fingerprint(self, algorithm=None) -> str:
        """Upper-case colon-separated fingerprint, SHA-256 by default."""
        return self.certificate.fingerprint(algorithm or hashes.SHA256()).hex(":").upper()

    def run(self, args, action: str, **kwargs) -> CommandResult:
        """
        Run a command that must succeed.

        Raises:
            TrustStoreError: If the command cannot start or exits non-zero
        """
        try:
            result = self.runner.run(args, **kwargs)
        except CommandFailedError as e:
            raise TrustStoreError(f"{self.name}: {e}") from e
        if not result.ok:
            self.fail(action, result)
        return result

    def fail(self, action: str, result: CommandResult) -> None:
        detail = (result.stderr or result.stdout).strip()
        message = f"{self.name}: {action} failed (exit status {result.returncode})"
        raise TrustStoreError(f"{message}: {detail}" if detail else message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.unique_name!r})"
