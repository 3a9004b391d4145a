"""Trust store distribution service."""

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

from cryptography import x509

from fastcert.errors import CertificateError, FastcertError, FastcertIOError, TrustStoreError
from fastcert.models.config import TrustStoreSettings
from fastcert.models.truststore import TargetOutcome, TargetStatus, TrustOperation, TrustStoreResult
from fastcert.services.ca_service import CertificateAuthority, unique_name_for
from fastcert.truststore import create_drivers
from fastcert.truststore.base import TrustStoreDriver
from fastcert.truststore.command import CommandRunner

logger = logging.getLogger("fastcert")


class TrustStoreService:
    """
    Installs and removes the CA certificate in the enabled trust stores.

    Targets are processed one at a time in the order system, nss, java. The
    system store is mandatory: its failure aborts the run. Failures of the
    optional stores are collected as warnings.
    """

    def __init__(
        self,
        ca: CertificateAuthority,
        settings: Optional[TrustStoreSettings] = None,
        runner: Optional[CommandRunner] = None,
        platform: str = sys.platform,
        driver_factory: Callable[..., dict] = create_drivers,
    ):
        """
        Initialize trust store service.

        Args:
            ca: CA whose root certificate is distributed
            settings: Enabled targets and store locations
            runner: Command runner passed to the drivers
            platform: Platform to build drivers for
            driver_factory: Builds the target-to-driver mapping
        """
        self.ca = ca
        self.settings = settings or TrustStoreSettings()
        self.runner = runner or CommandRunner()
        self.platform = platform
        self.driver_factory = driver_factory

    def drivers(self, cert_path: Optional[Path] = None) -> dict[str, Optional[TrustStoreDriver]]:
        """
        Build drivers for the enabled targets.

        Args:
            cert_path: CA certificate to distribute, defaults to the local root

        Returns:
            Target-to-driver mapping in processing order
        """
        if cert_path is None:
            self.ca.ensure_ready()
            cert_path = self.ca.cert_path
            unique_name = self.ca.unique_name()
        else:
            cert_path = Path(cert_path)
            unique_name = unique_name_for(self._load_certificate(cert_path))

        return self.driver_factory(
            cert_path,
            unique_name,
            self.settings,
            runner=self.runner,
            platform=self.platform,
        )

    def install_ca(self, cert_path: Optional[Path] = None) -> TrustStoreResult:
        """
        Install the CA certificate into every enabled store.

        Args:
            cert_path: CA certificate, defaults to the local root

        Returns:
            Per-target outcomes and warnings

        Raises:
            TrustStoreError: If the system store fails; ``result`` holds the
                outcomes gathered so far
        """
        return self._dispatch(TrustOperation.INSTALL, cert_path)

    def uninstall_ca(self, cert_path: Optional[Path] = None) -> TrustStoreResult:
        """
        Remove the CA certificate from every enabled store.

        Args:
            cert_path: CA certificate, defaults to the local root

        Returns:
            Per-target outcomes and warnings

        Raises:
            TrustStoreError: If the system store fails
        """
        return self._dispatch(TrustOperation.UNINSTALL, cert_path)

    def check_ca(self, cert_path: Optional[Path] = None) -> dict[str, Optional[bool]]:
        """
        Report whether each enabled store trusts the CA.

        Args:
            cert_path: CA certificate, defaults to the local root

        Returns:
            Target to presence; None when the store is unavailable or could
            not be queried
        """
        status: dict[str, Optional[bool]] = {}
        for target, driver in self.drivers(cert_path).items():
            if driver is None or not driver.is_available():
                status[target] = None
                continue
            try:
                status[target] = driver.check()
            except FastcertError as e:
                logger.warning(f"Could not query {driver.name}: {e}")
                status[target] = None
        return status

    def _dispatch(self, operation: TrustOperation, cert_path: Optional[Path]) -> TrustStoreResult:
        result = TrustStoreResult(operation=operation)

        for target, driver in self.drivers(cert_path).items():
            outcome = self._process(operation, target, driver)
            result.outcomes.append(outcome)

            if target == "system":
                result.system = outcome
                if outcome.failed:
                    raise TrustStoreError(outcome.message, result=result)
                if outcome.status == TargetStatus.SKIPPED:
                    result.warnings.append(outcome.message)
                    logger.warning(outcome.message)
            elif outcome.failed:
                result.warnings.append(outcome.message)
                logger.warning(outcome.message)

        return result

    def _process(self, operation: TrustOperation, target: str, driver: Optional[TrustStoreDriver]) -> TargetOutcome:
        if driver is None:
            return TargetOutcome(
                target=target,
                driver="none",
                status=TargetStatus.SKIPPED,
                message=f"The {target} trust store is not supported on {self.platform}",
            )

        if not driver.is_available():
            return TargetOutcome(
                target=target,
                driver=driver.name,
                status=TargetStatus.SKIPPED,
                message=f"{driver.name} is not available, skipping",
            )

        try:
            if operation == TrustOperation.INSTALL:
                if driver.check():
                    logger.info(f"The local CA is already installed in the {driver.name}")
                    status = TargetStatus.ALREADY_PRESENT
                else:
                    driver.install()
                    logger.info(f"The local CA is now installed in the {driver.name}")
                    status = TargetStatus.INSTALLED
            else:
                driver.uninstall()
                logger.info(f"The local CA is now uninstalled from the {driver.name}")
                status = TargetStatus.UNINSTALLED
        except FastcertError as e:
            return TargetOutcome(
                target=target,
                driver=driver.name,
                status=TargetStatus.FAILED,
                message=f"{operation.value} failed for {driver.name}: {e}",
            )

        return TargetOutcome(target=target, driver=driver.name, status=status)

    @staticmethod
    def _load_certificate(cert_path: Path) -> x509.Certificate:
        try:
            with open(cert_path, "rb") as f:
                data = f.read()
        except OSError as e:
            raise FastcertIOError(f"Failed to read CA certificate {cert_path}: {e}") from e
        try:
            return x509.load_pem_x509_certificate(data)
        except ValueError as e:
            raise CertificateError(f"Failed to parse CA certificate {cert_path}: {e}") from e
