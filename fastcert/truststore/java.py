"""Java ``cacerts`` keystore."""

import logging
import sys
from pathlib import Path
from typing import Optional

from cryptography.hazmat.primitives import hashes

from fastcert.errors import CommandFailedError, TrustStoreError
from fastcert.truststore.base import TrustStoreDriver
from fastcert.truststore.command import CommandResult, CommandRunner, run_with_elevated_retry

logger = logging.getLogger("fastcert")

STORE_PASSWORD = "changeit"
FILE_NOT_FOUND_SIGNATURE = "java.io.FileNotFoundException"

CACERTS_LOCATIONS = ("lib/security/cacerts", "jre/lib/security/cacerts")


class JavaTrustStore(TrustStoreDriver):
    """Imports the CA into the keystore of the JDK at ``java_home``."""

    target = "java"
    name = "Java keystore"

    def __init__(
        self,
        cert_path: Path,
        unique_name: str,
        runner: Optional[CommandRunner] = None,
        java_home: Optional[str] = None,
        platform: str = sys.platform,
    ):
        super().__init__(cert_path, unique_name, runner)
        self.java_home = Path(java_home) if java_home else None
        self.platform = platform

    @property
    def keytool(self) -> Optional[Path]:
        if self.java_home is None:
            return None
        name = "keytool.exe" if self.platform == "win32" else "keytool"
        return self.java_home / "bin" / name

    @property
    def cacerts(self) -> Optional[Path]:
        if self.java_home is None:
            return None
        for location in CACERTS_LOCATIONS:
            path = self.java_home / location
            if path.exists():
                return path
        return None

    def is_available(self) -> bool:
        if self.java_home is None:
            logger.debug("JAVA_HOME is not set")
            return False
        return self.keytool.exists() and self.cacerts is not None

    def check(self) -> bool:
        result = self._keytool(["-list"])
        if not result.ok:
            self.fail("keytool -list", result)
        # keytool prints fingerprints upper-case and colon separated
        output = result.stdout.upper()
        return self.fingerprint() in output or self.fingerprint(hashes.SHA1()) in output

    def install(self) -> None:
        result = self._keytool(["-importcert", "-noprompt", "-alias", self.unique_name, "-file", str(self.cert_path)])
        if not result.ok:
            self.fail("keytool -importcert", result)

    def uninstall(self) -> None:
        result = self._keytool(["-delete", "-alias", self.unique_name])
        if not result.ok and "does not exist" not in result.output:
            self.fail("keytool -delete", result)

    def _keytool(self, args: list[str]) -> CommandResult:
        if not self.is_available():
            raise TrustStoreError(f"{self.name}: keytool or cacerts not found under {self.java_home}")
        command = [str(self.keytool)] + args + ["-keystore", str(self.cacerts), "-storepass", STORE_PASSWORD]
        try:
            return run_with_elevated_retry(
                self.runner,
                command,
                FILE_NOT_FOUND_SIGNATURE,
                env={"JAVA_HOME": str(self.java_home)},
            )
        except CommandFailedError as e:
            raise TrustStoreError(f"{self.name}: {e}") from e
