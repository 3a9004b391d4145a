"""NSS certificate databases used by Firefox and Chromium."""

import logging
import sys
from pathlib import Path
from typing import Optional

from fastcert.errors import CommandFailedError, TrustStoreError
from fastcert.truststore.base import TrustStoreDriver
from fastcert.truststore.command import CommandRunner, run_with_elevated_retry

logger = logging.getLogger("fastcert")

READ_ONLY_SIGNATURE = "SEC_ERROR_READ_ONLY"

# Homebrew installs certutil outside PATH
MACOS_CERTUTIL_PATHS = (
    "/usr/local/opt/nss/bin/certutil",
    "/opt/homebrew/opt/nss/bin/certutil",
)


def profile_globs(platform: str) -> list[str]:
    """Home-relative glob patterns of directories that may hold an NSS database."""
    patterns = [
        ".pki/nssdb",
        "snap/chromium/current/.pki/nssdb",
        ".mozilla/firefox/*",
        "snap/firefox/common/.mozilla/firefox/*",
    ]
    if platform == "darwin":
        patterns.append("Library/Application Support/Firefox/Profiles/*")
    return patterns


def database_spec(profile: Path) -> Optional[str]:
    """
    Database argument for ``certutil -d``.

    Returns:
        ``sql:<dir>`` for cert9.db, ``dbm:<dir>`` for cert8.db, None otherwise
    """
    if (profile / "cert9.db").exists():
        return f"sql:{profile}"
    if (profile / "cert8.db").exists():
        return f"dbm:{profile}"
    return None


class NSSTrustStore(TrustStoreDriver):
    """Adds the CA to every NSS database found under the user's home."""

    target = "nss"
    name = "NSS (Firefox/Chromium)"

    def __init__(
        self,
        cert_path: Path,
        unique_name: str,
        runner: Optional[CommandRunner] = None,
        home: Optional[Path] = None,
        platform: str = sys.platform,
    ):
        super().__init__(cert_path, unique_name, runner)
        self.home = Path(home) if home else Path.home()
        self.platform = platform
        self._certutil: Optional[str] = None

    @property
    def certutil(self) -> Optional[str]:
        if self._certutil is None:
            self._certutil = self._find_certutil()
        return self._certutil

    def _find_certutil(self) -> Optional[str]:
        # The certutil shipped with Windows is not the NSS tool
        if self.platform == "win32":
            return None
        found = self.runner.which("certutil")
        if found:
            return found
        if self.platform == "darwin":
            for candidate in MACOS_CERTUTIL_PATHS:
                if Path(candidate).exists():
                    return candidate
        return None

    def databases(self) -> list[str]:
        """``certutil -d`` arguments of all NSS databases found."""
        found = []
        for pattern in profile_globs(self.platform):
            for profile in sorted(self.home.glob(pattern)):
                spec = database_spec(profile) if profile.is_dir() else None
                if spec and spec not in found:
                    found.append(spec)
        return found

    def is_available(self) -> bool:
        if not self.databases():
            logger.debug("No NSS databases found")
            return False
        if self.certutil is None:
            logger.warning("NSS databases were found but certutil is not installed (install libnss3-tools or nss)")
            return False
        return True

    def check(self) -> bool:
        databases = self.databases()
        if not databases:
            return False
        for db in databases:
            try:
                result = self.runner.run([self.certutil, "-V", "-d", db, "-u", "L", "-n", self.unique_name])
            except CommandFailedError as e:
                raise TrustStoreError(f"{self.name}: {e}") from e
            if not result.ok:
                return False
        return True

    def install(self) -> None:
        for db in self._require_databases():
            self._run_certutil(
                ["-A", "-d", db, "-t", "C,,", "-n", self.unique_name, "-i", str(self.cert_path)],
                f"adding the CA to {db}",
            )

    def uninstall(self) -> None:
        for db in self._require_databases():
            self._run_certutil(["-D", "-d", db, "-n", self.unique_name], f"removing the CA from {db}")

    def _require_databases(self) -> list[str]:
        databases = self.databases()
        if not databases:
            raise TrustStoreError(f"{self.name}: no NSS databases found")
        if self.certutil is None:
            raise TrustStoreError(f"{self.name}: certutil not found")
        return databases

    def _run_certutil(self, args: list[str], action: str) -> None:
        try:
            result = run_with_elevated_retry(self.runner, [self.certutil] + args, READ_ONLY_SIGNATURE)
        except CommandFailedError as e:
            raise TrustStoreError(f"{self.name}: {e}") from e
        if not result.ok:
            self.fail(action, result)
