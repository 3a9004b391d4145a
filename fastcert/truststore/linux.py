"""Linux distribution CA anchor directories."""

import logging
from pathlib import Path
from typing import NamedTuple, Optional

from fastcert.truststore.base import TrustStoreDriver
from fastcert.truststore.command import CommandRunner

logger = logging.getLogger("fastcert")


class LinuxDistro(NamedTuple):
    """Where a distribution family keeps extra CA anchors and how it refreshes them."""

    name: str
    anchor_dir: str
    extension: str
    update_command: tuple[str, ...]


# Probed in this order; the first existing anchor directory wins
DISTROS = (
    LinuxDistro("RedHat", "/etc/pki/ca-trust/source/anchors/", ".pem", ("update-ca-trust", "extract")),
    LinuxDistro("Debian", "/usr/local/share/ca-certificates/", ".crt", ("update-ca-certificates",)),
    LinuxDistro("Arch", "/etc/ca-certificates/trust-source/anchors/", ".crt", ("trust", "extract-compat")),
    LinuxDistro("openSUSE", "/usr/share/pki/trust/anchors/", ".pem", ("update-ca-certificates",)),
)


def detect_distro(fs_root: Path = Path("/")) -> Optional[LinuxDistro]:
    """
    Find the distribution family by its anchor directory.

    Args:
        fs_root: Filesystem root to probe under

    Returns:
        Matching distro, or None when none of the known layouts exists
    """
    for distro in DISTROS:
        if (fs_root / distro.anchor_dir.lstrip("/")).is_dir():
            return distro
    return None


class LinuxTrustStore(TrustStoreDriver):
    """Copies the CA into the distro anchor directory and rebuilds the bundle."""

    target = "system"

    def __init__(
        self,
        cert_path: Path,
        unique_name: str,
        runner: Optional[CommandRunner] = None,
        fs_root: Path = Path("/"),
    ):
        super().__init__(cert_path, unique_name, runner)
        self.fs_root = Path(fs_root)
        self.distro = detect_distro(self.fs_root)

    @property
    def name(self) -> str:
        return f"Linux {self.distro.name} CA store" if self.distro else "Linux CA store"

    @property
    def anchor_path(self) -> Optional[Path]:
        if self.distro is None:
            return None
        return self.fs_root / self.distro.anchor_dir.lstrip("/") / f"{self.unique_name}{self.distro.extension}"

    def is_available(self) -> bool:
        if self.distro is None:
            logger.debug("No known CA anchor directory found on this system")
            return False
        return True

    def check(self) -> bool:
        return self.anchor_path is not None and self.anchor_path.exists()

    def install(self) -> None:
        self.run(["tee", str(self.anchor_path)], "copying the CA certificate", elevated=True, input=self.read_pem())
        self.run(list(self.distro.update_command), " ".join(self.distro.update_command), elevated=True)

    def uninstall(self) -> None:
        self.run(["rm", "-f", str(self.anchor_path)], "removing the CA certificate", elevated=True)
        self.run(list(self.distro.update_command), " ".join(self.distro.update_command), elevated=True)
