"""Platform trust store drivers."""

import sys
from pathlib import Path
from typing import Optional

from fastcert.models.config import TRUST_STORE_TARGETS, TrustStoreSettings
from fastcert.truststore.base import TrustStoreDriver
from fastcert.truststore.command import CommandResult, CommandRunner
from fastcert.truststore.java import JavaTrustStore
from fastcert.truststore.linux import LinuxTrustStore
from fastcert.truststore.macos import MacOSTrustStore
from fastcert.truststore.nss import NSSTrustStore
from fastcert.truststore.windows import WindowsTrustStore

__all__ = [
    "CommandResult",
    "CommandRunner",
    "JavaTrustStore",
    "LinuxTrustStore",
    "MacOSTrustStore",
    "NSSTrustStore",
    "TrustStoreDriver",
    "WindowsTrustStore",
    "create_drivers",
    "system_driver_class",
]


def system_driver_class(platform: str):
    """
    Driver class for the OS root store of ``platform``.

    Returns:
        Driver class, or None on unsupported platforms
    """
    if platform == "darwin":
        return MacOSTrustStore
    if platform.startswith("linux"):
        return LinuxTrustStore
    if platform == "win32":
        return WindowsTrustStore
    return None


def create_drivers(
    cert_path: Path,
    unique_name: str,
    settings: TrustStoreSettings,
    runner: Optional[CommandRunner] = None,
    platform: str = sys.platform,
) -> dict[str, Optional[TrustStoreDriver]]:
    """
    Build the drivers of all enabled targets.

    Args:
        cert_path: CA certificate PEM file
        unique_name: Name tagging the CA in the stores
        settings: Trust store settings (enabled targets, JAVA_HOME, home)
        runner: Command runner shared by all drivers
        platform: ``sys.platform`` value to build for

    Returns:
        Mapping of target name to driver in processing order (system, nss,
        java); the system entry is None on unsupported platforms
    """
    runner = runner or CommandRunner()
    drivers: dict[str, Optional[TrustStoreDriver]] = {}

    for target in TRUST_STORE_TARGETS:
        if not settings.is_enabled(target):
            continue
        if target == "system":
            driver_class = system_driver_class(platform)
            drivers[target] = driver_class(cert_path, unique_name, runner) if driver_class else None
        elif target == "nss":
            drivers[target] = NSSTrustStore(cert_path, unique_name, runner, home=settings.home, platform=platform)
        elif target == "java":
            drivers[target] = JavaTrustStore(
                cert_path, unique_name, runner, java_home=settings.java_home, platform=platform
            )
    return drivers
