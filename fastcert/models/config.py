"""Application configuration models."""

import os
import sys
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

TRUST_STORE_TARGETS = ("system", "nss", "java")


def default_caroot() -> str:
    """
    Platform data directory used for the CA when no override is given.

    Returns:
        Path string of the default CA root directory
    """
    if sys.platform == "win32":
        base = os.environ.get("LOCALAPPDATA") or str(Path.home() / "AppData" / "Local")
    elif sys.platform == "darwin":
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return str(Path(base) / "fastcert")


class PathSettings(BaseModel):
    """Path settings."""

    caroot: str = Field(default_factory=default_caroot)


class CertificateSettings(BaseModel):
    """Issuance defaults."""

    validity_days: int = Field(820, gt=0, le=825)
    rsa_key_size: int = Field(2048, ge=2048)
    root_key_size: int = Field(3072, ge=3072)
    root_validity_days: int = Field(3650, gt=0)


class TrustStoreSettings(BaseModel):
    """Trust store distribution settings."""

    targets: list[str] = Field(default_factory=lambda: list(TRUST_STORE_TARGETS))
    java_home: Optional[str] = None
    home: Optional[str] = None  # base directory for NSS profile discovery

    @field_validator("targets", mode="before")
    @classmethod
    def parse_targets(cls, v):
        """Accept a comma-separated string or a list and reject unknown names."""
        if v is None:
            return list(TRUST_STORE_TARGETS)
        if isinstance(v, str):
            v = v.split(",")
        targets = []
        for item in v:
            name = str(item).strip().lower()
            if not name:
                continue
            if name not in TRUST_STORE_TARGETS:
                raise ValueError(f"Unknown trust store '{name}' (expected one of: {', '.join(TRUST_STORE_TARGETS)})")
            if name not in targets:
                targets.append(name)
        return targets

    def is_enabled(self, target: str) -> bool:
        return target in self.targets


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class OutputSettings(BaseModel):
    """Command-line output settings."""

    format: Literal["text", "json", "yaml"] = "text"


class AppConfig(BaseModel):
    """Main application configuration."""

    paths: PathSettings = Field(default_factory=PathSettings)
    certificates: CertificateSettings = Field(default_factory=CertificateSettings)
    truststore: TrustStoreSettings = Field(default_factory=TrustStoreSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
