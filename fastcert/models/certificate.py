"""Certificate data models."""

import ipaddress
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .ca import KeyAlgorithm


class HostKind(str, Enum):
    """Kinds of Subject Alternative Name entries."""

    DNS = "dns"
    IP = "ip"
    EMAIL = "email"
    URI = "uri"


class HostType(BaseModel):
    """
    A single classified SAN entry.

    Classification never fails; whether the value is acceptable is decided
    separately by the validators in ``fastcert.utils.validators``.
    """

    kind: HostKind
    value: str

    class Config:
        """Pydantic config."""

        frozen = True

    @classmethod
    def parse(cls, raw: str) -> "HostType":
        """
        Classify a raw host string.

        IP literals become IP entries, strings containing both ``@`` and ``.``
        become email entries, strings containing ``://`` become URIs and
        everything else is treated as a DNS name.

        Args:
            raw: Host string as given by the caller

        Returns:
            Classified entry
        """
        try:
            ip = ipaddress.ip_address(raw)
        except ValueError:
            pass
        else:
            return cls(kind=HostKind.IP, value=str(ip))

        if "@" in raw and "." in raw:
            return cls(kind=HostKind.EMAIL, value=raw)
        if "://" in raw:
            return cls(kind=HostKind.URI, value=raw)
        return cls(kind=HostKind.DNS, value=raw)

    @property
    def ip(self):
        """Parsed address for IP entries."""
        if self.kind != HostKind.IP:
            raise ValueError(f"Not an IP address entry: {self.value}")
        return ipaddress.ip_address(self.value)

    def __str__(self) -> str:
        return self.value


# Forbidden Key Usage values for end-entity certificates (CA-only)
FORBIDDEN_KEY_USAGE = {"keyCertSign", "cRLSign"}

# Forbidden Extended Key Usage values
FORBIDDEN_EKU = {"anyExtendedKeyUsage"}

SERVER_EXTENDED_KEY_USAGE = ["serverAuth"]
CLIENT_EXTENDED_KEY_USAGE = ["clientAuth"]


class CertificateParams(BaseModel):
    """Everything needed to build and sign one leaf certificate."""

    common_name: str
    organization: str = "fastcert development certificate"
    organizational_unit: Optional[str] = None
    sans: list[HostType] = Field(default_factory=list)
    not_before: datetime
    not_after: datetime
    serial_number: int = Field(..., gt=0)
    key_usage: list[str] = Field(default_factory=lambda: ["digitalSignature"])
    extended_key_usage: list[str] = Field(default_factory=lambda: SERVER_EXTENDED_KEY_USAGE.copy())

    @field_validator("key_usage")
    @classmethod
    def validate_key_usage(cls, v):
        """Reject CA-only key usages."""
        for ku in v:
            if ku in FORBIDDEN_KEY_USAGE:
                raise ValueError(f"Key Usage '{ku}' is forbidden for end-entity certificates (CA-only)")
        return v

    @field_validator("extended_key_usage")
    @classmethod
    def validate_extended_key_usage(cls, v):
        """Reject forbidden extended key usages."""
        for eku in v:
            if eku in FORBIDDEN_EKU:
                raise ValueError(f"Extended Key Usage '{eku}' is forbidden")
        return v


class CertificateConfig(BaseModel):
    """A certificate request as given by the caller."""

    hosts: list[str] = Field(default_factory=list)
    cert_file: Optional[str] = None
    key_file: Optional[str] = None
    p12_file: Optional[str] = None
    client_cert: bool = False
    use_ecdsa: bool = False
    pkcs12: bool = False

    @property
    def key_algorithm(self) -> KeyAlgorithm:
        return KeyAlgorithm.ECDSA if self.use_ecdsa else KeyAlgorithm.RSA


class IssuedCertificate(BaseModel):
    """Result of a successful issuance."""

    cert_path: str
    key_path: str
    p12_path: Optional[str] = None
    serial_number: str  # Hex String
    sans: list[str]
    not_after: datetime
    key_algorithm: KeyAlgorithm
    client_cert: bool = False
    issuer: str
