"""CA data models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class KeyAlgorithm(str, Enum):
    """Supported key algorithms."""

    RSA = "RSA"
    ECDSA = "ECDSA"


class ECDSACurve(str, Enum):
    """Supported ECDSA curves."""

    P256 = "P-256"


class Subject(BaseModel):
    """Certificate subject information."""

    common_name: str = Field(..., min_length=1)
    organization: Optional[str] = None
    organizational_unit: Optional[str] = None


class CAInfo(BaseModel):
    """Summary of the local root CA."""

    root_path: str
    cert_path: str
    key_path: str
    unique_name: str
    subject: Subject
    not_before: datetime
    not_after: datetime
    fingerprint_sha256: str
