"""Data models for fastcert."""

from .ca import CAInfo, ECDSACurve, KeyAlgorithm, Subject
from .certificate import CertificateConfig, CertificateParams, HostKind, HostType, IssuedCertificate
from .config import AppConfig
from .truststore import TargetOutcome, TargetStatus, TrustOperation, TrustStoreResult

__all__ = [
    "KeyAlgorithm",
    "ECDSACurve",
    "Subject",
    "CAInfo",
    "HostKind",
    "HostType",
    "CertificateParams",
    "CertificateConfig",
    "IssuedCertificate",
    "AppConfig",
    "TrustOperation",
    "TargetStatus",
    "TargetOutcome",
    "TrustStoreResult",
]
