"""Service layer for business logic."""

from .ca_service import CertificateAuthority
from .cert_service import CertificateService
from .crypto_service import CryptoService
from .parser_service import CertificateParser
from .truststore_service import TrustStoreService
from .yaml_service import YAMLService

__all__ = [
    "YAMLService",
    "CryptoService",
    "CertificateParser",
    "CertificateAuthority",
    "CertificateService",
    "TrustStoreService",
]
