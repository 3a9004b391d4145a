"""Certificate inspection service."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from fastcert.errors import CertificateError

logger = logging.getLogger("fastcert")

EKU_NAMES = {
    x509.ExtendedKeyUsageOID.SERVER_AUTH: "serverAuth",
    x509.ExtendedKeyUsageOID.CLIENT_AUTH: "clientAuth",
    x509.ExtendedKeyUsageOID.CODE_SIGNING: "codeSigning",
    x509.ExtendedKeyUsageOID.EMAIL_PROTECTION: "emailProtection",
    x509.ExtendedKeyUsageOID.TIME_STAMPING: "timeStamping",
    x509.ExtendedKeyUsageOID.OCSP_SIGNING: "OCSPSigning",
}


class CertificateParser:
    """Read-only helpers for looking inside X.509 certificates."""

    @staticmethod
    def parse_certificate(cert_path: Path) -> Dict[str, Any]:
        """
        Parse a PEM certificate file.

        Args:
            cert_path: Path to certificate file

        Returns:
            Dictionary with parsed certificate data

        Raises:
            FileNotFoundError: If certificate file not found
            CertificateError: If certificate cannot be parsed
        """
        if not cert_path.exists():
            raise FileNotFoundError(f"Certificate not found: {cert_path}")

        with open(cert_path, "rb") as f:
            data = f.read()
        try:
            cert = x509.load_pem_x509_certificate(data)
        except ValueError as e:
            logger.error(f"Error parsing certificate {cert_path}: {e}")
            raise CertificateError(f"Failed to parse certificate: {e}") from e
        return CertificateParser.describe(cert)

    @staticmethod
    def describe(cert: x509.Certificate) -> Dict[str, Any]:
        """
        Extract the interesting fields of a loaded certificate.

        Args:
            cert: Certificate object

        Returns:
            Dictionary with subject, issuer, validity, key and extension data
        """
        key_info = CertificateParser._extract_key_info(cert.public_key())
        return {
            "subject": CertificateParser._extract_subject(cert.subject),
            "issuer": CertificateParser._extract_subject(cert.issuer),
            "not_before": cert.not_valid_before_utc,
            "not_after": cert.not_valid_after_utc,
            "serial_number": format(cert.serial_number, "X"),
            "public_key_algorithm": key_info["algorithm"],
            "public_key_size": key_info["key_size"],
            "public_key_curve": key_info["curve"],
            "fingerprint_sha256": cert.fingerprint(hashes.SHA256()).hex(":").upper(),
            "sans": CertificateParser._extract_sans(cert),
            "is_ca": CertificateParser._is_ca(cert),
            "key_usage": CertificateParser._extract_key_usage(cert),
            "extended_key_usage": CertificateParser._extract_extended_key_usage(cert),
        }

    @staticmethod
    def _extract_subject(name: x509.Name) -> Dict[str, Optional[str]]:
        """
        Extract Subject/Issuer DN.

        Args:
            name: X.509 Name object

        Returns:
            Dictionary with subject fields
        """

        def get_attribute(oid):
            attrs = name.get_attributes_for_oid(oid)
            return attrs[0].value if attrs else None

        return {
            "common_name": get_attribute(x509.NameOID.COMMON_NAME),
            "organization": get_attribute(x509.NameOID.ORGANIZATION_NAME),
            "organizational_unit": get_attribute(x509.NameOID.ORGANIZATIONAL_UNIT_NAME),
        }

    @staticmethod
    def _extract_key_info(public_key) -> Dict[str, Any]:
        if isinstance(public_key, rsa.RSAPublicKey):
            return {"algorithm": "RSA", "key_size": public_key.key_size, "curve": None}
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            curve_map = {"secp256r1": "P-256", "secp384r1": "P-384", "secp521r1": "P-521"}
            return {
                "algorithm": "ECDSA",
                "key_size": public_key.curve.key_size,
                "curve": curve_map.get(public_key.curve.name, public_key.curve.name),
            }
        return {"algorithm": "Unknown", "key_size": None, "curve": None}

    @staticmethod
    def _extract_sans(cert: x509.Certificate) -> list[str]:
        """
        Extract Subject Alternative Names as strings, in certificate order.

        Args:
            cert: Certificate object

        Returns:
            List of SANs
        """
        try:
            san_ext = cert.extensions.get_extension_for_oid(x509.ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
        except x509.ExtensionNotFound:
            return []
        return [str(name.value) for name in san_ext.value]

    @staticmethod
    def _is_ca(cert: x509.Certificate) -> bool:
        try:
            bc = cert.extensions.get_extension_for_oid(x509.ExtensionOID.BASIC_CONSTRAINTS)
            return bc.value.ca
        except x509.ExtensionNotFound:
            return False

    @staticmethod
    def _extract_key_usage(cert: x509.Certificate) -> list[str]:
        """
        Extract Key Usage extension values.

        Args:
            cert: Certificate object

        Returns:
            List of Key Usage strings (e.g., ["digitalSignature", "keyEncipherment"])
        """
        try:
            ku = cert.extensions.get_extension_for_oid(x509.ExtensionOID.KEY_USAGE).value
        except x509.ExtensionNotFound:
            return []

        usage_list = []
        if ku.digital_signature:
            usage_list.append("digitalSignature")
        if ku.content_commitment:
            usage_list.append("nonRepudiation")
        if ku.key_encipherment:
            usage_list.append("keyEncipherment")
        if ku.data_encipherment:
            usage_list.append("dataEncipherment")
        if ku.key_agreement:
            usage_list.append("keyAgreement")
        if ku.key_cert_sign:
            usage_list.append("keyCertSign")
        if ku.crl_sign:
            usage_list.append("cRLSign")
        return usage_list

    @staticmethod
    def _extract_extended_key_usage(cert: x509.Certificate) -> list[str]:
        try:
            eku_ext = cert.extensions.get_extension_for_oid(x509.ExtensionOID.EXTENDED_KEY_USAGE)
        except x509.ExtensionNotFound:
            return []
        return [EKU_NAMES.get(oid, oid.dotted_string) for oid in eku_ext.value]

    @staticmethod
    def get_validity_status(not_before: datetime, not_after: datetime, warn_days: int = 30) -> tuple[str, str]:
        """
        Get validity status of certificate.

        Args:
            not_before: Certificate start date
            not_after: Certificate end date
            warn_days: Remaining days below which a valid certificate is flagged

        Returns:
            Tuple of (status, status_text) where status is one of
            ``valid``, ``expiring``, ``expired`` or ``not_yet_valid``
        """
        now = datetime.now(timezone.utc) if not_after.tzinfo else datetime.now()

        if now < not_before:
            return "not_yet_valid", "Not yet valid"
        if now > not_after:
            return "expired", "Expired"
        days_remaining = (not_after - now).days
        if days_remaining <= warn_days:
            return "expiring", f"Expires in {days_remaining} days"
        return "valid", "Valid"

    @staticmethod
    def verify_key_pair(cert: x509.Certificate, private_key) -> bool:
        """
        Verify that a certificate and a private key belong together.

        Args:
            cert: Certificate object
            private_key: Private key object

        Returns:
            True if the public halves match, False otherwise
        """

        def spki(key) -> bytes:
            return key.public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )

        return spki(cert.public_key()) == spki(private_key.public_key())

    @staticmethod
    def verify_signature(cert: x509.Certificate, issuer_cert: x509.Certificate) -> None:
        """
        Verify that ``cert`` was signed by the key of ``issuer_cert``.

        Args:
            cert: Certificate to check
            issuer_cert: Presumed issuer

        Raises:
            CertificateError: If the signature does not verify
        """
        issuer_public_key = issuer_cert.public_key()
        try:
            if isinstance(issuer_public_key, rsa.RSAPublicKey):
                issuer_public_key.verify(
                    cert.signature,
                    cert.tbs_certificate_bytes,
                    padding.PKCS1v15(),
                    cert.signature_hash_algorithm,
                )
            elif isinstance(issuer_public_key, ec.EllipticCurvePublicKey):
                issuer_public_key.verify(
                    cert.signature,
                    cert.tbs_certificate_bytes,
                    ec.ECDSA(cert.signature_hash_algorithm),
                )
            else:
                raise CertificateError("Unsupported issuer key type for signature verification")
        except InvalidSignature as e:
            raise CertificateError(
                f"Signature of {CertificateParser.get_cn(cert)} does not verify "
                f"against {CertificateParser.get_cn(issuer_cert)}"
            ) from e

    @staticmethod
    def get_cn(cert: x509.Certificate) -> str:
        """Get Common Name from certificate subject."""
        cn_attrs = cert.subject.get_attributes_for_oid(x509.NameOID.COMMON_NAME)
        return cn_attrs[0].value if cn_attrs else "Unknown"
