"""Key and certificate primitives built on the cryptography library."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from fastcert.errors import CertificateError
from fastcert.models.ca import ECDSACurve, KeyAlgorithm, Subject
from fastcert.models.certificate import CertificateParams, HostKind, HostType

logger = logging.getLogger("fastcert")

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]

CURVES = {
    ECDSACurve.P256: ec.SECP256R1,
}

EKU_OIDS = {
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
    "emailProtection": ExtendedKeyUsageOID.EMAIL_PROTECTION,
    "timeStamping": ExtendedKeyUsageOID.TIME_STAMPING,
}

# OpenSSL-style key usage names mapped to x509.KeyUsage keyword arguments
KEY_USAGE_FLAGS = {
    "digitalSignature": "digital_signature",
    "nonRepudiation": "content_commitment",
    "keyEncipherment": "key_encipherment",
    "dataEncipherment": "data_encipherment",
    "keyAgreement": "key_agreement",
    "keyCertSign": "key_cert_sign",
    "cRLSign": "crl_sign",
}

SERIAL_BITS = 128

# Serials handed out by this process
_issued_serials: set[int] = set()


def generate_serial_number() -> int:
    """
    Draw a random positive 128-bit serial not yet used by this process.

    Uniqueness is only tracked in memory, so two separate runs may in
    principle produce the same serial.

    Returns:
        Serial number
    """
    while True:
        serial = secrets.randbits(SERIAL_BITS)
        if serial and serial not in _issued_serials:
            _issued_serials.add(serial)
            return serial


class CryptoService:
    """Generates keys, builds and signs certificates, and encodes the results."""

    def __init__(self, rsa_key_size: int = 2048, root_key_size: int = 3072):
        """
        Initialize crypto service.

        Args:
            rsa_key_size: Size of RSA leaf keys
            root_key_size: Size of the RSA root CA key
        """
        if root_key_size < rsa_key_size:
            raise ValueError("Root key must not be weaker than leaf keys")
        self.rsa_key_size = rsa_key_size
        self.root_key_size = root_key_size

    def generate_key(
        self,
        algorithm: KeyAlgorithm = KeyAlgorithm.RSA,
        key_size: Optional[int] = None,
        curve: ECDSACurve = ECDSACurve.P256,
    ) -> PrivateKey:
        """
        Generate a new private key.

        Args:
            algorithm: RSA or ECDSA
            key_size: RSA modulus size, defaults to the leaf size
            curve: ECDSA curve

        Returns:
            Private key object

        Raises:
            CertificateError: If key generation fails
        """
        try:
            if algorithm == KeyAlgorithm.ECDSA:
                return ec.generate_private_key(CURVES[curve]())
            return rsa.generate_private_key(public_exponent=65537, key_size=key_size or self.rsa_key_size)
        except Exception as e:
            raise CertificateError(f"Failed to generate {algorithm.value} key: {e}") from e

    def generate_root_key(self) -> PrivateKey:
        """Generate the long-lived RSA key of the root CA."""
        return self.generate_key(KeyAlgorithm.RSA, key_size=self.root_key_size)

    def build_root_certificate(
        self, key: PrivateKey, subject: Subject, serial_number: int, validity_days: int
    ) -> x509.Certificate:
        """
        Build a self-signed root CA certificate.

        Args:
            key: Root private key
            subject: Root subject
            serial_number: Certificate serial number
            validity_days: Lifetime in days

        Returns:
            Signed root certificate

        Raises:
            CertificateError: If building or signing fails
        """
        try:
            name = self._build_name(subject)
            now = datetime.now(timezone.utc)
            public_key = key.public_key()
            builder = (
                x509.CertificateBuilder()
                .subject_name(name)
                .issuer_name(name)
                .public_key(public_key)
                .serial_number(serial_number)
                .not_valid_before(now)
                .not_valid_after(now + timedelta(days=validity_days))
                .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
                .add_extension(self._key_usage(["keyCertSign", "cRLSign"]), critical=True)
                .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
            )
            return builder.sign(private_key=key, algorithm=hashes.SHA256())
        except Exception as e:
            raise CertificateError(f"Failed to build root certificate: {e}") from e

    def build_and_sign(
        self,
        params: CertificateParams,
        public_key,
        issuer_key: PrivateKey,
        issuer_cert: x509.Certificate,
    ) -> x509.Certificate:
        """
        Build a leaf certificate and sign it with the issuer's key.

        Args:
            params: Certificate parameters
            public_key: Public key to certify
            issuer_key: CA private key
            issuer_cert: CA certificate, whose subject becomes the issuer

        Returns:
            Signed certificate

        Raises:
            CertificateError: If building or signing fails
        """
        try:
            attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, params.organization)]
            if params.organizational_unit:
                attributes.append(x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, params.organizational_unit))
            attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, params.common_name[:64]))

            builder = (
                x509.CertificateBuilder()
                .subject_name(x509.Name(attributes))
                .issuer_name(issuer_cert.subject)
                .public_key(public_key)
                .serial_number(params.serial_number)
                .not_valid_before(params.not_before)
                .not_valid_after(params.not_after)
                .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
                .add_extension(self._key_usage(params.key_usage), critical=True)
                .add_extension(
                    x509.ExtendedKeyUsage([EKU_OIDS[name] for name in params.extended_key_usage]),
                    critical=False,
                )
                .add_extension(
                    x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_cert.public_key()),
                    critical=False,
                )
            )
            if params.sans:
                builder = builder.add_extension(
                    x509.SubjectAlternativeName([self.san_to_general_name(san) for san in params.sans]),
                    critical=False,
                )
            return builder.sign(private_key=issuer_key, algorithm=hashes.SHA256())
        except Exception as e:
            raise CertificateError(f"Failed to sign certificate for {params.common_name}: {e}") from e

    def encode_pkcs12(
        self,
        cert: x509.Certificate,
        key: PrivateKey,
        ca_cert: x509.Certificate,
        name: Optional[str] = None,
    ) -> bytes:
        """
        Bundle a leaf certificate, its key and the CA certificate.

        The container uses an empty password, as is customary for local
        development tooling.

        Args:
            cert: Leaf certificate
            key: Leaf private key
            ca_cert: CA certificate
            name: Optional friendly name

        Returns:
            DER-encoded PKCS12 bytes

        Raises:
            CertificateError: If encoding fails
        """
        try:
            return pkcs12.serialize_key_and_certificates(
                name=name.encode("utf-8") if name else None,
                key=key,
                cert=cert,
                cas=[ca_cert],
                encryption_algorithm=serialization.NoEncryption(),
            )
        except Exception as e:
            raise CertificateError(f"Failed to encode PKCS12 bundle: {e}") from e

    @staticmethod
    def san_to_general_name(entry: HostType) -> x509.GeneralName:
        """
        Map a SAN entry onto the matching X.509 GeneralName.

        Args:
            entry: Validated SAN entry

        Returns:
            GeneralName instance
        """
        if entry.kind == HostKind.IP:
            return x509.IPAddress(entry.ip)
        if entry.kind == HostKind.EMAIL:
            return x509.RFC822Name(entry.value)
        if entry.kind == HostKind.URI:
            return x509.UniformResourceIdentifier(entry.value)
        return x509.DNSName(entry.value)

    @staticmethod
    def key_to_pem(key: PrivateKey) -> bytes:
        """Serialize a private key as unencrypted PKCS8 PEM."""
        return key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @staticmethod
    def cert_to_pem(cert: x509.Certificate) -> bytes:
        """Serialize a certificate as PEM."""
        return cert.public_bytes(serialization.Encoding.PEM)

    @staticmethod
    def load_certificate(data: bytes) -> x509.Certificate:
        """
        Load a PEM certificate.

        Raises:
            CertificateError: If the data is not a valid certificate
        """
        try:
            return x509.load_pem_x509_certificate(data)
        except ValueError as e:
            raise CertificateError(f"Failed to load certificate: {e}") from e

    @staticmethod
    def load_private_key(data: bytes) -> PrivateKey:
        """
        Load an unencrypted PEM private key.

        Raises:
            CertificateError: If the data is not a supported private key
        """
        try:
            key = serialization.load_pem_private_key(data, password=None)
        except (ValueError, TypeError) as e:
            raise CertificateError(f"Failed to load private key: {e}") from e
        if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
            raise CertificateError(f"Unsupported private key type: {type(key).__name__}")
        return key

    @staticmethod
    def _build_name(subject: Subject) -> x509.Name:
        attributes = []
        if subject.organization:
            attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, subject.organization))
        if subject.organizational_unit:
            attributes.append(x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, subject.organizational_unit))
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, subject.common_name[:64]))
        return x509.Name(attributes)

    @staticmethod
    def _key_usage(names: list[str]) -> x509.KeyUsage:
        flags = {flag: False for flag in KEY_USAGE_FLAGS.values()}
        for name in names:
            flags[KEY_USAGE_FLAGS[name]] = True
        return x509.KeyUsage(encipher_only=False, decipher_only=False, **flags)
