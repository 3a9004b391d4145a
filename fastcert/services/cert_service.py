"""Leaf certificate issuance service."""

import logging
import ssl
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Sequence

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from fastcert.errors import CertificateError, FastcertIOError
from fastcert.models.ca import KeyAlgorithm
from fastcert.models.certificate import (
    CLIENT_EXTENDED_KEY_USAGE,
    SERVER_EXTENDED_KEY_USAGE,
    CertificateConfig,
    CertificateParams,
    HostType,
    IssuedCertificate,
)
from fastcert.models.config import CertificateSettings
from fastcert.services.ca_service import CertificateAuthority, user_and_hostname
from fastcert.services.crypto_service import CryptoService, generate_serial_number
from fastcert.services.parser_service import CertificateParser
from fastcert.utils.file_utils import PRIVATE_FILE_MODE, PUBLIC_FILE_MODE, FileUtils
from fastcert.utils.validators import build_san_list, domain_to_unicode, sanitize_file_name

logger = logging.getLogger("fastcert")

CERT_VALIDITY_DAYS = 820


def calculate_cert_expiration(now: Optional[datetime] = None, days: int = CERT_VALIDITY_DAYS) -> datetime:
    """
    Compute the notAfter of a certificate issued at ``now``.

    Args:
        now: Issuance time, defaults to the current UTC time
        days: Validity in days

    Returns:
        Expiration timestamp
    """
    now = now or datetime.now(timezone.utc)
    return now + timedelta(days=days)


def is_cert_expiring_soon(not_after: datetime, days: int = 30) -> bool:
    """Whether ``not_after`` falls within the next ``days`` days (or has passed)."""
    now = datetime.now(timezone.utc) if not_after.tzinfo else datetime.now()
    return not_after - now <= timedelta(days=days)


def format_expiration_date(dt: datetime) -> str:
    """
    Render a date for humans.

    Example:
        >>> format_expiration_date(datetime(2029, 1, 17))
        '17 January 2029'
    """
    return f"{dt.day} {dt.strftime('%B %Y')}"


def cert_to_pem(der_bytes: bytes) -> str:
    """Wrap DER bytes in PEM ``CERTIFICATE`` armor."""
    return ssl.DER_cert_to_PEM_cert(der_bytes)


def validate_cert_chain(cert_der: bytes, ca_der: bytes) -> None:
    """
    Check that a leaf certificate was issued by the given CA.

    Args:
        cert_der: DER-encoded leaf certificate
        ca_der: DER-encoded CA certificate

    Raises:
        CertificateError: If either certificate cannot be parsed, the issuer
            does not match, the CA is not a CA, or the signature is invalid
    """
    try:
        cert = x509.load_der_x509_certificate(cert_der)
        ca_cert = x509.load_der_x509_certificate(ca_der)
    except ValueError as e:
        raise CertificateError(f"Failed to parse certificate: {e}") from e

    if cert.issuer != ca_cert.subject:
        raise CertificateError("Certificate issuer does not match CA subject")
    if not CertificateParser._is_ca(ca_cert):
        raise CertificateError("Issuer certificate does not have CA:TRUE in Basic Constraints")
    CertificateParser.verify_signature(cert, ca_cert)


def generate_file_names(config: CertificateConfig, output_dir: Optional[Path] = None) -> tuple[Path, Path, Path]:
    """
    Work out where the certificate, key and PKCS12 bundle go.

    Explicit paths in ``config`` win; the rest derive from the first host,
    with ``+N`` appended when the certificate covers N extra hosts.

    Args:
        config: Certificate request
        output_dir: Directory for derived names, defaults to the working directory

    Returns:
        Tuple of (cert_path, key_path, p12_path)
    """
    output_dir = output_dir if output_dir is not None else Path.cwd()

    base = sanitize_file_name(config.hosts[0]) if config.hosts else "cert"
    if len(config.hosts) > 1:
        base += f"+{len(config.hosts) - 1}"

    cert_path = Path(config.cert_file) if config.cert_file else output_dir / f"{base}.pem"
    key_path = Path(config.key_file) if config.key_file else output_dir / f"{base}-key.pem"
    p12_path = Path(config.p12_file) if config.p12_file else output_dir / f"{base}.p12"
    return cert_path, key_path, p12_path


def create_cert_params(
    hosts: Sequence[str],
    is_client_cert: bool = False,
    key_algorithm: KeyAlgorithm = KeyAlgorithm.RSA,
    now: Optional[datetime] = None,
    validity_days: int = CERT_VALIDITY_DAYS,
) -> CertificateParams:
    """
    Build the parameters of a leaf certificate without signing anything.

    Args:
        hosts: Raw host strings, first one becomes the common name
        is_client_cert: Issue for TLS client authentication instead of server
        key_algorithm: Algorithm of the key being certified
        now: Issuance time
        validity_days: Certificate lifetime

    Returns:
        Validated certificate parameters

    Raises:
        CertificateError: If no hosts are given
        InvalidHostnameError: If any host is invalid
    """
    if not hosts:
        raise CertificateError("At least one host is required")

    sans = build_san_list(list(hosts))
    not_before = now or datetime.now(timezone.utc)

    key_usage = ["digitalSignature"]
    if key_algorithm == KeyAlgorithm.RSA:
        key_usage.append("keyEncipherment")

    return CertificateParams(
        common_name=str(sans[0])[:64],
        organizational_unit=user_and_hostname(),
        sans=sans,
        not_before=not_before,
        not_after=calculate_cert_expiration(not_before, validity_days),
        serial_number=generate_serial_number(),
        key_usage=key_usage,
        extended_key_usage=(CLIENT_EXTENDED_KEY_USAGE if is_client_cert else SERVER_EXTENDED_KEY_USAGE).copy(),
    )


def read_csr_file(path) -> bytes:
    """
    Read a CSR file, ``-`` meaning standard input.

    Raises:
        FastcertIOError: If the file cannot be read
    """
    try:
        if str(path) == "-":
            return sys.stdin.buffer.read()
        return FileUtils.read_binary_file(Path(path))
    except OSError as e:
        raise FastcertIOError(f"Failed to read CSR {path}: {e}") from e


def parse_csr_pem(data: bytes) -> x509.CertificateSigningRequest:
    """
    Parse and verify a PEM certificate signing request.

    Args:
        data: PEM bytes

    Returns:
        The request, with a verified self-signature

    Raises:
        CertificateError: If the data is not a PEM CSR or its signature is invalid
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CertificateError("CSR is not valid UTF-8") from e
    if "-----BEGIN CERTIFICATE REQUEST-----" not in text and "-----BEGIN NEW CERTIFICATE REQUEST-----" not in text:
        raise CertificateError("CSR has no PEM CERTIFICATE REQUEST block")

    try:
        csr = x509.load_pem_x509_csr(data)
    except ValueError as e:
        raise CertificateError(f"Failed to parse CSR: {e}") from e
    if not csr.is_signature_valid:
        raise CertificateError("CSR signature is invalid")
    return csr


def csr_hosts(csr: x509.CertificateSigningRequest) -> list[str]:
    """
    Host strings carried by a CSR's SAN extension, in order.

    Raises:
        CertificateError: If the CSR has no SAN extension or it is empty
    """
    try:
        san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound as e:
        raise CertificateError("CSR carries no Subject Alternative Names") from e

    hosts = [str(name.value) for name in san]
    if not hosts:
        raise CertificateError("CSR carries no Subject Alternative Names")
    return hosts


class CertificateService:
    """Service issuing leaf certificates from the local CA."""

    def __init__(
        self,
        ca: CertificateAuthority,
        crypto: Optional[CryptoService] = None,
        settings: Optional[CertificateSettings] = None,
        output_dir: Optional[Path] = None,
    ):
        """
        Initialize certificate service.

        Args:
            ca: CA manager used for signing
            crypto: Crypto backend, defaults to the CA's
            settings: Issuance settings
            output_dir: Directory for default output names, defaults to the
                working directory at call time
        """
        self.ca = ca
        self.crypto = crypto or ca.crypto
        self.settings = settings or CertificateSettings()
        self.output_dir = output_dir

    def generate_certificate(
        self,
        hosts: Sequence[str],
        cert_path: Optional[str] = None,
        key_path: Optional[str] = None,
        p12_path: Optional[str] = None,
        is_client_cert: bool = False,
        use_ecdsa: bool = False,
        export_pkcs12: bool = False,
    ) -> IssuedCertificate:
        """
        Issue a certificate for the given hosts and write it to disk.

        Args:
            hosts: Raw host strings (DNS names, IPs, emails, URIs)
            cert_path: Certificate output path
            key_path: Key output path; equal to cert_path for a combined file
            p12_path: PKCS12 output path
            is_client_cert: Issue a client instead of a server certificate
            use_ecdsa: Use an ECDSA P-256 key instead of RSA
            export_pkcs12: Also write a PKCS12 bundle

        Returns:
            Description of the issued certificate

        Raises:
            CertificateError: If no hosts are given or crypto work fails
            InvalidHostnameError: If a host is invalid
            CARootNotFoundError: If the CA certificate is missing
            CAKeyMissingError: If the CA key is missing
            FastcertIOError: If output files cannot be written
        """
        config = CertificateConfig(
            hosts=list(hosts),
            cert_file=cert_path,
            key_file=key_path,
            p12_file=p12_path,
            client_cert=is_client_cert,
            use_ecdsa=use_ecdsa,
            pkcs12=export_pkcs12,
        )
        params = create_cert_params(
            config.hosts,
            is_client_cert=config.client_cert,
            key_algorithm=config.key_algorithm,
            validity_days=self.settings.validity_days,
        )

        self.ca.ensure_ready()
        key = self.crypto.generate_key(config.key_algorithm)
        cert = self.ca.sign(params, key.public_key())

        cert_file, key_file, p12_file = generate_file_names(config, self.output_dir)
        self._write_outputs(config, cert, key, cert_file, key_file, p12_file)

        self._log_issued(params, cert_file, key_file, p12_file if config.pkcs12 else None)
        return self._build_result(cert, params.sans, config, cert_file, key_file, p12_file)

    def sign_csr(self, csr_path, cert_path: Optional[str] = None) -> IssuedCertificate:
        """
        Issue a certificate for the public key and SANs of a CSR.

        Args:
            csr_path: CSR file, or ``-`` for standard input
            cert_path: Certificate output path, derived from the SANs if omitted

        Returns:
            Description of the issued certificate (``key_path`` is empty)

        Raises:
            FastcertIOError: If the CSR cannot be read or the certificate written
            CertificateError: If the CSR is invalid or has no SANs
            InvalidHostnameError: If a SAN is invalid
        """
        csr = parse_csr_pem(read_csr_file(csr_path))
        hosts = csr_hosts(csr)

        public_key = csr.public_key()
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            algorithm = KeyAlgorithm.ECDSA
        elif isinstance(public_key, rsa.RSAPublicKey):
            algorithm = KeyAlgorithm.RSA
        else:
            raise CertificateError(f"Unsupported CSR key type: {type(public_key).__name__}")

        params = create_cert_params(hosts, key_algorithm=algorithm, validity_days=self.settings.validity_days)

        self.ca.ensure_ready()
        cert = self.ca.sign(params, public_key)

        config = CertificateConfig(hosts=hosts, cert_file=cert_path)
        cert_file, _, _ = generate_file_names(config, self.output_dir)
        try:
            FileUtils.write_binary_files([(cert_file, self.crypto.cert_to_pem(cert), PUBLIC_FILE_MODE)])
        except OSError as e:
            raise FastcertIOError(f"Failed to write certificate {cert_file}: {e}") from e

        self._log_issued(params, cert_file, None, None)
        return self._build_result(cert, params.sans, config, cert_file, None, None)

    def _write_outputs(self, config, cert, key, cert_file: Path, key_file: Path, p12_file: Path) -> None:
        """Write all requested files, or none of them if any write fails."""
        cert_pem = self.crypto.cert_to_pem(cert)
        key_pem = self.crypto.key_to_pem(key)

        outputs = []
        if cert_file == key_file:
            outputs.append((cert_file, cert_pem + key_pem, PRIVATE_FILE_MODE))
        else:
            outputs.append((cert_file, cert_pem, PUBLIC_FILE_MODE))
            outputs.append((key_file, key_pem, PRIVATE_FILE_MODE))
        if config.pkcs12:
            p12 = self.crypto.encode_pkcs12(cert, key, self.ca.certificate, name=config.hosts[0])
            outputs.append((p12_file, p12, PRIVATE_FILE_MODE))

        try:
            FileUtils.write_binary_files(outputs)
        except OSError as e:
            raise FastcertIOError(f"Failed to write certificate files for {config.hosts[0]}: {e}") from e

    def _build_result(
        self,
        cert: x509.Certificate,
        sans: list[HostType],
        config: CertificateConfig,
        cert_file: Path,
        key_file: Optional[Path],
        p12_file: Optional[Path],
    ) -> IssuedCertificate:
        return IssuedCertificate(
            cert_path=str(cert_file),
            key_path=str(key_file) if key_file else "",
            p12_path=str(p12_file) if p12_file and config.pkcs12 else None,
            serial_number=format(cert.serial_number, "X"),
            sans=[str(san) for san in sans],
            not_after=cert.not_valid_after_utc,
            key_algorithm=config.key_algorithm,
            client_cert=config.client_cert,
            issuer=cert.issuer.rfc4514_string(),
        )

    @staticmethod
    def _log_issued(params: CertificateParams, cert_file: Path, key_file: Optional[Path], p12_file: Optional[Path]) -> None:
        names = ", ".join(domain_to_unicode(str(san)) for san in params.sans)
        logger.info(f"Created a new certificate valid for: {names}")
        if p12_file:
            logger.info(f"The PKCS#12 bundle is at {p12_file}")
        if key_file is None:
            logger.info(f"The certificate is at {cert_file}")
        elif key_file == cert_file:
            logger.info(f"The certificate and key are at {cert_file}")
        else:
            logger.info(f"The certificate is at {cert_file} and the key at {key_file}")
        logger.info(f"It will expire on {format_expiration_date(params.not_after)}")
