"""Tests for certificate inspection."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric import ec

from fastcert.errors import CertificateError
from fastcert.services.ca_service import CertificateAuthority
from fastcert.services.parser_service import CertificateParser


@pytest.mark.unit
class TestParseCertificate:
    """Test parsing certificates from disk."""

    def test_parse_root(self, ca_cert_file, ca):
        """Test the root CA fields."""
        data = CertificateParser.parse_certificate(ca_cert_file)

        assert data["is_ca"] is True
        assert data["subject"] == data["issuer"]
        assert data["subject"]["organization"] == "fastcert development CA"
        assert data["public_key_algorithm"] == "RSA"
        assert data["public_key_size"] == 3072
        assert data["key_usage"] == ["keyCertSign", "cRLSign"]
        assert data["extended_key_usage"] == []
        assert data["sans"] == []
        assert data["fingerprint_sha256"] == ca.fingerprint_sha256()

    def test_parse_leaf(self, cert_service):
        """Test an ECDSA leaf."""
        issued = cert_service.generate_certificate(["example.com", "127.0.0.1"], use_ecdsa=True)
        data = CertificateParser.parse_certificate(Path(issued.cert_path))

        assert data["is_ca"] is False
        assert data["subject"]["common_name"] == "example.com"
        assert data["public_key_algorithm"] == "ECDSA"
        assert data["public_key_curve"] == "P-256"
        assert data["sans"] == ["example.com", "127.0.0.1"]
        assert data["extended_key_usage"] == ["serverAuth"]
        assert data["serial_number"] == issued.serial_number

    def test_missing_file(self, tmp_path):
        """Test a missing certificate file."""
        with pytest.raises(FileNotFoundError):
            CertificateParser.parse_certificate(tmp_path / "nope.pem")

    def test_invalid_file(self, tmp_path):
        """Test a file that is not a certificate."""
        path = tmp_path / "bad.pem"
        path.write_text("not a certificate")

        with pytest.raises(CertificateError):
            CertificateParser.parse_certificate(path)


@pytest.mark.unit
class TestValidityStatus:
    """Test validity classification."""

    def test_statuses(self):
        """Test every status bucket."""
        now = datetime.now(timezone.utc)

        assert CertificateParser.get_validity_status(now - timedelta(days=1), now + timedelta(days=365))[0] == "valid"
        assert CertificateParser.get_validity_status(now - timedelta(days=1), now + timedelta(days=10))[0] == "expiring"
        assert CertificateParser.get_validity_status(now - timedelta(days=30), now - timedelta(days=1))[0] == "expired"
        assert CertificateParser.get_validity_status(now + timedelta(days=1), now + timedelta(days=30))[0] == "not_yet_valid"


@pytest.mark.unit
class TestVerification:
    """Test key pair and signature checks."""

    def test_key_pair_mismatch(self, ca):
        """Test a foreign key does not match."""
        other = ec.generate_private_key(ec.SECP256R1())
        assert CertificateParser.verify_key_pair(ca.certificate, ca.key)
        assert not CertificateParser.verify_key_pair(ca.certificate, other)

    def test_signature_from_wrong_issuer(self, cert_service, ca, tmp_path, crypto_service):
        """Test a leaf does not verify against another CA."""
        issued = cert_service.generate_certificate(["example.com"])
        leaf = ca.crypto.load_certificate(Path(issued.cert_path).read_bytes())
        other_ca = CertificateAuthority(tmp_path / "other", crypto_service)

        CertificateParser.verify_signature(leaf, ca.certificate)
        with pytest.raises(CertificateError, match="does not verify"):
            CertificateParser.verify_signature(leaf, other_ca.certificate)

    def test_get_cn(self, ca):
        """Test CN lookup."""
        assert CertificateParser.get_cn(ca.certificate).startswith("fastcert ")
