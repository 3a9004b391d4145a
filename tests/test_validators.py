"""Tests for host classification and validation."""

import ipaddress
import logging

import pytest

from fastcert.errors import InvalidHostnameError
from fastcert.models.certificate import HostKind, HostType
from fastcert.utils.validators import (
    build_san_list,
    classify,
    domain_to_ascii,
    domain_to_unicode,
    sanitize_file_name,
    validate_email_address,
    validate_hostname,
    validate_ip_address,
    validate_uri,
    validate_wildcard_depth,
)


@pytest.mark.unit
class TestClassify:
    """Test raw host classification."""

    @pytest.mark.parametrize(
        "raw, kind",
        [
            ("127.0.0.1", HostKind.IP),
            ("::1", HostKind.IP),
            ("2001:db8::1", HostKind.IP),
            ("alice@example.com", HostKind.EMAIL),
            ("https://example.com/path", HostKind.URI),
            ("example.com", HostKind.DNS),
            ("localhost", HostKind.DNS),
            ("*.example.com", HostKind.DNS),
        ],
    )
    def test_classify(self, raw, kind):
        """Test each classification rule."""
        assert classify(raw).kind == kind

    def test_at_without_dot_is_dns(self):
        """Test that '@' alone does not make an email address."""
        assert classify("user@localhost").kind == HostKind.DNS

    def test_ip_is_canonicalized(self):
        """Test IPv6 literals are stored in canonical form."""
        entry = HostType.parse("2001:0db8:0000::0001")
        assert entry.value == "2001:db8::1"
        assert entry.ip == ipaddress.ip_address("2001:db8::1")

    def test_ip_property_rejects_other_kinds(self):
        """Test .ip is only defined for IP entries."""
        with pytest.raises(ValueError):
            HostType.parse("example.com").ip


@pytest.mark.unit
class TestHostnameValidation:
    """Test DNS name validation."""

    @pytest.mark.parametrize(
        "name",
        ["example", "example.com", "sub.example.com", "my-domain.com", "example123.com", "_srv.example.com", "EXAMPLE.COM"],
    )
    def test_valid_hostnames(self, name):
        """Test that ordinary host names are accepted."""
        validate_hostname(name)

    @pytest.mark.parametrize("name", ["invalid@hostname", "bad host", "example.com.", "exa$mple.com", ".example.com"])
    def test_invalid_hostnames(self, name):
        """Test that malformed host names are rejected."""
        with pytest.raises(InvalidHostnameError):
            validate_hostname(name)

    def test_empty_hostname(self):
        """Test that an empty host name is rejected."""
        with pytest.raises(InvalidHostnameError, match="empty"):
            validate_hostname("")

    def test_invalid_hostname_is_value_error(self):
        """Test the error can be caught as ValueError."""
        with pytest.raises(ValueError):
            validate_hostname("in valid")


@pytest.mark.unit
class TestWildcardDepth:
    """Test wildcard placement rules."""

    def test_single_leading_wildcard(self):
        """Test *.example.com is fine."""
        validate_wildcard_depth("*.example.com")

    def test_double_wildcard_rejected(self):
        """Test *.*.example.com is rejected."""
        with pytest.raises(InvalidHostnameError, match="single wildcard"):
            validate_wildcard_depth("*.*.example.com")

    def test_inner_wildcard_rejected(self):
        """Test a wildcard in a non-leading label is rejected."""
        with pytest.raises(InvalidHostnameError, match="leftmost"):
            validate_wildcard_depth("www.*.example.com")

    def test_partial_wildcard_rejected(self):
        """Test a wildcard mixed with other characters is rejected."""
        with pytest.raises(InvalidHostnameError):
            validate_wildcard_depth("w*.example.com")

    def test_second_level_wildcard_warns(self, caplog):
        """Test *.com style wildcards are accepted with a warning."""
        with caplog.at_level(logging.WARNING, logger="fastcert"):
            validate_wildcard_depth("*.local")
        assert "second-level wildcards" in caplog.text


@pytest.mark.unit
class TestOtherValidators:
    """Test email, URI and IP validation."""

    @pytest.mark.parametrize("address", ["user@example.com", "user+tag@example.com", "user@sub.example.com"])
    def test_valid_emails(self, address):
        """Test well-formed addresses."""
        validate_email_address(address)

    @pytest.mark.parametrize("address", ["", "invalid-email", "nodomain.com", "@example.com", "user@example", "a b@example.com"])
    def test_invalid_emails(self, address):
        """Test malformed addresses."""
        with pytest.raises(InvalidHostnameError):
            validate_email_address(address)

    @pytest.mark.parametrize(
        "uri",
        ["http://example.com", "https://example.com", "https://example.com/path/to/resource", "https://example.com:8443"],
    )
    def test_valid_uris(self, uri):
        """Test URIs with scheme and host."""
        validate_uri(uri)

    @pytest.mark.parametrize("uri", ["://example.com", "https://", "https://example .com"])
    def test_invalid_uris(self, uri):
        """Test URIs missing a scheme or host, or containing spaces."""
        with pytest.raises(InvalidHostnameError):
            validate_uri(uri)

    @pytest.mark.parametrize("address", ["127.0.0.1", "::1", "2001:db8::1", ipaddress.ip_address("10.0.0.1")])
    def test_valid_ips(self, address):
        """Test IPv4 and IPv6 literals."""
        validate_ip_address(address)

    def test_invalid_ip(self):
        """Test non-IP strings are rejected."""
        with pytest.raises(InvalidHostnameError):
            validate_ip_address("999.1.1.1")


@pytest.mark.unit
class TestIDN:
    """Test internationalized domain name conversion."""

    def test_ascii_passes_through(self):
        """Test ASCII names are unchanged both ways."""
        assert domain_to_ascii("example.com") == "example.com"
        assert domain_to_unicode("example.com") == "example.com"

    def test_unicode_to_punycode(self):
        """Test Unicode labels are Punycode encoded."""
        assert domain_to_ascii("münchen.example") == "xn--mnchen-3ya.example"

    def test_punycode_to_unicode(self):
        """Test xn-- labels are decoded for display."""
        assert domain_to_unicode("xn--mnchen-3ya.example") == "münchen.example"

    def test_idn_host_in_san_list(self):
        """Test IDN hosts end up as Punycode DNS names."""
        sans = build_san_list(["münchen.example"])
        assert sans == [HostType(kind=HostKind.DNS, value="xn--mnchen-3ya.example")]

    def test_idn_email_domain_is_encoded(self):
        """Test the domain part of an email address is Punycode encoded."""
        sans = build_san_list(["user@münchen.example"])
        assert sans == [HostType(kind=HostKind.EMAIL, value="user@xn--mnchen-3ya.example")]

    def test_non_ascii_email_local_part_rejected(self):
        """Test a Unicode local part is reported as an invalid host."""
        with pytest.raises(InvalidHostnameError, match="local part"):
            build_san_list(["üser@example.com"])

    def test_idn_uri_host_is_encoded(self):
        """Test the host of a URI is Punycode encoded and the rest kept."""
        sans = build_san_list(["https://münchen.example:8443/path"])
        assert sans == [HostType(kind=HostKind.URI, value="https://xn--mnchen-3ya.example:8443/path")]

    def test_non_ascii_uri_path_rejected(self):
        """Test non-ASCII outside the host must be percent-encoded."""
        with pytest.raises(InvalidHostnameError, match="non-ASCII"):
            build_san_list(["https://example.com/straße"])

    def test_validators_require_ascii(self):
        """Test the plain validators refuse unencoded input."""
        with pytest.raises(InvalidHostnameError):
            validate_email_address("user@münchen.example")
        with pytest.raises(InvalidHostnameError):
            validate_uri("https://münchen.example/")


@pytest.mark.unit
class TestBuildSanList:
    """Test SAN list construction."""

    def test_mixed_hosts_preserve_order(self):
        """Test every kind is classified and order is kept."""
        hosts = ["example.com", "127.0.0.1", "::1", "alice@example.com", "https://example.com"]
        sans = build_san_list(hosts)

        assert [san.kind for san in sans] == [
            HostKind.DNS,
            HostKind.IP,
            HostKind.IP,
            HostKind.EMAIL,
            HostKind.URI,
        ]
        assert [str(san) for san in sans] == hosts

    def test_ipv6_hosts(self):
        """Test IPv6-only lists."""
        assert len(build_san_list(["::1", "2001:db8::1"])) == 2

    def test_first_invalid_host_aborts(self):
        """Test one bad entry fails the whole list."""
        with pytest.raises(InvalidHostnameError, match="bad host"):
            build_san_list(["example.com", "bad host", "also bad!"])

    def test_empty_list(self):
        """Test an empty list yields no entries."""
        assert build_san_list([]) == []


@pytest.mark.unit
class TestSanitizeFileName:
    """Test output file name derivation."""

    @pytest.mark.parametrize(
        "host, expected",
        [
            ("example.com", "example.com"),
            ("*.wildcard.local", "_wildcard.wildcard.local"),
            ("::1", "__1"),
            ("alice@example.com", "alice@example.com"),
            ("https://example.com/x", "https___example.com_x"),
            ("münchen.example", "xn--mnchen-3ya.example"),
            ("*.münchen.example", "_wildcard.xn--mnchen-3ya.example"),
            ("user@münchen.example", "user@xn--mnchen-3ya.example"),
        ],
    )
    def test_sanitize(self, host, expected):
        """Test unsafe characters are replaced."""
        assert sanitize_file_name(host) == expected

    def test_distinct_idns_get_distinct_names(self):
        """Test Unicode names that differ only in non-ASCII letters do not collide."""
        assert sanitize_file_name("münchen.example") != sanitize_file_name("mänchen.example")
