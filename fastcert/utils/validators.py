"""Host classification and SAN validation."""

import ipaddress
import logging
import re
from typing import Union
from urllib.parse import urlsplit, urlunsplit

from fastcert.errors import InvalidHostnameError
from fastcert.models.certificate import HostKind, HostType

logger = logging.getLogger("fastcert")

# Optional leading wildcard label, then alphanumerics, hyphens, underscores and dots
HOSTNAME_PATTERN = re.compile(r"^(\*\.)?[0-9a-z_-]([0-9a-z._-]*[0-9a-z_-])?$")

# Characters kept verbatim in default output file names
UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9._@+-]")


def classify(raw: str) -> HostType:
    """
    Classify a raw host string into a SAN entry without validating it.

    Args:
        raw: Host string

    Returns:
        Classified entry
    """
    return HostType.parse(raw)


def validate_hostname(name: str) -> None:
    """
    Validate a DNS name, optionally with a single leading wildcard label.

    Args:
        name: ASCII host name

    Raises:
        InvalidHostnameError: If the name is empty or has invalid characters
    """
    if not name:
        raise InvalidHostnameError("Hostname cannot be empty")
    if not HOSTNAME_PATTERN.match(name.lower()):
        raise InvalidHostnameError(f"{name!r} is not a valid hostname")


def validate_wildcard_depth(name: str) -> None:
    """
    Ensure at most one wildcard label is used, and only in leading position.

    Args:
        name: Host name

    Raises:
        InvalidHostnameError: For ``*.*.example.com`` and similar names

    Example:
        >>> validate_wildcard_depth("*.example.com")
    """
    labels = name.split(".")
    wildcards = [i for i, label in enumerate(labels) if "*" in label]
    if len(wildcards) > 1:
        raise InvalidHostnameError(f"{name!r}: only a single wildcard label is supported")
    if wildcards and (wildcards[0] != 0 or labels[0] != "*"):
        raise InvalidHostnameError(f"{name!r}: a wildcard is only allowed as the leftmost label")
    if wildcards and len(labels) < 3:
        logger.warning(f"Many browsers don't support second-level wildcards like {name!r}")


def validate_email_address(address: str) -> None:
    """
    Check an email address has a non-empty local part and a dotted domain.

    The address must be ASCII; run it through ``email_to_ascii`` first to
    encode an internationalized domain part.

    Args:
        address: Email address

    Raises:
        InvalidHostnameError: If the address is malformed or not ASCII
    """
    if not address or any(c.isspace() for c in address):
        raise InvalidHostnameError(f"{address!r} is not a valid email address")

    local, sep, domain = address.rpartition("@")
    if not sep or not local:
        raise InvalidHostnameError(f"{address!r} is not a valid email address")
    if not local.isascii():
        raise InvalidHostnameError(f"{address!r}: non-ASCII local parts are not supported")
    if not domain.isascii():
        raise InvalidHostnameError(f"{address!r} has a non-ASCII domain part")
    if "." not in domain or domain.startswith(".") or domain.endswith(".") or ".." in domain:
        raise InvalidHostnameError(f"{address!r} has an invalid domain part")


def validate_uri(uri: str) -> None:
    """
    Check a URI has a scheme and a whitespace-free host.

    Args:
        uri: URI string, with an internationalized host already converted by
            ``uri_to_ascii``

    Raises:
        InvalidHostnameError: If the scheme or host is missing or malformed,
            or the URI is not ASCII
    """
    if not uri.isascii():
        raise InvalidHostnameError(f"{uri!r} contains non-ASCII characters; percent-encode them")

    try:
        parts = urlsplit(uri)
    except ValueError as e:
        raise InvalidHostnameError(f"{uri!r} is not a valid URI: {e}") from e

    if not parts.scheme:
        raise InvalidHostnameError(f"{uri!r} has no scheme")
    host = parts.hostname
    if not host:
        raise InvalidHostnameError(f"{uri!r} has no host")
    if any(c.isspace() for c in uri):
        raise InvalidHostnameError(f"{uri!r} contains whitespace")


def validate_ip_address(address: Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]) -> None:
    """
    Check that a value is an IPv4 or IPv6 literal.

    Args:
        address: Address string or ipaddress object

    Raises:
        InvalidHostnameError: If the value is not an IP address
    """
    try:
        ipaddress.ip_address(address)
    except ValueError as e:
        raise InvalidHostnameError(f"{address!r} is not a valid IP address") from e


def domain_to_ascii(name: str) -> str:
    """
    Convert an internationalized domain name to its Punycode form.

    ASCII names are returned unchanged.

    Args:
        name: Domain name

    Returns:
        ASCII-compatible domain name

    Raises:
        InvalidHostnameError: If a label cannot be encoded
    """
    if name.isascii():
        return name

    labels = []
    for label in name.split("."):
        if label.isascii():
            labels.append(label)
            continue
        try:
            labels.append(label.encode("idna").decode("ascii"))
        except UnicodeError as e:
            raise InvalidHostnameError(f"{name!r} cannot be converted to ASCII: {e}") from e
    return ".".join(labels)


def domain_to_unicode(name: str) -> str:
    """
    Convert Punycode labels back to Unicode for display.

    Labels that are not valid Punycode are left as they are.

    Example:
        >>> domain_to_unicode("xn--e1afmkfd.xn--p1ai")
        'пример.рф'
    """
    labels = []
    for label in name.split("."):
        if label.lower().startswith("xn--"):
            try:
                label = label.encode("ascii").decode("idna")
            except UnicodeError:
                pass
        labels.append(label)
    return ".".join(labels)


def email_to_ascii(address: str) -> str:
    """Punycode the domain part of an email address, leaving the local part as is."""
    local, sep, domain = address.rpartition("@")
    if not sep:
        return address
    return f"{local}@{domain_to_ascii(domain)}"


def uri_to_ascii(uri: str) -> str:
    """
    Punycode the host of a URI.

    Userinfo, port, path and query are kept verbatim.

    Example:
        >>> uri_to_ascii("https://münchen.example:8443/")
        'https://xn--mnchen-3ya.example:8443/'
    """
    try:
        parts = urlsplit(uri)
    except ValueError as e:
        raise InvalidHostnameError(f"{uri!r} is not a valid URI: {e}") from e

    userinfo, at, hostport = parts.netloc.rpartition("@")
    if hostport.isascii():
        return uri
    host, colon, port = hostport.partition(":")
    return urlunsplit(parts._replace(netloc=f"{userinfo}{at}{domain_to_ascii(host)}{colon}{port}"))


def host_to_ascii(entry: HostType) -> str:
    """
    ASCII form of a classified entry as it goes into a certificate.

    Raises:
        InvalidHostnameError: If an internationalized domain cannot be encoded
    """
    if entry.kind == HostKind.EMAIL:
        return email_to_ascii(entry.value)
    if entry.kind == HostKind.URI:
        return uri_to_ascii(entry.value)
    if entry.kind == HostKind.DNS:
        return domain_to_ascii(entry.value)
    return entry.value


def validate_host(entry: HostType) -> HostType:
    """
    Validate a classified entry and return its normalized form.

    Internationalized domains in DNS names, email domains and URI hosts are
    converted to Punycode before validation; IP addresses are rendered in
    their canonical form.

    Args:
        entry: Classified SAN entry

    Returns:
        Entry ready to be embedded in a certificate

    Raises:
        InvalidHostnameError: If the entry is invalid for its kind
    """
    if entry.kind == HostKind.IP:
        validate_ip_address(entry.value)
        return entry

    value = host_to_ascii(entry)
    if entry.kind == HostKind.EMAIL:
        validate_email_address(value)
    elif entry.kind == HostKind.URI:
        validate_uri(value)
    else:
        validate_hostname(value)
        validate_wildcard_depth(value)
    return HostType(kind=entry.kind, value=value)


def build_san_list(hosts: list[str]) -> list[HostType]:
    """
    Classify and validate every host, preserving input order.

    Args:
        hosts: Raw host strings

    Returns:
        Validated SAN entries

    Raises:
        InvalidHostnameError: On the first invalid host
    """
    return [validate_host(classify(host)) for host in hosts]


def sanitize_file_name(host: str) -> str:
    """
    Turn a host string into something usable as a file name.

    Internationalized domains are named by their Punycode form so distinct
    names never collapse to the same file.

    Example:
        >>> sanitize_file_name("*.example.com")
        '_wildcard.example.com'
    """
    try:
        name = host_to_ascii(classify(host))
    except InvalidHostnameError:
        name = host
    name = name.replace("*", "_wildcard")
    return UNSAFE_FILE_CHARS.sub("_", name)
