"""Configuration loading and service wiring."""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import ValidationError

from fastcert.errors import FastcertError
from fastcert.models.config import AppConfig
from fastcert.services.ca_service import CertificateAuthority
from fastcert.services.cert_service import CertificateService
from fastcert.services.crypto_service import CryptoService
from fastcert.services.truststore_service import TrustStoreService
from fastcert.services.yaml_service import YAMLService
from fastcert.truststore.command import CommandRunner

logger = logging.getLogger("fastcert")


def _flag(environ: Mapping[str, str], name: str) -> bool:
    """Environment flags count as set when present and not explicitly false."""
    value = environ.get(name)
    return value is not None and value.strip().lower() not in ("0", "false", "no", "off")


def get_config(config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """
    Get application configuration.

    Values come from, in increasing precedence: model defaults, the YAML file
    (``config_path`` or ``$FASTCERT_CONFIG``), then environment overrides.

    Args:
        config_path: Optional YAML configuration file
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        Application configuration

    Raises:
        FastcertError: If the file is missing or the configuration is invalid
    """
    environ = os.environ if environ is None else environ

    if config_path is None and environ.get("FASTCERT_CONFIG"):
        config_path = Path(environ["FASTCERT_CONFIG"])

    data: dict = {}
    if config_path is not None:
        try:
            data = YAMLService.load_yaml(Path(config_path))
        except FileNotFoundError as e:
            raise FastcertError(str(e)) from e

    def section(name: str) -> dict:
        value = data.get(name)
        if value is None:
            value = data[name] = {}
        return value

    if environ.get("CAROOT"):
        section("paths")["caroot"] = environ["CAROOT"]
    if environ.get("TRUST_STORES"):
        section("truststore")["targets"] = environ["TRUST_STORES"]
    if environ.get("JAVA_HOME"):
        section("truststore").setdefault("java_home", environ["JAVA_HOME"])
    if environ.get("FASTCERT_FORMAT"):
        section("output")["format"] = environ["FASTCERT_FORMAT"].strip().lower()

    if _flag(environ, "FASTCERT_DEBUG") or _flag(environ, "FASTCERT_VERBOSE"):
        section("logging")["level"] = "DEBUG"
    elif _flag(environ, "FASTCERT_QUIET"):
        section("logging")["level"] = "WARNING"

    try:
        return AppConfig(**data)
    except ValidationError as e:
        raise FastcertError(f"Invalid configuration: {e}") from e


def get_crypto_service(config: AppConfig) -> CryptoService:
    """
    Get crypto backend instance.

    Returns:
        Crypto service
    """
    return CryptoService(
        rsa_key_size=config.certificates.rsa_key_size,
        root_key_size=config.certificates.root_key_size,
    )


def get_ca_service(config: AppConfig) -> CertificateAuthority:
    """
    Get CA manager instance.

    Returns:
        CA manager for the configured root directory
    """
    return CertificateAuthority(
        Path(config.paths.caroot),
        get_crypto_service(config),
        settings=config.certificates,
    )


def get_cert_service(config: AppConfig, ca: Optional[CertificateAuthority] = None) -> CertificateService:
    """
    Get certificate service instance.

    Returns:
        Certificate service
    """
    ca = ca or get_ca_service(config)
    return CertificateService(ca, settings=config.certificates)


def get_truststore_service(
    config: AppConfig,
    ca: Optional[CertificateAuthority] = None,
    runner: Optional[CommandRunner] = None,
) -> TrustStoreService:
    """
    Get trust store service instance.

    Returns:
        Trust store dispatcher
    """
    ca = ca or get_ca_service(config)
    return TrustStoreService(ca, settings=config.truststore, runner=runner)
