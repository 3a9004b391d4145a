"""Command-line entry point."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from fastcert import __version__
from fastcert.dependencies import get_ca_service, get_cert_service, get_config, get_truststore_service
from fastcert.errors import FastcertError, TrustStoreError
from fastcert.models.config import AppConfig
from fastcert.models.truststore import TrustStoreResult
from fastcert.services.yaml_service import YAMLService
from fastcert.utils.logger import setup_logger

logger = logging.getLogger("fastcert")

EXIT_OK = 0
EXIT_FAILURE = 1

EPILOG = """examples:
  fastcert example.com localhost 127.0.0.1 ::1
  fastcert "*.example.test"
  fastcert --client alice@example.com
  fastcert --csr request.csr
  fastcert --install
"""


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser.

    Returns:
        Configured parser
    """
    parser = argparse.ArgumentParser(
        prog="fastcert",
        description="Create locally-trusted development certificates.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("hosts", nargs="*", metavar="HOST", help="DNS name, IP address, email address or URI")

    issue = parser.add_argument_group("certificate options")
    issue.add_argument("--cert-file", metavar="FILE", help="certificate output path")
    issue.add_argument("--key-file", metavar="FILE", help="private key output path")
    issue.add_argument("--p12-file", metavar="FILE", help="PKCS#12 output path (implies --pkcs12)")
    issue.add_argument("--client", action="store_true", help="issue a client authentication certificate")
    issue.add_argument("--ecdsa", action="store_true", help="use an ECDSA P-256 key instead of RSA")
    issue.add_argument("--pkcs12", action="store_true", help="also write a PKCS#12 bundle")
    issue.add_argument("--csr", metavar="CSR", help="sign a certificate signing request ('-' for stdin)")

    trust = parser.add_argument_group("trust store options")
    trust.add_argument("--install", action="store_true", help="install the local CA in the trust stores")
    trust.add_argument("--uninstall", action="store_true", help="remove the local CA from the trust stores")
    trust.add_argument("--check", action="store_true", help="show whether the local CA is trusted")
    trust.add_argument("--caroot", action="store_true", help="print the CA directory and exit")

    general = parser.add_argument_group("general options")
    general.add_argument("--config", metavar="FILE", type=Path, help="YAML configuration file")
    general.add_argument("--format", choices=["text", "json", "yaml"], help="output format")
    verbosity = general.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="show debug messages")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="only show warnings and errors")
    general.add_argument("--debug", action="store_true", help="show debug messages and tracebacks")
    general.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """
    Reject flag combinations that make no sense.

    Exits with status 2 through ``parser.error`` on misuse.
    """
    if args.install and args.uninstall:
        parser.error("--install and --uninstall are mutually exclusive")
    if args.csr and args.hosts:
        parser.error("hosts cannot be given together with --csr")
    if args.csr and (args.key_file or args.p12_file or args.pkcs12 or args.ecdsa or args.client):
        parser.error("--csr only supports --cert-file")
    if args.quiet and args.debug:
        parser.error("--quiet and --debug are mutually exclusive")
    if not (args.hosts or args.csr or args.install or args.uninstall or args.check or args.caroot):
        parser.error("no hosts given and nothing else to do")


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Let command-line flags win over file and environment settings."""
    if args.format:
        config.output.format = args.format
    if args.verbose or args.debug:
        config.logging.level = "DEBUG"
    elif args.quiet:
        config.logging.level = "WARNING"
    return config


def emit(config: AppConfig, data: Any) -> None:
    """Print structured output in the configured format."""
    if config.output.format == "json":
        print(json.dumps(data, indent=2, default=str))
    elif config.output.format == "yaml":
        print(YAMLService.dump_yaml(data), end="")


def render_trust_result(config: AppConfig, result: TrustStoreResult) -> None:
    if config.output.format == "text":
        return
    emit(config, result.model_dump(mode="json"))


def render_check(config: AppConfig, status: dict[str, Optional[bool]]) -> None:
    if config.output.format != "text":
        emit(config, {"trust_stores": status})
        return
    labels = {True: "installed", False: "not installed", None: "unavailable"}
    for target, present in status.items():
        print(f"{target}: {labels[present]}")


def run(args: argparse.Namespace, config: AppConfig) -> int:
    """
    Execute the requested operations.

    Returns:
        Process exit status
    """
    ca = get_ca_service(config)

    if args.caroot:
        if config.output.format == "text":
            print(config.paths.caroot)
            return EXIT_OK
        data: dict[str, Any] = {"caroot": config.paths.caroot}
        # Never create the CA just to describe it
        if ca.exists():
            data["ca"] = ca.info().model_dump(mode="json")
        emit(config, data)
        return EXIT_OK

    if args.install or args.uninstall:
        truststore = get_truststore_service(config, ca=ca)
        if args.install:
            result = truststore.install_ca()
        else:
            result = truststore.uninstall_ca()
        render_trust_result(config, result)

    if args.check:
        render_check(config, get_truststore_service(config, ca=ca).check_ca())

    if args.csr or args.hosts:
        service = get_cert_service(config, ca=ca)
        if args.csr:
            issued = service.sign_csr(args.csr, cert_path=args.cert_file)
        else:
            issued = service.generate_certificate(
                args.hosts,
                cert_path=args.cert_file,
                key_path=args.key_file,
                p12_path=args.p12_file,
                is_client_cert=args.client,
                use_ecdsa=args.ecdsa,
                export_pkcs12=args.pkcs12 or bool(args.p12_file),
            )
        if config.output.format != "text":
            emit(config, issued.model_dump(mode="json"))

    return EXIT_OK


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run the fastcert command line.

    Args:
        argv: Arguments without the program name, defaults to ``sys.argv[1:]``

    Returns:
        Process exit status (0 success, 1 failure; usage errors exit with 2)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    validate_args(parser, args)

    try:
        config = apply_overrides(get_config(args.config), args)
    except FastcertError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logger(config)

    try:
        return run(args, config)
    except TrustStoreError as e:
        if e.result is not None:
            render_trust_result(config, e.result)
        logger.error(str(e), exc_info=args.debug)
        return EXIT_FAILURE
    except FastcertError as e:
        logger.error(str(e), exc_info=args.debug)
        return EXIT_FAILURE

