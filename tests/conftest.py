"""Pytest configuration and shared fixtures."""

import logging
import shutil
from pathlib import Path
from typing import Callable, NamedTuple, Optional

import pytest

from fastcert.services.ca_service import ROOT_CERT_FILE, ROOT_KEY_FILE, CertificateAuthority
from fastcert.services.cert_service import CertificateService
from fastcert.services.crypto_service import CryptoService
from fastcert.truststore.command import CommandResult, CommandRunner


class Call(NamedTuple):
    """One recorded command invocation."""

    args: list
    elevated: bool
    input: Optional[str]
    env: Optional[dict]


class FakeRunner(CommandRunner):
    """
    Command runner that records invocations instead of running them.

    ``handler`` receives each Call and returns a CommandResult (or None for
    plain success). ``tools`` lists the executables ``which`` pretends to find.
    """

    def __init__(self, handler: Optional[Callable[[Call], Optional[CommandResult]]] = None, tools=()):
        super().__init__()
        self.handler = handler
        self.tools = set(tools)
        self.calls: list[Call] = []

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.tools else None

    def run(self, args, elevated=False, input=None, env=None):
        call = Call([str(arg) for arg in args], elevated, input, dict(env) if env else None)
        self.calls.append(call)
        result = self.handler(call) if self.handler else None
        return result or CommandResult(0, "", "")


@pytest.fixture(autouse=True)
def reset_fastcert_logger():
    """Undo setup_logger() between tests."""
    yield
    logger = logging.getLogger("fastcert")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def crypto_service():
    """Create crypto backend instance."""
    return CryptoService()


@pytest.fixture(scope="session")
def ca_template(tmp_path_factory, crypto_service):
    """A root CA generated once per session."""
    root = tmp_path_factory.mktemp("ca_template")
    CertificateAuthority(root, crypto_service).ensure_ready()
    return root


@pytest.fixture
def caroot(tmp_path, ca_template):
    """Fresh copy of the session CA for each test."""
    root = tmp_path / "caroot"
    root.mkdir()
    for name in (ROOT_CERT_FILE, ROOT_KEY_FILE):
        shutil.copy2(ca_template / name, root / name)
    return root


@pytest.fixture
def ca(caroot, crypto_service):
    """CA manager over the copied root."""
    return CertificateAuthority(caroot, crypto_service)


@pytest.fixture
def output_dir(tmp_path):
    """Directory receiving issued certificates."""
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest.fixture
def cert_service(ca, output_dir):
    """Create Certificate service instance writing to the output directory."""
    return CertificateService(ca, output_dir=output_dir)


@pytest.fixture
def fake_runner():
    """Runner that succeeds at everything and finds every tool."""
    return FakeRunner(tools={"certutil", "security", "tee"})


@pytest.fixture
def ca_cert_file(caroot) -> Path:
    return caroot / ROOT_CERT_FILE


@pytest.fixture
def make_runner():
    """Factory for FakeRunner instances with custom behaviour."""
    return FakeRunner
