"""Exception hierarchy."""

from typing import Optional


class FastcertError(Exception):
    """Base class for all errors raised by fastcert."""


class FastcertIOError(FastcertError):
    """Reading or writing a file failed."""


class CertificateError(FastcertError):
    """Key or certificate generation, encoding or parsing failed."""


class CARootNotFoundError(FastcertError):
    """The CA private key exists but its root certificate is missing."""

    def __init__(self, message: str = "CA root certificate not found"):
        super().__init__(message)


class CAKeyMissingError(FastcertError):
    """The CA root certificate exists but its private key is missing."""

    def __init__(self, message: str = "CA private key missing"):
        super().__init__(message)


class TrustStoreError(FastcertError):
    """
    A trust store operation failed.

    Raised by drivers for any store-level failure. When raised by the
    dispatcher for a failed system target, ``result`` carries the outcomes
    recorded before the operation was aborted.
    """

    def __init__(self, message: str, result=None):
        super().__init__(message)
        self.result = result


class InvalidHostnameError(FastcertError, ValueError):
    """A host string could not be turned into a valid SAN entry."""


class CommandFailedError(FastcertError):
    """
    An external command could not be run or exited unsuccessfully.

    Attributes:
        returncode: Exit status, or None if the command never started
        stderr: Captured standard error, if any
    """

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        detail = stderr.strip()
        super().__init__(f"{message}: {detail}" if detail else message)
        self.returncode = returncode
        self.stderr = stderr
