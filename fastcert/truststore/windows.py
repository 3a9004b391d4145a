"""Windows current-user root store."""

from fastcert.errors import CommandFailedError, TrustStoreError
from fastcert.truststore.base import TrustStoreDriver


class WindowsTrustStore(TrustStoreDriver):
    """Trusts the CA through ``certutil`` in the user's Root store."""

    target = "system"
    name = "Windows root store"

    @property
    def serial_hex(self) -> str:
        return format(self.certificate.serial_number, "x")

    def is_available(self) -> bool:
        return self.runner.which("certutil") is not None

    def check(self) -> bool:
        try:
            result = self.runner.run(["certutil", "-user", "-verifystore", "Root", self.serial_hex])
        except CommandFailedError as e:
            raise TrustStoreError(f"{self.name}: {e}") from e
        return result.ok

    def install(self) -> None:
        self.run(["certutil", "-user", "-f", "-addstore", "Root", str(self.cert_path)], "certutil -addstore")

    def uninstall(self) -> None:
        self.run(["certutil", "-user", "-delstore", "Root", self.serial_hex], "certutil -delstore")
