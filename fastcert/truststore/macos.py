"""macOS System keychain."""

from fastcert.errors import CommandFailedError, TrustStoreError
from fastcert.truststore.base import TrustStoreDriver

SYSTEM_KEYCHAIN = "/Library/Keychains/System.keychain"


class MacOSTrustStore(TrustStoreDriver):
    """Trusts the CA through the ``security`` tool and the System keychain."""

    target = "system"
    name = "macOS keychain"

    def is_available(self) -> bool:
        return self.runner.which("security") is not None

    def check(self) -> bool:
        try:
            result = self.runner.run(["security", "verify-cert", "-c", str(self.cert_path)])
        except CommandFailedError as e:
            raise TrustStoreError(f"{self.name}: {e}") from e
        return result.ok

    def install(self) -> None:
        self.run(
            ["security", "add-trusted-cert", "-d", "-k", SYSTEM_KEYCHAIN, str(self.cert_path)],
            "add-trusted-cert",
            elevated=True,
        )

    def uninstall(self) -> None:
        try:
            result = self.runner.run(
                ["security", "remove-trusted-cert", "-d", str(self.cert_path)],
                elevated=True,
            )
        except CommandFailedError as e:
            raise TrustStoreError(f"{self.name}: {e}") from e
        if not result.ok and "could not be found" not in result.output:
            self.fail("remove-trusted-cert", result)
