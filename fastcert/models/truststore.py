"""Trust store operation models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TrustOperation(str, Enum):
    """Dispatcher operations."""

    INSTALL = "install"
    UNINSTALL = "uninstall"


class TargetStatus(str, Enum):
    """Outcome of one trust store target."""

    INSTALLED = "installed"
    UNINSTALLED = "uninstalled"
    ALREADY_PRESENT = "already_present"
    SKIPPED = "skipped"
    FAILED = "failed"


class TargetOutcome(BaseModel):
    """What happened to a single target."""

    target: str
    driver: str
    status: TargetStatus
    message: str = ""

    @property
    def failed(self) -> bool:
        return self.status == TargetStatus.FAILED


class TrustStoreResult(BaseModel):
    """
    Aggregated result of an install or uninstall run.

    ``system`` is the mandatory outcome (None when the system target is not
    enabled); ``warnings`` lists failures of optional targets, which never
    affect ``success``.
    """

    operation: TrustOperation
    system: Optional[TargetOutcome] = None
    outcomes: list[TargetOutcome] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.system is None or not self.system.failed

    def outcome_for(self, target: str) -> Optional[TargetOutcome]:
        """
        Look up the outcome recorded for a target.

        Args:
            target: Target name (system, nss, java)

        Returns:
            The outcome, or None if the target was not processed
        """
        for outcome in self.outcomes:
            if outcome.target == target:
                return outcome
        return None
