"""Domain entities for per-item walk results and the run report."""

from dataclasses import dataclass, field
from enum import Enum


class OutcomeStatus(str, Enum):
    """Terminal status of one item processed by a fan-out."""

    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


class DeviceRestoreState(str, Enum):
    """States of the device restore conflict/idempotence state machine.

    Creating -> Created
    Creating -> DuplicateDetected -> Located -> CredentialRepaired
    Creating -> Failed (attributes are not restored)
    """

    CREATING = "creating"
    CREATED = "created"
    DUPLICATE_DETECTED = "duplicate_detected"
    LOCATED = "located"
    CREDENTIAL_REPAIRED = "credential_repaired"
    FAILED = "failed"


@dataclass
class ItemOutcome:
    """Result of processing a single entity during export, import or convert."""

    category: str
    name: str
    status: OutcomeStatus = OutcomeStatus.SUCCEEDED
    detail: str | None = None
    state: DeviceRestoreState | None = None

    @classmethod
    def failed(cls, category: str, name: str, error: BaseException | str) -> "ItemOutcome":
        if isinstance(error, BaseException):
            detail = f"{type(error).__name__}: {error}"
        else:
            detail = error
        return cls(category=category, name=name, status=OutcomeStatus.FAILED, detail=detail)

    @classmethod
    def skipped(cls, category: str, name: str, reason: str) -> "ItemOutcome":
        return cls(category=category, name=name, status=OutcomeStatus.SKIPPED, detail=reason)


@dataclass
class RunReport:
    """Aggregated outcomes of a whole run (export, import or convert)."""

    outcomes: list[ItemOutcome] = field(default_factory=list)

    def add(self, outcome: ItemOutcome) -> None:
        self.outcomes.append(outcome)

    def extend(self, outcomes: list[ItemOutcome]) -> None:
        self.outcomes.extend(outcomes)

    def merge(self, other: "RunReport") -> "RunReport":
        self.outcomes.extend(other.outcomes)
        return self

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(OutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failures(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]

    def summary(self) -> str:
        return (
            f"{self.succeeded} succeeded, {self.failed} failed, {self.skipped} skipped"
        )
