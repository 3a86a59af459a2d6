# =============================================================================
# core/models.py - Account and remediation data models
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Union
from enum import Enum


NEVER = "never"


class AccountKind(Enum):
    """Kinds of directory accounts the tool works on"""
    USER = "User"
    COMPUTER = "Computer"

    @classmethod
    def from_cli(cls, value: str) -> "AccountKind":
        return cls[value.upper()]


class RemediationAction(Enum):
    """Action taken against an inactive account"""
    REPORT = "report"
    DISABLE = "disable"
    MOVE = "move"
    RESET_PASSWORD = "reset_password"
    SYNC_GROUPS = "sync_groups"


class OutcomeStatus(Enum):
    """Per-account state: PENDING -> ATTEMPTING -> SUCCEEDED | FAILED"""
    PENDING = "Pending"
    ATTEMPTING = "Attempting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"


@dataclass
class AccountRecord:
    """Account as read from the directory"""
    identifier: str
    kind: AccountKind
    distinguished_name: str
    container: str
    last_activity: Optional[datetime] = None
    created_at: Optional[datetime] = None
    enabled: bool = True
    member_of: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class InactivityCriterion:
    """Inactivity predicate, built once per run"""
    kind: AccountKind
    threshold_days: int
    now: datetime
    scope: Optional[str] = None

    @property
    def cutoff(self) -> datetime:
        return self.now - timedelta(days=self.threshold_days)


@dataclass(frozen=True)
class ReportRow:
    """Flat report projection of a matched account"""
    account_type: str
    identifier: str
    last_activity: Optional[datetime]
    idle_days: Union[int, str]
    created_at: Optional[datetime]
    container: str


@dataclass
class RemediationOutcome:
    """Result of acting on a single account"""
    identifier: str
    action: RemediationAction
    status: OutcomeStatus = OutcomeStatus.PENDING
    detail: str = ""
    extra: dict = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        return self.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.FAILED,
                               OutcomeStatus.SKIPPED)


@dataclass
class RunSummary:
    """Counts printed at the end of every run"""
    matched: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: List[RemediationOutcome],
                      matched: Optional[int] = None) -> "RunSummary":
        summary = cls(matched=len(outcomes) if matched is None else matched)
        for outcome in outcomes:
            if outcome.status == OutcomeStatus.SUCCEEDED:
                summary.succeeded += 1
            elif outcome.status == OutcomeStatus.FAILED:
                summary.failed += 1
            elif outcome.status == OutcomeStatus.SKIPPED:
                summary.skipped += 1
        return summary

    @property
    def success_rate(self) -> float:
        """Calculate success rate percentage"""
        attempted = self.succeeded + self.failed
        if attempted == 0:
            return 0.0
        return (self.succeeded / attempted) * 100

    def line(self) -> str:
        return (f"Summary: matched={self.matched}, succeeded={self.succeeded}, "
                f"failed={self.failed}, skipped={self.skipped}")
