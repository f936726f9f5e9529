"""Approval workflow result types."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from approvals.domain.models.ledger import Transaction


class ApprovalStage(str, Enum):
    STATUS_TRANSITION = "status_transition"
    DISBURSEMENT = "disbursement"
    UPDATE_NOTIFICATION = "update_notification"
    MEMBERSHIP = "membership"
    CONFIRMATION_EMAIL = "confirmation_email"


@dataclass(frozen=True)
class SoftFailure:
    """A non-fatal stage error recorded on the approval outcome."""

    stage: ApprovalStage
    error_type: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(
        cls, stage: ApprovalStage, exc: Exception, details: dict[str, Any] | None = None
    ) -> "SoftFailure":
        merged = dict(getattr(exc, "details", None) or {})
        merged.update(details or {})
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        return cls(stage=stage, error_type=type(exc).__name__, message=message, details=merged)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "error_type": self.error_type,
            "message": self.message,
            "details": {k: str(v) for k, v in self.details.items()},
        }


@dataclass
class ApprovalOutcome:
    """Primary result of an approval plus the soft failures collected on the way.

    ``transaction`` is the snapshot persisted by the status transition; later
    stages do not refresh it.
    """

    transaction: Transaction
    soft_failures: list[SoftFailure] = field(default_factory=list)

    @property
    def fully_applied(self) -> bool:
        return not self.soft_failures

    def failed_stages(self) -> list[ApprovalStage]:
        return [failure.stage for failure in self.soft_failures]


@dataclass(frozen=True)
class MembershipFields:
    is_member: bool
    membership_paid_amount: Decimal
    membership_paid_at: datetime
    membership_expires_at: datetime


@dataclass(frozen=True)
class MembershipEvaluation:
    qualifies: bool
    fields: MembershipFields | None = None
