"""Ledger record models: transactions and users."""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(UTC)


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    LOAN = "loan"
    MEMBERSHIP = "membership"


class TransactionStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    REJECTED = "Rejected"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


# Terminal states an approval may not move out of.
CLOSED_STATUSES = frozenset(
    {
        TransactionStatus.REJECTED.value.lower(),
        TransactionStatus.FAILED.value.lower(),
        TransactionStatus.CANCELLED.value.lower(),
    }
)


class Transaction(BaseModel):
    """A ledger transaction.

    ``type`` and ``status`` are free-form strings compared case-insensitively;
    the enums above list the values this service acts on.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    transaction_id: str | None = Field(None, description="External-facing reference")
    type: str
    amount: Decimal | None = None
    currency: str = Field(default="USD")
    status: str = Field(default=TransactionStatus.PENDING.value)
    timestamp: datetime | None = Field(default_factory=utcnow)
    user_id: UUID | None = None
    user_name: str = ""
    user_email: str = ""
    description: str = ""
    collateral_btc: Decimal = Field(default=Decimal("0"), ge=0)
    loan_amount: Decimal = Field(default=Decimal("0"), ge=0)
    applied_to_balances: bool = False

    @field_validator("currency", mode="before")
    @classmethod
    def default_currency(cls, v: str | None) -> str:
        return v or "USD"

    def is_type(self, kind: TransactionType) -> bool:
        return (self.type or "").lower() == kind.value

    def has_status(self, status: TransactionStatus) -> bool:
        return (self.status or "").lower() == status.value.lower()

    @property
    def reference(self) -> str:
        """External id when present, internal id otherwise."""
        return self.transaction_id or str(self.id)

    def to_event(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class User(BaseModel):
    """A ledger account holder."""

    model_config = ConfigDict(validate_assignment=True)

    id: UUID = Field(default_factory=uuid4)
    email: str
    name: str = ""

    savings_balance_usd: Decimal = Field(default=Decimal("0"), ge=0)
    collateral_balance_usd: Decimal = Field(default=Decimal("0"), ge=0)

    is_member: bool = False
    membership_paid_amount: Decimal = Field(default=Decimal("0"), ge=0)
    membership_paid_at: datetime | None = None
    membership_expires_at: datetime | None = None

    # Optimistic concurrency stamp, bumped by every successful save.
    version: int = Field(default=0, ge=0)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return str(v).strip().lower()

    def balances_event(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "savings_balance_usd": str(self.savings_balance_usd),
            "collateral_balance_usd": str(self.collateral_balance_usd),
        }

    def membership_event(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "is_member": self.is_member,
            "membership_paid_amount": str(self.membership_paid_amount),
            "membership_paid_at": (
                self.membership_paid_at.isoformat() if self.membership_paid_at else None
            ),
            "membership_expires_at": (
                self.membership_expires_at.isoformat() if self.membership_expires_at else None
            ),
        }
