"""Response schemas for the approval endpoint."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from approvals.domain.models.approval import ApprovalOutcome


class TransactionResponse(BaseModel):
    """Transaction as persisted by the status transition."""

    id: UUID
    transaction_id: str | None = None
    type: str
    amount: Decimal | None = None
    currency: str
    status: str
    timestamp: datetime | None = None
    user_id: UUID | None = None
    user_name: str = ""
    user_email: str = ""
    description: str = ""
    collateral_btc: Decimal = Decimal("0")
    loan_amount: Decimal = Decimal("0")
    applied_to_balances: bool = False


class SoftFailureResponse(BaseModel):
    stage: str
    error_type: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ApprovalResponse(BaseModel):
    is_ok: bool = True
    data: TransactionResponse
    soft_failures: list[SoftFailureResponse] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: ApprovalOutcome) -> "ApprovalResponse":
        return cls(
            data=TransactionResponse.model_validate(outcome.transaction.model_dump()),
            soft_failures=[
                SoftFailureResponse(**failure.to_dict()) for failure in outcome.soft_failures
            ],
        )
