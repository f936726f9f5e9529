"""Derive the deposit that pays out an approved loan."""

from datetime import datetime
from decimal import Decimal

from approvals.core.errors import ValidationError
from approvals.domain.models.ledger import (
    Transaction,
    TransactionStatus,
    TransactionType,
    utcnow,
)

DISBURSEMENT_SUFFIX = "_DISB"
DISBURSEMENT_DESCRIPTION = "Loan disbursement"


def disbursement_reference(loan: Transaction) -> str:
    """External id of the disbursement belonging to ``loan``.

    Stable for a given loan, which lets callers detect an existing
    disbursement before generating another one.
    """
    return f"{loan.reference}{DISBURSEMENT_SUFFIX}"


def generate_disbursement(loan: Transaction, now: datetime | None = None) -> Transaction:
    """Build (but do not persist) the deposit for an approved loan."""
    if not loan.is_type(TransactionType.LOAN):
        raise ValidationError(
            "Disbursements can only be generated from loan transactions",
            details={"transaction_id": loan.reference, "type": loan.type},
        )

    return Transaction(
        transaction_id=disbursement_reference(loan),
        type=TransactionType.DEPOSIT.value,
        amount=loan.loan_amount,
        currency=loan.currency or "USD",
        status=TransactionStatus.COMPLETED.value,
        timestamp=now or utcnow(),
        user_id=loan.user_id,
        user_name=loan.user_name or "",
        user_email=loan.user_email or "",
        description=DISBURSEMENT_DESCRIPTION,
        collateral_btc=Decimal("0"),
        loan_amount=Decimal("0"),
        applied_to_balances=False,
    )
