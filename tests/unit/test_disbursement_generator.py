"""Unit tests for loan disbursement generation."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from approvals.core.errors import ValidationError
from approvals.domain.models.ledger import Transaction
from approvals.services.disbursement_generator import (
    DISBURSEMENT_DESCRIPTION,
    disbursement_reference,
    generate_disbursement,
)


@pytest.fixture
def loan() -> Transaction:
    return Transaction(
        transaction_id="LOAN-100",
        type="LOAN",
        amount=Decimal("750"),
        currency="EUR",
        status="Completed",
        user_id=uuid4(),
        user_name="Ada",
        user_email="ada@example.com",
        collateral_btc=Decimal("0.05"),
        loan_amount=Decimal("750"),
    )


class TestGenerateDisbursement:
    """Test generate_disbursement."""

    def test_builds_completed_deposit_from_loan(self, loan):
        now = datetime(2024, 6, 1, tzinfo=UTC)

        deposit = generate_disbursement(loan, now=now)

        assert deposit.type == "deposit"
        assert deposit.amount == Decimal("750")
        assert deposit.currency == "EUR"
        assert deposit.status == "Completed"
        assert deposit.timestamp == now
        assert deposit.user_id == loan.user_id
        assert deposit.user_name == "Ada"
        assert deposit.user_email == "ada@example.com"
        assert deposit.description == DISBURSEMENT_DESCRIPTION
        assert deposit.collateral_btc == Decimal("0")
        assert deposit.loan_amount == Decimal("0")
        assert deposit.applied_to_balances is False
        assert deposit.id != loan.id

    def test_transaction_id_is_deterministic(self, loan):
        first = generate_disbursement(loan)
        second = generate_disbursement(loan)

        assert first.transaction_id == second.transaction_id == "LOAN-100_DISB"
        assert disbursement_reference(loan) == "LOAN-100_DISB"

    def test_falls_back_to_internal_id(self, loan):
        loan.transaction_id = None

        deposit = generate_disbursement(loan)

        assert deposit.transaction_id == f"{loan.id}_DISB"

    def test_missing_currency_defaults_to_usd(self, loan):
        loan.currency = ""

        assert generate_disbursement(loan).currency == "USD"

    def test_rejects_non_loan(self, loan):
        loan.type = "deposit"

        with pytest.raises(ValidationError) as exc_info:
            generate_disbursement(loan)

        assert exc_info.value.details["type"] == "deposit"
