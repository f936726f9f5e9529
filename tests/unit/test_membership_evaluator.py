"""Unit tests for membership qualification."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from approvals.core.config import MembershipConfig
from approvals.domain.models.approval import MembershipFields
from approvals.domain.models.ledger import Transaction, User
from approvals.services.membership_evaluator import MembershipEvaluator, add_one_year

PAID_AT = datetime(2024, 5, 20, 8, 0, tzinfo=UTC)


def _tx(**overrides) -> Transaction:
    fields = {
        "type": "deposit",
        "amount": Decimal("1000"),
        "status": "Completed",
        "description": "Annual Membership fee",
        "timestamp": PAID_AT,
    }
    fields.update(overrides)
    return Transaction(**fields)


@pytest.fixture
def evaluator() -> MembershipEvaluator:
    return MembershipEvaluator()


class TestAddOneYear:
    """Test add_one_year."""

    def test_same_date_next_year(self):
        assert add_one_year(PAID_AT) == datetime(2025, 5, 20, 8, 0, tzinfo=UTC)

    def test_leap_day_rolls_to_first_of_march(self):
        leap_day = datetime(2024, 2, 29, 12, 0, tzinfo=UTC)

        assert add_one_year(leap_day) == datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


class TestQualification:
    """Test which transactions qualify."""

    def test_membership_payment_qualifies(self, evaluator):
        assert evaluator.is_qualifying(_tx(type="Membership", amount=Decimal("10"), description=""))

    def test_deposit_at_threshold_with_keyword_qualifies(self, evaluator):
        assert evaluator.is_qualifying(_tx())

    def test_deposit_below_threshold_does_not_qualify(self, evaluator):
        assert not evaluator.is_qualifying(_tx(amount=Decimal("999")))

    def test_deposit_without_keyword_does_not_qualify(self, evaluator):
        assert not evaluator.is_qualifying(_tx(description="Savings top up"))

    def test_deposit_without_amount_does_not_qualify(self, evaluator):
        assert not evaluator.is_qualifying(_tx(amount=None))

    def test_withdrawal_does_not_qualify(self, evaluator):
        assert not evaluator.is_qualifying(_tx(type="withdrawal"))

    @pytest.mark.parametrize("status", ["completed", "CONFIRMED", "Complete"])
    def test_completed_statuses_qualify(self, evaluator, status):
        assert evaluator.is_qualifying(_tx(status=status))

    @pytest.mark.parametrize("status", ["Pending", "Rejected", ""])
    def test_other_statuses_do_not_qualify(self, evaluator, status):
        assert not evaluator.is_qualifying(_tx(status=status))

    def test_threshold_and_keyword_are_configurable(self):
        evaluator = MembershipEvaluator(
            MembershipConfig(deposit_threshold=Decimal("500"), deposit_keyword="club")
        )

        assert evaluator.is_qualifying(_tx(amount=Decimal("500"), description="Club dues"))
        assert not evaluator.is_qualifying(_tx(amount=Decimal("500")))


class TestEvaluate:
    """Test evaluate and apply."""

    def test_not_qualifying_returns_no_fields(self, evaluator):
        evaluation = evaluator.evaluate(_tx(amount=Decimal("999")))

        assert evaluation.qualifies is False
        assert evaluation.fields is None

    def test_window_is_one_year_from_timestamp(self, evaluator):
        evaluation = evaluator.evaluate(_tx())

        assert evaluation.qualifies is True
        assert evaluation.fields == MembershipFields(
            is_member=True,
            membership_paid_amount=Decimal("1000"),
            membership_paid_at=PAID_AT,
            membership_expires_at=datetime(2025, 5, 20, 8, 0, tzinfo=UTC),
        )

    def test_missing_timestamp_uses_now(self, evaluator):
        now = datetime(2024, 1, 1, tzinfo=UTC)

        evaluation = evaluator.evaluate(_tx(type="membership", timestamp=None), now=now)

        assert evaluation.fields.membership_paid_at == now
        assert evaluation.fields.membership_expires_at == datetime(2025, 1, 1, tzinfo=UTC)

    def test_missing_amount_keeps_users_paid_amount(self, evaluator):
        user = User(email="a@example.com", membership_paid_amount=Decimal("80"))

        evaluation = evaluator.evaluate(_tx(type="membership", amount=None), user)

        assert evaluation.fields.membership_paid_amount == Decimal("80")

    def test_requalification_resets_window(self, evaluator):
        user = User(
            email="a@example.com",
            is_member=True,
            membership_paid_at=datetime(2023, 1, 1, tzinfo=UTC),
            membership_expires_at=datetime(2024, 1, 1, tzinfo=UTC),
        )

        changed = evaluator.apply(user, evaluator.evaluate(_tx()).fields)

        assert changed is True
        assert user.membership_paid_at == PAID_AT
        assert user.membership_expires_at == datetime(2025, 5, 20, 8, 0, tzinfo=UTC)

    def test_apply_reports_no_change(self, evaluator):
        user = User(email="a@example.com")
        fields = evaluator.evaluate(_tx()).fields

        assert evaluator.apply(user, fields) is True
        assert evaluator.apply(user, fields) is False
