"""Membership qualification rules for approved transactions."""

from datetime import datetime
from decimal import Decimal

from approvals.core.config import MembershipConfig
from approvals.domain.models.approval import MembershipEvaluation, MembershipFields
from approvals.domain.models.ledger import Transaction, TransactionType, User, utcnow

NOT_QUALIFIED = MembershipEvaluation(qualifies=False)


def add_one_year(moment: datetime) -> datetime:
    """Same calendar date one year later; 29 February rolls over to 1 March."""
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        return moment.replace(year=moment.year + 1, month=3, day=1)


class MembershipEvaluator:
    """Decides whether a transaction activates or renews a membership.

    A transaction qualifies when it is a membership payment, or a deposit of
    at least ``deposit_threshold`` whose description mentions the keyword,
    and its status is one of the qualifying (completed) statuses.
    """

    def __init__(self, config: MembershipConfig | None = None):
        config = config or MembershipConfig()
        self.deposit_threshold = config.deposit_threshold
        self.keyword = config.deposit_keyword.lower()
        self.qualifying_statuses = config.qualifying_statuses_set

    def is_qualifying(self, transaction: Transaction) -> bool:
        if (transaction.status or "").lower() not in self.qualifying_statuses:
            return False
        if transaction.is_type(TransactionType.MEMBERSHIP):
            return True
        return (
            transaction.is_type(TransactionType.DEPOSIT)
            and (transaction.amount or Decimal("0")) >= self.deposit_threshold
            and self.keyword in (transaction.description or "").lower()
        )

    def evaluate(
        self,
        transaction: Transaction,
        user: User | None = None,
        now: datetime | None = None,
    ) -> MembershipEvaluation:
        if not self.is_qualifying(transaction):
            return NOT_QUALIFIED

        paid_amount = transaction.amount
        if paid_amount is None:
            paid_amount = user.membership_paid_amount if user else Decimal("0")
        paid_at = transaction.timestamp or now or utcnow()

        return MembershipEvaluation(
            qualifies=True,
            fields=MembershipFields(
                is_member=True,
                membership_paid_amount=paid_amount,
                membership_paid_at=paid_at,
                membership_expires_at=add_one_year(paid_at),
            ),
        )

    @staticmethod
    def apply(user: User, fields: MembershipFields) -> bool:
        """Copy membership fields onto ``user``; False when nothing changed."""
        unchanged = (
            user.is_member == fields.is_member
            and user.membership_paid_amount == fields.membership_paid_amount
            and user.membership_paid_at == fields.membership_paid_at
            and user.membership_expires_at == fields.membership_expires_at
        )
        if unchanged:
            return False
        user.is_member = fields.is_member
        user.membership_paid_amount = fields.membership_paid_amount
        user.membership_paid_at = fields.membership_paid_at
        user.membership_expires_at = fields.membership_expires_at
        return True
