"""Transaction approval workflow.

Approving a transaction runs five stages in order:

1. status transition to Completed (fatal on failure)
2. loan disbursement and balance application
3. update notification to the owner and to admins
4. membership evaluation
5. confirmation email (queued, not awaited)

Only the status transition can fail the call. Errors in stages 2-5 are
recorded as SoftFailure entries on the returned ApprovalOutcome and logged;
they never abort the remaining stages.
"""

import logging
from collections.abc import Awaitable, Callable
from decimal import Decimal
from uuid import UUID

from approvals.core.errors import (
    InvalidTransitionError,
    LedgerApprovalError,
    NotFoundError,
    PersistenceError,
)
from approvals.core.logging import bind_request_context
from approvals.domain.models.approval import ApprovalOutcome, ApprovalStage, SoftFailure
from approvals.domain.models.ledger import (
    CLOSED_STATUSES,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from approvals.notifications.email_queue import EmailDispatchQueue
from approvals.notifications.notifier import (
    TRANSACTION_CREATED,
    TRANSACTION_UPDATED,
    USER_UPDATED,
    Notifier,
)
from approvals.notifications.templates import payment_confirmation
from approvals.persistence.base import LedgerStore
from approvals.services.disbursement_generator import (
    disbursement_reference,
    generate_disbursement,
)
from approvals.services.membership_evaluator import MembershipEvaluator

logger = logging.getLogger(__name__)

Stage = Callable[[Transaction], Awaitable[None]]


def _parse_uuid(value: str | UUID) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class ApprovalService:
    """Marks transactions as completed and runs their side effects."""

    def __init__(
        self,
        store: LedgerStore,
        notifier: Notifier,
        email_queue: EmailDispatchQueue,
        evaluator: MembershipEvaluator | None = None,
    ):
        self.store = store
        self.notifier = notifier
        self.email_queue = email_queue
        self.evaluator = evaluator or MembershipEvaluator()

    async def approve(self, transaction_ref: str | UUID) -> ApprovalOutcome:
        """Approve a transaction by internal id or external transaction_id.

        Raises:
            NotFoundError: the reference resolves to no transaction
            InvalidTransitionError: the transaction is already closed
            PersistenceError: the status transition could not be saved
        """
        with bind_request_context(transaction_ref=str(transaction_ref)):
            transaction = await self.resolve(transaction_ref)
            transaction = await self._transition_status(transaction)

            outcome = ApprovalOutcome(transaction=transaction)
            stages: list[tuple[ApprovalStage, Stage]] = [
                (ApprovalStage.DISBURSEMENT, self._disburse_loan),
                (ApprovalStage.UPDATE_NOTIFICATION, self._notify_owner),
                (ApprovalStage.UPDATE_NOTIFICATION, self._notify_admins),
                (ApprovalStage.MEMBERSHIP, self._update_membership),
                (ApprovalStage.CONFIRMATION_EMAIL, self._queue_confirmation_email),
            ]
            for stage, step in stages:
                # Stages get a copy so the returned snapshot stays as persisted.
                await self._run_stage(outcome, stage, step, transaction.model_copy())

            logger.log(
                logging.INFO if outcome.fully_applied else logging.WARNING,
                "Transaction approved",
                extra={
                    "transaction_pk": str(transaction.id),
                    "type": transaction.type,
                    "failed_stages": [stage.value for stage in outcome.failed_stages()],
                },
            )
            return outcome

    async def resolve(self, transaction_ref: str | UUID) -> Transaction:
        """Look up by internal id first, then by external transaction_id."""
        transaction = None
        transaction_pk = _parse_uuid(transaction_ref)
        if transaction_pk is not None:
            transaction = await self.store.find_transaction_by_id(transaction_pk)
        if transaction is None:
            transaction = await self.store.find_transaction_by_external_id(str(transaction_ref))
        if transaction is None:
            raise NotFoundError(
                "Transaction not found", details={"transaction_ref": str(transaction_ref)}
            )
        return transaction

    async def _transition_status(self, transaction: Transaction) -> Transaction:
        if transaction.has_status(TransactionStatus.COMPLETED):
            logger.info(
                "Transaction already completed, re-running side effects",
                extra={"transaction_pk": str(transaction.id)},
            )
        elif (transaction.status or "").lower() in CLOSED_STATUSES:
            raise InvalidTransitionError(
                f"Cannot approve a {transaction.status} transaction",
                details={"transaction_pk": str(transaction.id), "status": transaction.status},
            )

        transaction.status = TransactionStatus.COMPLETED.value
        try:
            return await self.store.save_transaction(transaction)
        except Exception as e:
            logger.error(
                "Approval stage failed",
                extra={
                    "stage": ApprovalStage.STATUS_TRANSITION.value,
                    "transaction_pk": str(transaction.id),
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            if isinstance(e, PersistenceError):
                raise
            raise PersistenceError(
                "Failed to persist status transition",
                details={"transaction_pk": str(transaction.id), "error": str(e)},
            ) from e

    async def _run_stage(
        self,
        outcome: ApprovalOutcome,
        stage: ApprovalStage,
        step: Stage,
        transaction: Transaction,
    ) -> None:
        try:
            await step(transaction)
        except Exception as e:
            failure = SoftFailure.from_exception(
                stage, e, details={"transaction_pk": str(transaction.id)}
            )
            outcome.soft_failures.append(failure)
            logger.warning(
                "Approval stage failed",
                exc_info=not isinstance(e, LedgerApprovalError),
                extra={
                    "stage": stage.value,
                    "transaction_pk": str(transaction.id),
                    "error_type": failure.error_type,
                    "error": failure.message,
                },
            )

    async def _disburse_loan(self, loan: Transaction) -> None:
        if not (loan.is_type(TransactionType.LOAN) and loan.loan_amount > 0 and loan.user_id):
            return

        deposit = await self.store.find_transaction_by_external_id(disbursement_reference(loan))
        if deposit is not None and deposit.applied_to_balances:
            logger.info(
                "Loan already disbursed",
                extra={"transaction_pk": str(loan.id), "disbursement_id": deposit.transaction_id},
            )
            return
        if deposit is None:
            deposit = await self.store.create_transaction(generate_disbursement(loan))

        user = await self.store.find_user_by_id(loan.user_id)
        if user is None:
            raise NotFoundError(
                "Loan owner not found, disbursement left unapplied",
                details={"user_id": str(loan.user_id), "disbursement_id": deposit.transaction_id},
            )

        user.savings_balance_usd = user.savings_balance_usd + (deposit.amount or Decimal("0"))
        user = await self.store.save_user(user)

        deposit.applied_to_balances = True
        deposit = await self.store.save_transaction(deposit)

        self.notifier.notify_user(loan.user_id, USER_UPDATED, user.balances_event())
        self.notifier.notify_user(loan.user_id, TRANSACTION_CREATED, deposit.to_event())
        logger.info(
            "Loan disbursed",
            extra={
                "transaction_pk": str(loan.id),
                "disbursement_id": deposit.transaction_id,
                "amount": str(deposit.amount),
                "user_id": str(user.id),
            },
        )

    async def _notify_owner(self, transaction: Transaction) -> None:
        if transaction.user_id:
            self.notifier.notify_user(
                transaction.user_id, TRANSACTION_UPDATED, transaction.to_event()
            )

    async def _notify_admins(self, transaction: Transaction) -> None:
        self.notifier.notify_admins(TRANSACTION_UPDATED, transaction.to_event())

    async def _update_membership(self, transaction: Transaction) -> None:
        if not transaction.user_id or not self.evaluator.is_qualifying(transaction):
            return

        user = await self.store.find_user_by_id(transaction.user_id)
        if user is None:
            raise NotFoundError(
                "Membership owner not found", details={"user_id": str(transaction.user_id)}
            )

        evaluation = self.evaluator.evaluate(transaction, user)
        if evaluation.fields is None or not self.evaluator.apply(user, evaluation.fields):
            logger.info(
                "Membership already up to date",
                extra={"transaction_pk": str(transaction.id), "user_id": str(user.id)},
            )
            return

        user = await self.store.save_user(user)
        self.notifier.notify_user(transaction.user_id, USER_UPDATED, user.membership_event())
        logger.info(
            "Membership activated",
            extra={
                "user_id": str(user.id),
                "expires_at": user.membership_expires_at.isoformat()
                if user.membership_expires_at
                else None,
            },
        )

    async def _queue_confirmation_email(self, transaction: Transaction) -> None:
        if not transaction.user_id:
            return
        user = await self.store.find_user_by_id(transaction.user_id)
        if user is None or not user.email:
            return
        self.email_queue.submit(payment_confirmation(transaction, user))
