"""API routes for administrator actions on transactions."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from approvals.core.database import get_session
from approvals.persistence.ledger_repository import SqlLedgerStore
from approvals.schemas.approval import ApprovalResponse
from approvals.services.approval_service import ApprovalService
from approvals.services.membership_evaluator import MembershipEvaluator

router = APIRouter(prefix="/admin/transactions", tags=["admin"])


def get_approval_service(
    request: Request, session: AsyncSession = Depends(get_session)
) -> ApprovalService:
    """Get approval service instance wired to the application's collaborators."""
    state = request.app.state
    return ApprovalService(
        store=SqlLedgerStore(session),
        notifier=state.notifier,
        email_queue=state.email_queue,
        evaluator=MembershipEvaluator(state.settings.membership),
    )


@router.post("/{transaction_ref}/approve", response_model=ApprovalResponse)
async def approve_transaction(
    transaction_ref: str,
    approval_service: ApprovalService = Depends(get_approval_service),
) -> ApprovalResponse:
    """Mark a transaction as completed and run its side effects.

    ``transaction_ref`` may be the internal id or the external transaction_id.
    Side-effect failures do not fail the request; they are listed in
    ``soft_failures``.
    """
    outcome = await approval_service.approve(transaction_ref)
    return ApprovalResponse.from_outcome(outcome)
