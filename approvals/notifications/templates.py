"""Email bodies sent by the approval workflow."""

from datetime import datetime
from html import escape

from approvals.domain.models.ledger import Transaction, User, utcnow
from approvals.notifications.mailer import MailMessage

NO_AMOUNT = "—"


def format_amount(transaction: Transaction) -> str:
    if transaction.amount is None:
        return NO_AMOUNT
    return f"{transaction.amount} {transaction.currency or ''}".strip()


def payment_confirmation(
    transaction: Transaction, user: User, now: datetime | None = None
) -> MailMessage:
    """Confirmation sent to the owner once a transaction is approved."""
    kind = transaction.type or "Payment"
    amount = format_amount(transaction)
    reference = transaction.reference
    when = (transaction.timestamp or now or utcnow()).strftime("%Y-%m-%d %H:%M:%S %Z").strip()

    html = (
        f"<p>Hi {escape(user.name or '')},</p>"
        f"<p>Your {escape(kind.lower())} has been confirmed by our team.</p>"
        f"<p><strong>Type:</strong> {escape(kind)}<br/>"
        f"<strong>Amount:</strong> {escape(amount)}<br/>"
        f"<strong>Reference:</strong> {escape(reference)}<br/>"
        f"<strong>Date:</strong> {escape(when)}</p>"
        "<p>If you have questions reply to this email or contact support.</p>"
    )
    text = f"Your {kind} of {amount} has been confirmed. Reference: {reference}"

    return MailMessage(
        to=user.email,
        subject=f"Payment confirmed: {kind}",
        html=html,
        text=text,
    )
