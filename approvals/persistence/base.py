"""Ledger store interface consumed by the approval workflow."""

from typing import Protocol
from uuid import UUID

from approvals.domain.models.ledger import Transaction, User


class LedgerStore(Protocol):
    """Durable storage for transactions and users.

    Finders return ``None`` when nothing matches; storage failures raise.
    ``save_user`` is version-checked and raises ``ConcurrencyConflictError``
    when the stored version differs from ``user.version``.
    """

    async def find_transaction_by_id(self, transaction_pk: UUID) -> Transaction | None: ...

    async def find_transaction_by_external_id(self, transaction_id: str) -> Transaction | None: ...

    async def create_transaction(self, transaction: Transaction) -> Transaction: ...

    async def save_transaction(self, transaction: Transaction) -> Transaction: ...

    async def find_user_by_id(self, user_id: UUID) -> User | None: ...

    async def save_user(self, user: User) -> User: ...
