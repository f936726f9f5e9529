"""In-memory collaborators for approval workflow tests."""

from typing import Any
from uuid import UUID

from approvals.core.errors import ConcurrencyConflictError, PersistenceError
from approvals.domain.models.ledger import Transaction, User
from approvals.notifications.mailer import MailMessage


class InMemoryLedgerStore:
    """LedgerStore double that keeps copies, like a real database would."""

    def __init__(self) -> None:
        self.transactions: dict[UUID, Transaction] = {}
        self.users: dict[UUID, User] = {}
        self.writes: list[tuple[str, Any]] = []
        self.failures: dict[str, Exception] = {}

    def add_transaction(self, transaction: Transaction) -> Transaction:
        self.transactions[transaction.id] = transaction.model_copy()
        return transaction

    def add_user(self, user: User) -> User:
        self.users[user.id] = user.model_copy()
        return user

    def fail(self, operation: str, error: Exception) -> None:
        self.failures[operation] = error

    def _check(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    def disbursements(self) -> list[Transaction]:
        return [
            tx
            for tx in self.transactions.values()
            if tx.transaction_id and tx.transaction_id.endswith("_DISB")
        ]

    async def find_transaction_by_id(self, transaction_pk: UUID) -> Transaction | None:
        self._check("find_transaction_by_id")
        found = self.transactions.get(transaction_pk)
        return found.model_copy() if found else None

    async def find_transaction_by_external_id(self, transaction_id: str) -> Transaction | None:
        self._check("find_transaction_by_external_id")
        for tx in self.transactions.values():
            if tx.transaction_id == transaction_id:
                return tx.model_copy()
        return None

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        self._check("create_transaction")
        if transaction.id in self.transactions:
            raise PersistenceError("Duplicate id")
        self.transactions[transaction.id] = transaction.model_copy()
        self.writes.append(("create_transaction", transaction.id))
        return transaction

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        self._check("save_transaction")
        if transaction.id not in self.transactions:
            raise PersistenceError("Transaction vanished before save")
        self.transactions[transaction.id] = transaction.model_copy()
        self.writes.append(("save_transaction", transaction.id))
        return transaction

    async def find_user_by_id(self, user_id: UUID) -> User | None:
        self._check("find_user_by_id")
        found = self.users.get(user_id)
        return found.model_copy() if found else None

    async def save_user(self, user: User) -> User:
        self._check("save_user")
        stored = self.users[user.id]
        if stored.version != user.version:
            raise ConcurrencyConflictError(
                "User was modified concurrently", details={"user_id": str(user.id)}
            )
        user.version += 1
        self.users[user.id] = user.model_copy()
        self.writes.append(("save_user", user.id))
        return user


class RecordingNotifier:
    """Notifier double that records every event."""

    def __init__(self) -> None:
        self.user_events: list[tuple[str, str, dict]] = []
        self.admin_events: list[tuple[str, dict]] = []

    def notify_user(self, user_id, event: str, payload: dict) -> None:
        self.user_events.append((str(user_id), event, payload))

    def notify_admins(self, event: str, payload: dict) -> None:
        self.admin_events.append((event, payload))

    def events_for(self, user_id) -> list[str]:
        return [event for uid, event, _ in self.user_events if uid == str(user_id)]


class BrokenAdminChannelNotifier(RecordingNotifier):
    """Admin broadcast fails as if the push channel were down."""

    def notify_admins(self, event: str, payload: dict) -> None:
        raise ConnectionError("socket closed")


class RecordingEmailQueue:
    """Running email queue double that keeps submitted messages."""

    running = True

    def __init__(self) -> None:
        self.messages: list[MailMessage] = []

    def submit(self, message: MailMessage) -> None:
        self.messages.append(message)

    def pending(self) -> int:
        return len(self.messages)
