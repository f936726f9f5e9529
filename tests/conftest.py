"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

ROOT = Path(__file__).resolve().parents[1]

# Add package root to path for imports
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Set test environment variables before importing the service
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("OTEL_LOG_RECORD_FORMAT", "console")

from approvals.domain.models.ledger import Transaction, User  # noqa: E402
from approvals.notifications.mailer import MailResult  # noqa: E402
from approvals.services.approval_service import ApprovalService  # noqa: E402
from tests.utils.doubles import (  # noqa: E402
    InMemoryLedgerStore,
    RecordingEmailQueue,
    RecordingNotifier,
)


@pytest.fixture
def fixed_timestamp() -> datetime:
    return datetime(2024, 3, 15, 10, 30, tzinfo=UTC)


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def mock_mailer() -> AsyncMock:
    mailer = AsyncMock()
    mailer.send = AsyncMock(return_value=MailResult(ok=True, info={"message_id": "<test>"}))
    return mailer


@pytest.fixture
def email_queue() -> RecordingEmailQueue:
    """Queue double: submitted messages are kept, never delivered."""
    return RecordingEmailQueue()


@pytest.fixture
def approval_service(store, notifier, email_queue) -> ApprovalService:
    return ApprovalService(store=store, notifier=notifier, email_queue=email_queue)


@pytest.fixture
def member_user(store) -> User:
    return store.add_user(
        User(
            email="Ada@Example.com",
            name="Ada",
            savings_balance_usd=Decimal("100"),
            collateral_balance_usd=Decimal("250"),
        )
    )


@pytest.fixture
def make_transaction(store, member_user, fixed_timestamp):
    """Factory that stores a pending transaction owned by ``member_user``."""

    def _make(**overrides: Any) -> Transaction:
        fields: dict[str, Any] = {
            "transaction_id": "TX-1001",
            "type": "deposit",
            "amount": Decimal("50"),
            "currency": "USD",
            "status": "Pending",
            "timestamp": fixed_timestamp,
            "user_id": member_user.id,
            "user_name": member_user.name,
            "user_email": member_user.email,
            "description": "Top up",
        }
        fields.update(overrides)
        return store.add_transaction(Transaction(**fields))

    return _make


@pytest.fixture
def mock_session():
    """Mock async database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session
