"""Ledger store backed by PostgreSQL via SQLAlchemy 2.0 async.

Tables: ledger.transactions, ledger.users

Every write commits immediately so that a later failing step of the approval
workflow cannot roll back an earlier one.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from approvals.core.errors import ConcurrencyConflictError, PersistenceError
from approvals.domain.models.ledger import Transaction, User

logger = logging.getLogger(__name__)

TRANSACTION_COLUMNS = """
    id, transaction_id, type, amount, currency, status, timestamp,
    user_id, user_name, user_email, description,
    collateral_btc, loan_amount, applied_to_balances
"""

USER_COLUMNS = """
    id, email, name, savings_balance_usd, collateral_balance_usd,
    is_member, membership_paid_amount, membership_paid_at,
    membership_expires_at, version
"""


class SqlLedgerStore:
    """LedgerStore implementation over an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_transaction_by_id(self, transaction_pk: UUID) -> Transaction | None:
        """Get transaction by internal primary key."""
        row = await self._fetch_one(
            f"SELECT {TRANSACTION_COLUMNS} FROM ledger.transactions WHERE id = :id",
            {"id": transaction_pk},
        )
        return Transaction.model_validate(row) if row else None

    async def find_transaction_by_external_id(self, transaction_id: str) -> Transaction | None:
        """Get transaction by its external-facing transaction_id."""
        row = await self._fetch_one(
            f"""
            SELECT {TRANSACTION_COLUMNS}
            FROM ledger.transactions
            WHERE transaction_id = :transaction_id
            LIMIT 1
            """,
            {"transaction_id": transaction_id},
        )
        return Transaction.model_validate(row) if row else None

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        """Insert a new transaction."""
        await self._write(
            """
            INSERT INTO ledger.transactions (
                id, transaction_id, type, amount, currency, status, timestamp,
                user_id, user_name, user_email, description,
                collateral_btc, loan_amount, applied_to_balances
            ) VALUES (
                :id, :transaction_id, :type, :amount, :currency, :status, :timestamp,
                :user_id, :user_name, :user_email, :description,
                :collateral_btc, :loan_amount, :applied_to_balances
            )
            """,
            transaction.model_dump(),
        )
        logger.info(
            "Transaction created",
            extra={"transaction_pk": str(transaction.id), "transaction_id": transaction.transaction_id},
        )
        return transaction

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """Overwrite the mutable fields of an existing transaction."""
        result = await self._write(
            """
            UPDATE ledger.transactions
            SET status = :status,
                amount = :amount,
                currency = :currency,
                description = :description,
                applied_to_balances = :applied_to_balances
            WHERE id = :id
            """,
            {
                "id": transaction.id,
                "status": transaction.status,
                "amount": transaction.amount,
                "currency": transaction.currency,
                "description": transaction.description,
                "applied_to_balances": transaction.applied_to_balances,
            },
        )
        if result.rowcount == 0:
            raise PersistenceError(
                "Transaction vanished before save",
                details={"transaction_pk": str(transaction.id)},
            )
        return transaction

    async def find_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        row = await self._fetch_one(
            f"SELECT {USER_COLUMNS} FROM ledger.users WHERE id = :id",
            {"id": user_id},
        )
        return User.model_validate(row) if row else None

    async def save_user(self, user: User) -> User:
        """Save a user if nobody else saved it since it was read."""
        result = await self._write(
            """
            UPDATE ledger.users
            SET savings_balance_usd = :savings_balance_usd,
                collateral_balance_usd = :collateral_balance_usd,
                is_member = :is_member,
                membership_paid_amount = :membership_paid_amount,
                membership_paid_at = :membership_paid_at,
                membership_expires_at = :membership_expires_at,
                version = version + 1
            WHERE id = :id AND version = :version
            """,
            {
                "id": user.id,
                "version": user.version,
                "savings_balance_usd": user.savings_balance_usd,
                "collateral_balance_usd": user.collateral_balance_usd,
                "is_member": user.is_member,
                "membership_paid_amount": user.membership_paid_amount,
                "membership_paid_at": user.membership_paid_at,
                "membership_expires_at": user.membership_expires_at,
            },
        )
        if result.rowcount == 0:
            raise ConcurrencyConflictError(
                "User was modified concurrently",
                details={"user_id": str(user.id), "expected_version": user.version},
            )
        user.version += 1
        return user

    async def _fetch_one(self, sql: str, params: dict[str, Any]) -> dict[str, Any] | None:
        try:
            result = await self.session.execute(text(sql), params)
        except SQLAlchemyError as e:
            raise PersistenceError("Ledger read failed", details={"error": str(e)}) from e
        row = result.mappings().fetchone()
        return dict(row) if row is not None else None

    async def _write(self, sql: str, params: dict[str, Any]) -> Any:
        try:
            result = await self.session.execute(text(sql), params)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError("Ledger write failed", details={"error": str(e)}) from e
        return result
