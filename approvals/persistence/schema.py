"""DDL for the ledger schema.

Used by the application lifespan when DATABASE_AUTO_CREATE_SCHEMA is set;
production databases are expected to be migrated out of band.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

LEDGER_SCHEMA_STATEMENTS = (
    "CREATE SCHEMA IF NOT EXISTS ledger",
    """
    CREATE TABLE IF NOT EXISTS ledger.users (
        id UUID PRIMARY KEY,
        email TEXT NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        savings_balance_usd NUMERIC(20, 8) NOT NULL DEFAULT 0
            CHECK (savings_balance_usd >= 0),
        collateral_balance_usd NUMERIC(20, 8) NOT NULL DEFAULT 0
            CHECK (collateral_balance_usd >= 0),
        is_member BOOLEAN NOT NULL DEFAULT FALSE,
        membership_paid_amount NUMERIC(20, 8) NOT NULL DEFAULT 0,
        membership_paid_at TIMESTAMPTZ,
        membership_expires_at TIMESTAMPTZ,
        version INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS ux_users_email ON ledger.users (LOWER(email))",
    """
    CREATE TABLE IF NOT EXISTS ledger.transactions (
        id UUID PRIMARY KEY,
        transaction_id TEXT,
        type TEXT NOT NULL,
        amount NUMERIC(20, 8),
        currency TEXT NOT NULL DEFAULT 'USD',
        status TEXT NOT NULL DEFAULT 'Pending',
        timestamp TIMESTAMPTZ,
        user_id UUID REFERENCES ledger.users (id),
        user_name TEXT NOT NULL DEFAULT '',
        user_email TEXT NOT NULL DEFAULT '',
        description TEXT NOT NULL DEFAULT '',
        collateral_btc NUMERIC(20, 8) NOT NULL DEFAULT 0 CHECK (collateral_btc >= 0),
        loan_amount NUMERIC(20, 8) NOT NULL DEFAULT 0 CHECK (loan_amount >= 0),
        applied_to_balances BOOLEAN NOT NULL DEFAULT FALSE
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS ux_transactions_transaction_id
        ON ledger.transactions (transaction_id)
        WHERE transaction_id IS NOT NULL
    """,
)


async def create_ledger_schema(engine: AsyncEngine) -> None:
    """Create the ledger schema and tables if they do not exist."""
    async with engine.begin() as conn:
        for statement in LEDGER_SCHEMA_STATEMENTS:
            await conn.execute(text(statement))
    logger.info("Ledger schema ensured", extra={"statements": len(LEDGER_SCHEMA_STATEMENTS)})
