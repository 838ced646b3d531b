"""SQLite schema for the deal pipeline.

Provides ``init_deal_db()`` following the same pattern as ``init_audit_db()``
in :mod:`influenceflow.audit.store`, plus ``init_deal_tables()`` for callers
that already hold a connection (e.g. in-memory test databases).
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from influenceflow.domain.types import ACTIVE_STATUSES

_ACTIVE_STATUS_SQL = ", ".join(f"'{status.value}'" for status in sorted(ACTIVE_STATUSES))


def connect(db_path: Path | str) -> sqlite3.Connection:
    """Open a connection with WAL mode and foreign keys enabled.

    The connection is shared by async request handlers running on one event
    loop and by readiness checks running in worker threads, so SQLite's
    same-thread check is disabled.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection.
    """
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_deal_tables(conn: sqlite3.Connection) -> None:
    """Create every deal pipeline table and index if missing.

    Args:
        conn: An open sqlite3.Connection with foreign keys enabled.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS campaigns (
            id TEXT PRIMARY KEY,
            brand_id TEXT NOT NULL,
            brand_name TEXT NOT NULL,
            brand_email TEXT NOT NULL DEFAULT '',
            title TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            budget TEXT NOT NULL DEFAULT '0',
            start_date TEXT,
            end_date TEXT,
            status TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS negotiations (
            id TEXT PRIMARY KEY,
            campaign_id TEXT NOT NULL REFERENCES campaigns (id) ON DELETE CASCADE,
            creator_id TEXT NOT NULL,
            creator_email TEXT NOT NULL,
            status TEXT NOT NULL,
            ai_mode TEXT NOT NULL,
            parameters_json TEXT NOT NULL DEFAULT '{}',
            email_thread_id TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute(f"""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_negotiations_active_pair
        ON negotiations (campaign_id, creator_email)
        WHERE status IN ({_ACTIVE_STATUS_SQL})
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_negotiations_campaign ON negotiations (campaign_id)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS negotiation_transitions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            negotiation_id TEXT NOT NULL REFERENCES negotiations (id) ON DELETE CASCADE,
            from_status TEXT NOT NULL,
            event TEXT NOT NULL,
            to_status TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id TEXT PRIMARY KEY,
            negotiation_id TEXT NOT NULL REFERENCES negotiations (id) ON DELETE CASCADE,
            sender TEXT NOT NULL,
            content TEXT NOT NULL,
            content_type TEXT NOT NULL,
            timestamp TEXT NOT NULL,
            email_message_id TEXT,
            email_metadata_json TEXT
        )
    """)
    conn.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_messages_email_message_id
        ON messages (email_message_id)
        WHERE email_message_id IS NOT NULL
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_messages_negotiation "
        "ON messages (negotiation_id, timestamp)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS deal_terms (
            id TEXT PRIMARY KEY,
            negotiation_id TEXT NOT NULL UNIQUE
                REFERENCES negotiations (id) ON DELETE CASCADE,
            fee TEXT NOT NULL,
            deliverables_json TEXT NOT NULL,
            timeline_json TEXT NOT NULL,
            requirements_json TEXT NOT NULL,
            revisions INTEGER NOT NULL,
            approved_at TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS contracts (
            id TEXT PRIMARY KEY,
            negotiation_id TEXT NOT NULL UNIQUE
                REFERENCES negotiations (id) ON DELETE CASCADE,
            status TEXT NOT NULL,
            content TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            signed_by_brand INTEGER NOT NULL DEFAULT 0,
            brand_signed_at TEXT,
            signed_by_creator INTEGER NOT NULL DEFAULT 0,
            creator_signed_at TEXT,
            payment_details_json TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS contract_deliverables (
            id TEXT PRIMARY KEY,
            contract_id TEXT NOT NULL REFERENCES contracts (id) ON DELETE CASCADE,
            position INTEGER NOT NULL,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            amount TEXT NOT NULL,
            completed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            paid INTEGER NOT NULL DEFAULT 0,
            paid_at TEXT,
            CHECK (paid = 0 OR completed = 1)
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_deliverables_contract "
        "ON contract_deliverables (contract_id, position)"
    )

    conn.execute("""
        CREATE TABLE IF NOT EXISTS payments (
            id TEXT PRIMARY KEY,
            campaign_id TEXT NOT NULL REFERENCES campaigns (id) ON DELETE CASCADE,
            contract_id TEXT,
            creator_id TEXT,
            amount TEXT NOT NULL,
            type TEXT NOT NULL,
            status TEXT NOT NULL,
            gateway_session_id TEXT UNIQUE,
            gateway_transaction_id TEXT,
            completed_at TEXT,
            created_at TEXT NOT NULL
        )
    """)
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_payments_campaign ON payments (campaign_id, type, status)"
    )

    conn.commit()


def init_deal_db(db_path: Path | str) -> sqlite3.Connection:
    """Create and initialize the deal database.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with all tables created.
    """
    conn = connect(db_path)
    init_deal_tables(conn)
    return conn
