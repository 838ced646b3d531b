"""SQLite-backed audit trail store with WAL mode and indexed queries.

Provides functions to initialize the database, insert audit entries, and
query the audit trail with flexible filtering. Uses parameterized queries
exclusively (never string concatenation) to prevent SQL injection.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from influenceflow.audit.models import AuditEntry


def init_audit_table(conn: sqlite3.Connection) -> None:
    """Create the ``audit_log`` table and its indexes if missing.

    Args:
        conn: An open database connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            event_type TEXT NOT NULL,
            campaign_id TEXT,
            negotiation_id TEXT,
            contract_id TEXT,
            creator_email TEXT,
            direction TEXT,
            email_body TEXT,
            negotiation_state TEXT,
            amount TEXT,
            metadata TEXT
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_negotiation ON audit_log (negotiation_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_campaign ON audit_log (campaign_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_contract ON audit_log (contract_id)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp)"
    )

    conn.commit()


def init_audit_db(db_path: Path | str) -> sqlite3.Connection:
    """Create and initialize the audit database with WAL mode and indexes.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        An open sqlite3.Connection with WAL mode enabled.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    init_audit_table(conn)
    return conn


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an audit entry into the database.

    Serializes the metadata dict to a JSON string if present.

    Args:
        conn: An open database connection.
        entry: The audit entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(entry.metadata)

    timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    cursor = conn.execute(
        """
        INSERT INTO audit_log (
            timestamp, event_type, campaign_id, negotiation_id, contract_id,
            creator_email, direction, email_body, negotiation_state, amount,
            metadata
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            timestamp,
            entry.event_type.value,
            entry.campaign_id,
            entry.negotiation_id,
            entry.contract_id,
            entry.creator_email,
            entry.direction,
            entry.email_body,
            entry.negotiation_state,
            entry.amount,
            metadata_json,
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    negotiation_id: str | None = None,
    campaign_id: str | None = None,
    contract_id: str | None = None,
    creator_email: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with flexible filtering.

    All filters are optional.  Results are ordered newest first.

    Args:
        conn: An open database connection.
        negotiation_id: Filter by negotiation ID (exact match).
        campaign_id: Filter by campaign ID (exact match).
        contract_id: Filter by contract ID (exact match).
        creator_email: Filter by creator email (case-insensitive).
        from_date: Filter entries on or after this ISO 8601 date.
        to_date: Filter entries on or before this ISO 8601 date.
        event_type: Filter by event type (exact match).
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry, newest first.
    """
    conditions: list[str] = []
    params: list[str | int] = []

    if negotiation_id is not None:
        conditions.append("negotiation_id = ?")
        params.append(negotiation_id)

    if campaign_id is not None:
        conditions.append("campaign_id = ?")
        params.append(campaign_id)

    if contract_id is not None:
        conditions.append("contract_id = ?")
        params.append(contract_id)

    if creator_email is not None:
        conditions.append("lower(creator_email) = lower(?)")
        params.append(creator_email)

    if from_date is not None:
        conditions.append("timestamp >= ?")
        params.append(from_date)

    if to_date is not None:
        conditions.append("timestamp <= ?")
        params.append(to_date)

    if event_type is not None:
        conditions.append("event_type = ?")
        params.append(event_type)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    query = f"SELECT * FROM audit_log {where_clause} ORDER BY timestamp DESC, id DESC LIMIT ?"
    params.append(limit)

    cursor = conn.cursor()
    cursor.row_factory = sqlite3.Row
    rows = cursor.execute(query, params).fetchall()

    results: list[dict[str, Any]] = []
    for row in rows:
        row_dict = dict(row)
        # Deserialize metadata JSON back to dict if present
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results


def close_audit_db(conn: sqlite3.Connection) -> None:
    """Close the audit database connection.

    Args:
        conn: The database connection to close.
    """
    conn.close()
