"""Shared helpers for the SQLite stores: ids, timestamps, row access, JSON."""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any


class _DecimalEncoder(json.JSONEncoder):
    """JSON encoder that converts Decimal values to strings."""

    def default(self, o: object) -> Any:
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


def dump_json(value: Any) -> str:
    """JSON-encode *value*, converting Decimals to strings."""
    return json.dumps(value, cls=_DecimalEncoder)


def load_json(raw: str | None, default: Any = None) -> Any:
    """Decode a JSON column, returning *default* for NULL."""
    if raw is None:
        return default
    return json.loads(raw)


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Return the current UTC time."""
    return datetime.now(tz=UTC)


def to_iso(value: datetime | None) -> str | None:
    """Format a datetime for storage, keeping microseconds so ordering is stable."""
    if value is None:
        return None
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def fetch_one(
    conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()
) -> sqlite3.Row | None:
    """Run *sql* and return the first row with name-based access."""
    cursor = conn.cursor()
    cursor.row_factory = sqlite3.Row
    row: sqlite3.Row | None = cursor.execute(sql, params).fetchone()
    return row


def fetch_all(
    conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()
) -> list[sqlite3.Row]:
    """Run *sql* and return every row with name-based access."""
    cursor = conn.cursor()
    cursor.row_factory = sqlite3.Row
    return cursor.execute(sql, params).fetchall()


def placeholders(values: Sequence[Any]) -> str:
    """Return a ``?, ?, ...`` list sized for *values*."""
    return ", ".join("?" for _ in values)
