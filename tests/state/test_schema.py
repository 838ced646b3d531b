"""Tests for the deal database schema."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from influenceflow.state.schema import init_deal_db, init_deal_tables

EXPECTED_TABLES = {
    "campaigns",
    "negotiations",
    "negotiation_transitions",
    "messages",
    "deal_terms",
    "contracts",
    "contract_deliverables",
    "payments",
}


def _tables(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


class TestSchema:
    def test_creates_every_table(self, deal_conn: sqlite3.Connection):
        assert EXPECTED_TABLES <= _tables(deal_conn)

    def test_init_is_idempotent(self, deal_conn: sqlite3.Connection):
        init_deal_tables(deal_conn)
        assert EXPECTED_TABLES <= _tables(deal_conn)

    def test_foreign_keys_enabled(self, deal_conn: sqlite3.Connection):
        assert deal_conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_file_database_creates_parent_directory(self, tmp_path: Path):
        db_path = tmp_path / "nested" / "deals.db"
        conn = init_deal_db(db_path)
        try:
            assert db_path.exists()
            assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        finally:
            conn.close()

    def test_deliverable_cannot_be_paid_before_completed(self, deal_conn: sqlite3.Connection):
        deal_conn.execute("PRAGMA foreign_keys=OFF")
        with pytest.raises(sqlite3.IntegrityError):
            deal_conn.execute(
                "INSERT INTO contract_deliverables (id, contract_id, position, name, amount, paid)"
                " VALUES ('d1', 'c1', 0, 'post', '10', 1)"
            )
