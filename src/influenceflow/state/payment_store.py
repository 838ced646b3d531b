"""SQLite persistence for the payment ledger."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from influenceflow.domain.models import Payment
from influenceflow.domain.types import PaymentStatus, PaymentType
from influenceflow.state.base import fetch_all, fetch_one, placeholders, to_iso

_INSERT_PAYMENT = """
    INSERT INTO payments (
        id, campaign_id, contract_id, creator_id, amount, type, status,
        gateway_session_id, gateway_transaction_id, completed_at, created_at
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def insert_payment_row(conn: sqlite3.Connection, payment: Payment) -> None:
    """Execute the payment INSERT without committing.

    Lets other stores append a ledger entry inside their own transaction.
    """
    conn.execute(
        _INSERT_PAYMENT,
        (
            payment.id,
            payment.campaign_id,
            payment.contract_id,
            payment.creator_id,
            str(payment.amount),
            payment.type.value,
            payment.status.value,
            payment.gateway_session_id,
            payment.gateway_transaction_id,
            to_iso(payment.completed_at),
            to_iso(payment.created_at),
        ),
    )


class PaymentStore:
    """Append and query payment ledger entries."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, payment: Payment) -> Payment:
        insert_payment_row(self._conn, payment)
        self._conn.commit()
        return payment

    def attach_session(self, payment_id: str, session_id: str) -> None:
        self._conn.execute(
            "UPDATE payments SET gateway_session_id = ? WHERE id = ?",
            (session_id, payment_id),
        )
        self._conn.commit()

    def update_status(
        self,
        payment_id: str,
        *,
        expected: Iterable[PaymentStatus],
        new_status: PaymentStatus,
        transaction_id: str | None = None,
        completed_at: datetime | None = None,
    ) -> bool:
        """Change a payment's status if it is currently one of *expected*.

        Returns:
            True if the row changed, False if its status was not expected.
        """
        expected_values = [status.value for status in expected]
        cursor = self._conn.execute(
            f"""
            UPDATE payments SET
                status = ?,
                gateway_transaction_id = COALESCE(?, gateway_transaction_id),
                completed_at = COALESCE(?, completed_at)
            WHERE id = ? AND status IN ({placeholders(expected_values)})
            """,
            (
                new_status.value,
                transaction_id,
                to_iso(completed_at),
                payment_id,
                *expected_values,
            ),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, payment_id: str) -> Payment | None:
        row = fetch_one(self._conn, "SELECT * FROM payments WHERE id = ?", (payment_id,))
        return _row_to_payment(row) if row is not None else None

    def get_by_session(self, session_id: str) -> Payment | None:
        row = fetch_one(
            self._conn, "SELECT * FROM payments WHERE gateway_session_id = ?", (session_id,)
        )
        return _row_to_payment(row) if row is not None else None

    def list_for_campaign(self, campaign_id: str) -> list[Payment]:
        rows = fetch_all(
            self._conn,
            "SELECT * FROM payments WHERE campaign_id = ? ORDER BY created_at, rowid",
            (campaign_id,),
        )
        return [_row_to_payment(row) for row in rows]

    def list_for_contract(self, contract_id: str) -> list[Payment]:
        rows = fetch_all(
            self._conn,
            "SELECT * FROM payments WHERE contract_id = ? ORDER BY created_at, rowid",
            (contract_id,),
        )
        return [_row_to_payment(row) for row in rows]

    def has_deposit(self, campaign_id: str, statuses: Iterable[PaymentStatus]) -> bool:
        """Return True if the campaign has a DEPOSIT in one of *statuses*."""
        status_values = [status.value for status in statuses]
        row = fetch_one(
            self._conn,
            f"""
            SELECT 1 FROM payments
            WHERE campaign_id = ? AND type = ? AND status IN ({placeholders(status_values)})
            LIMIT 1
            """,
            (campaign_id, PaymentType.DEPOSIT.value, *status_values),
        )
        return row is not None


def _row_to_payment(row: sqlite3.Row) -> Payment:
    return Payment(
        id=row["id"],
        campaign_id=row["campaign_id"],
        contract_id=row["contract_id"],
        creator_id=row["creator_id"],
        amount=Decimal(row["amount"]),
        type=PaymentType(row["type"]),
        status=PaymentStatus(row["status"]),
        gateway_session_id=row["gateway_session_id"],
        gateway_transaction_id=row["gateway_transaction_id"],
        completed_at=row["completed_at"],
        created_at=row["created_at"],
    )
