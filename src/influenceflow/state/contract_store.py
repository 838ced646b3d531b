"""SQLite persistence for contracts and their deliverables.

Deliverable ids and amounts are written once at generation.  Afterwards
only the completed/paid flags change, each through an update that only
touches rows not yet flagged.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal

from influenceflow.domain.errors import AlreadyExistsError
from influenceflow.domain.models import Contract, ContractDeliverable, Payment, PayoutDetails
from influenceflow.domain.types import ContractStatus, SignerRole
from influenceflow.state.base import (
    fetch_all,
    fetch_one,
    load_json,
    placeholders,
    to_iso,
    utcnow,
)
from influenceflow.state.payment_store import insert_payment_row


class ContractStore:
    """Store contracts, signatures and deliverable settlement flags."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, contract: Contract) -> None:
        """Insert a contract and its deliverables in one transaction.

        Raises:
            AlreadyExistsError: If the negotiation already has a contract.
        """
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO contracts (
                        id, negotiation_id, status, content, version,
                        signed_by_brand, brand_signed_at, signed_by_creator,
                        creator_signed_at, payment_details_json, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        contract.id,
                        contract.negotiation_id,
                        contract.status.value,
                        contract.content,
                        contract.version,
                        int(contract.signed_by_brand),
                        to_iso(contract.brand_signed_at),
                        int(contract.signed_by_creator),
                        to_iso(contract.creator_signed_at),
                        contract.payment_details.model_dump_json()
                        if contract.payment_details
                        else None,
                        to_iso(contract.created_at),
                        to_iso(contract.updated_at),
                    ),
                )
                self._conn.executemany(
                    """
                    INSERT INTO contract_deliverables (
                        id, contract_id, position, name, description, amount
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (d.id, contract.id, position, d.name, d.description, str(d.amount))
                        for position, d in enumerate(contract.deliverables)
                    ],
                )
        except sqlite3.IntegrityError as exc:
            raise AlreadyExistsError(
                f"A contract already exists for negotiation {contract.negotiation_id}"
            ) from exc

    def update_status(
        self,
        contract_id: str,
        *,
        expected: ContractStatus,
        new_status: ContractStatus,
    ) -> bool:
        cursor = self._conn.execute(
            "UPDATE contracts SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
            (new_status.value, to_iso(utcnow()), contract_id, expected.value),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    def record_signature(
        self,
        contract_id: str,
        role: SignerRole,
        signed_at: datetime,
        payment_details: PayoutDetails | None = None,
    ) -> bool:
        """Record one party's signature on a SENT contract.

        The second signature also moves the contract to SIGNED in the same
        transaction.

        Returns:
            True if the signature was recorded, False if the contract was
            not SENT or *role* had already signed.
        """
        flag, stamp = (
            ("signed_by_brand", "brand_signed_at")
            if role == SignerRole.BRAND
            else ("signed_by_creator", "creator_signed_at")
        )
        now = to_iso(signed_at)
        with self._conn:
            cursor = self._conn.execute(
                f"""
                UPDATE contracts SET
                    {flag} = 1,
                    {stamp} = ?,
                    payment_details_json = COALESCE(?, payment_details_json),
                    updated_at = ?
                WHERE id = ? AND status = ? AND {flag} = 0
                """,
                (
                    now,
                    payment_details.model_dump_json() if payment_details else None,
                    now,
                    contract_id,
                    ContractStatus.SENT.value,
                ),
            )
            if cursor.rowcount != 1:
                return False
            self._conn.execute(
                """
                UPDATE contracts SET status = ?
                WHERE id = ? AND status = ? AND signed_by_brand = 1 AND signed_by_creator = 1
                """,
                (ContractStatus.SIGNED.value, contract_id, ContractStatus.SENT.value),
            )
        return True

    def mark_completed(
        self, contract_id: str, deliverable_ids: Sequence[str], completed_at: datetime
    ) -> int:
        """Flag the given deliverables completed; already completed ones keep their time."""
        cursor = self._conn.execute(
            f"""
            UPDATE contract_deliverables SET completed = 1, completed_at = ?
            WHERE contract_id = ? AND completed = 0 AND id IN ({placeholders(deliverable_ids)})
            """,
            (to_iso(completed_at), contract_id, *deliverable_ids),
        )
        self._conn.commit()
        return cursor.rowcount

    def mark_paid(
        self,
        contract_id: str,
        deliverable_ids: Sequence[str],
        paid_at: datetime,
        ledger_entry: Payment,
    ) -> int:
        """Flag unpaid deliverables paid and append *ledger_entry* atomically.

        Returns:
            The number of deliverables newly marked paid.
        """
        with self._conn:
            cursor = self._conn.execute(
                f"""
                UPDATE contract_deliverables SET paid = 1, paid_at = ?
                WHERE contract_id = ? AND paid = 0 AND completed = 1
                  AND id IN ({placeholders(deliverable_ids)})
                """,
                (to_iso(paid_at), contract_id, *deliverable_ids),
            )
            insert_payment_row(self._conn, ledger_entry)
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, contract_id: str) -> Contract | None:
        row = fetch_one(self._conn, "SELECT * FROM contracts WHERE id = ?", (contract_id,))
        if row is None:
            return None
        return self._row_to_contract(row)

    def get_for_negotiation(self, negotiation_id: str) -> Contract | None:
        row = fetch_one(
            self._conn,
            "SELECT * FROM contracts WHERE negotiation_id = ?",
            (negotiation_id,),
        )
        if row is None:
            return None
        return self._row_to_contract(row)

    def list_for_campaign(
        self, campaign_id: str, status: ContractStatus | None = None
    ) -> list[Contract]:
        """Return the contracts of a campaign's negotiations, oldest first."""
        sql = """
            SELECT c.* FROM contracts c
            JOIN negotiations n ON n.id = c.negotiation_id
            WHERE n.campaign_id = ?
        """
        params: list[str] = [campaign_id]
        if status is not None:
            sql += " AND c.status = ?"
            params.append(status.value)
        rows = fetch_all(self._conn, sql + " ORDER BY c.created_at, c.rowid", tuple(params))
        return [self._row_to_contract(row) for row in rows]

    def _row_to_contract(self, row: sqlite3.Row) -> Contract:
        deliverable_rows = fetch_all(
            self._conn,
            "SELECT * FROM contract_deliverables WHERE contract_id = ? ORDER BY position",
            (row["id"],),
        )
        details_raw = load_json(row["payment_details_json"])
        return Contract(
            id=row["id"],
            negotiation_id=row["negotiation_id"],
            status=ContractStatus(row["status"]),
            content=row["content"],
            version=row["version"],
            signed_by_brand=bool(row["signed_by_brand"]),
            brand_signed_at=row["brand_signed_at"],
            signed_by_creator=bool(row["signed_by_creator"]),
            creator_signed_at=row["creator_signed_at"],
            deliverables=[
                ContractDeliverable(
                    id=d["id"],
                    name=d["name"],
                    description=d["description"],
                    amount=Decimal(d["amount"]),
                    completed=bool(d["completed"]),
                    completed_at=d["completed_at"],
                    paid=bool(d["paid"]),
                    paid_at=d["paid_at"],
                )
                for d in deliverable_rows
            ],
            payment_details=PayoutDetails(**details_raw) if details_raw else None,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
