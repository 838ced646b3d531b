"""SQLite-backed stores for campaigns and negotiations.

Mirrors the AuditLogger pattern: accepts a sqlite3.Connection, uses
parameterized queries exclusively, and commits synchronously after writes.
Status changes are conditional on the status the caller read, so a stale
snapshot can never overwrite a newer transition.
"""

from __future__ import annotations

import sqlite3
from decimal import Decimal

from influenceflow.domain.errors import AlreadyExistsError
from influenceflow.domain.models import Campaign, Negotiation, NegotiationParameters
from influenceflow.domain.types import (
    AIMode,
    CampaignStatus,
    NegotiationStatus,
)
from influenceflow.state.base import fetch_all, fetch_one, load_json, to_iso, utcnow
from influenceflow.state_machine.machine import HistoryEntry


class CampaignStore:
    """Persist the campaign records the deal pipeline depends on."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def upsert(self, campaign: Campaign) -> Campaign:
        """Insert or refresh a campaign, preserving ``created_at`` and status.

        Args:
            campaign: The campaign as owned by the upstream campaign service.

        Returns:
            The campaign as stored.
        """
        now = to_iso(utcnow())
        self._conn.execute(
            """
            INSERT INTO campaigns (
                id, brand_id, brand_name, brand_email, title, description,
                budget, start_date, end_date, status, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (id) DO UPDATE SET
                brand_id = excluded.brand_id,
                brand_name = excluded.brand_name,
                brand_email = excluded.brand_email,
                title = excluded.title,
                description = excluded.description,
                budget = excluded.budget,
                start_date = excluded.start_date,
                end_date = excluded.end_date,
                updated_at = excluded.updated_at
            """,
            (
                campaign.id,
                campaign.brand_id,
                campaign.brand_name,
                campaign.brand_email,
                campaign.title,
                campaign.description,
                str(campaign.budget),
                campaign.start_date,
                campaign.end_date,
                campaign.status.value,
                now,
                now,
            ),
        )
        self._conn.commit()
        return self.get(campaign.id) or campaign

    def get(self, campaign_id: str) -> Campaign | None:
        row = fetch_one(self._conn, "SELECT * FROM campaigns WHERE id = ?", (campaign_id,))
        if row is None:
            return None
        return Campaign(
            id=row["id"],
            brand_id=row["brand_id"],
            brand_name=row["brand_name"],
            brand_email=row["brand_email"],
            title=row["title"],
            description=row["description"],
            budget=Decimal(row["budget"]),
            start_date=row["start_date"],
            end_date=row["end_date"],
            status=CampaignStatus(row["status"]),
        )

    def set_status(self, campaign_id: str, status: CampaignStatus) -> None:
        self._conn.execute(
            "UPDATE campaigns SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, to_iso(utcnow()), campaign_id),
        )
        self._conn.commit()

    def delete(self, campaign_id: str) -> None:
        """Delete a campaign; its negotiations and payments cascade with it."""
        self._conn.execute("DELETE FROM campaigns WHERE id = ?", (campaign_id,))
        self._conn.commit()


class NegotiationStore:
    """Persist negotiations and their status transition history."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  deal tables (see ``init_deal_tables``).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, negotiation: Negotiation) -> None:
        """Insert a new negotiation.

        Raises:
            AlreadyExistsError: If an active negotiation already exists for
                the same campaign and creator email.
        """
        try:
            self._conn.execute(
                """
                INSERT INTO negotiations (
                    id, campaign_id, creator_id, creator_email, status, ai_mode,
                    parameters_json, email_thread_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    negotiation.id,
                    negotiation.campaign_id,
                    negotiation.creator_id,
                    negotiation.creator_email,
                    negotiation.status.value,
                    negotiation.ai_mode.value,
                    negotiation.parameters.model_dump_json(),
                    negotiation.email_thread_id,
                    to_iso(negotiation.created_at),
                    to_iso(negotiation.updated_at),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise AlreadyExistsError(
                f"An active negotiation already exists for {negotiation.creator_email} "
                f"in campaign {negotiation.campaign_id}"
            ) from exc

    def transition(
        self,
        negotiation_id: str,
        expected: NegotiationStatus,
        event: str,
        new_status: NegotiationStatus,
    ) -> bool:
        """Move a negotiation from *expected* to *new_status* and record history.

        The update only applies when the stored status still equals
        *expected*; the history row is written in the same transaction.

        Returns:
            True if the row was updated, False if the stored status differed.
        """
        now = to_iso(utcnow())
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE negotiations SET status = ?, updated_at = ? WHERE id = ? AND status = ?",
                (new_status.value, now, negotiation_id, expected.value),
            )
            if cursor.rowcount != 1:
                return False
            self._conn.execute(
                """
                INSERT INTO negotiation_transitions (
                    negotiation_id, from_status, event, to_status, created_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (negotiation_id, expected.value, event, new_status.value, now),
            )
        return True

    def set_ai_mode(self, negotiation_id: str, ai_mode: AIMode) -> None:
        self._conn.execute(
            "UPDATE negotiations SET ai_mode = ?, updated_at = ? WHERE id = ?",
            (ai_mode.value, to_iso(utcnow()), negotiation_id),
        )
        self._conn.commit()

    def set_parameters(self, negotiation_id: str, parameters: NegotiationParameters) -> None:
        self._conn.execute(
            "UPDATE negotiations SET parameters_json = ?, updated_at = ? WHERE id = ?",
            (parameters.model_dump_json(), to_iso(utcnow()), negotiation_id),
        )
        self._conn.commit()

    def set_thread_id_if_absent(self, negotiation_id: str, message_id: str) -> bool:
        """Anchor the thread on *message_id* unless an anchor already exists."""
        cursor = self._conn.execute(
            """
            UPDATE negotiations SET email_thread_id = ?, updated_at = ?
            WHERE id = ? AND email_thread_id IS NULL
            """,
            (message_id, to_iso(utcnow()), negotiation_id),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, negotiation_id: str) -> Negotiation | None:
        row = fetch_one(self._conn, "SELECT * FROM negotiations WHERE id = ?", (negotiation_id,))
        if row is None:
            return None
        return _row_to_negotiation(row)

    def list_for_campaign(
        self, campaign_id: str, creator_id: str | None = None
    ) -> list[Negotiation]:
        """Return a campaign's negotiations, oldest first, optionally for one creator."""
        sql = "SELECT * FROM negotiations WHERE campaign_id = ?"
        params: list[str] = [campaign_id]
        if creator_id is not None:
            sql += " AND creator_id = ?"
            params.append(creator_id)
        rows = fetch_all(self._conn, sql + " ORDER BY created_at, rowid", tuple(params))
        return [_row_to_negotiation(row) for row in rows]

    def count_open(self) -> int:
        """Return how many negotiations have not reached a terminal status."""
        row = fetch_one(
            self._conn,
            "SELECT COUNT(*) AS n FROM negotiations WHERE status NOT IN (?, ?, ?)",
            (
                NegotiationStatus.DONE.value,
                NegotiationStatus.REJECTED.value,
                NegotiationStatus.FAILED.value,
            ),
        )
        return int(row["n"]) if row is not None else 0

    def load_history(self, negotiation_id: str) -> list[HistoryEntry]:
        """Return the ``(from, event, to)`` history in chronological order."""
        rows = fetch_all(
            self._conn,
            """
            SELECT from_status, event, to_status FROM negotiation_transitions
            WHERE negotiation_id = ? ORDER BY id
            """,
            (negotiation_id,),
        )
        return [
            (NegotiationStatus(row["from_status"]), row["event"], NegotiationStatus(row["to_status"]))
            for row in rows
        ]


def _row_to_negotiation(row: sqlite3.Row) -> Negotiation:
    return Negotiation(
        id=row["id"],
        campaign_id=row["campaign_id"],
        creator_id=row["creator_id"],
        creator_email=row["creator_email"],
        status=NegotiationStatus(row["status"]),
        ai_mode=AIMode(row["ai_mode"]),
        parameters=NegotiationParameters(**load_json(row["parameters_json"], {})),
        email_thread_id=row["email_thread_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
