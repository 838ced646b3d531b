"""SQLite persistence for deal terms (at most one row per negotiation)."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from decimal import Decimal

from influenceflow.domain.errors import AlreadyExistsError
from influenceflow.domain.models import DealTerms, DealTermsInput, Timeline
from influenceflow.state.base import dump_json, fetch_one, load_json, to_iso, utcnow


class TermsStore:
    """Store proposed and approved deal terms."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def insert(self, terms: DealTerms) -> None:
        """Insert the first terms of a negotiation.

        Raises:
            AlreadyExistsError: If the negotiation already has terms.
        """
        try:
            self._conn.execute(
                """
                INSERT INTO deal_terms (
                    id, negotiation_id, fee, deliverables_json, timeline_json,
                    requirements_json, revisions, approved_at, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    terms.id,
                    terms.negotiation_id,
                    str(terms.fee),
                    dump_json(terms.deliverables),
                    terms.timeline.model_dump_json(),
                    dump_json(terms.requirements),
                    terms.revisions,
                    to_iso(terms.approved_at),
                    to_iso(terms.created_at),
                    to_iso(terms.updated_at),
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise AlreadyExistsError(
                f"Terms already exist for negotiation {terms.negotiation_id}; use revise"
            ) from exc

    def update_if_unapproved(self, negotiation_id: str, terms: DealTermsInput) -> bool:
        """Replace the editable fields in place while ``approved_at`` is NULL.

        Returns:
            True if the row was updated, False if it was missing or approved.
        """
        cursor = self._conn.execute(
            """
            UPDATE deal_terms SET
                fee = ?, deliverables_json = ?, timeline_json = ?,
                requirements_json = ?, revisions = ?, updated_at = ?
            WHERE negotiation_id = ? AND approved_at IS NULL
            """,
            (
                str(terms.fee),
                dump_json(terms.deliverables),
                terms.timeline.model_dump_json(),
                dump_json(terms.requirements),
                terms.revisions,
                to_iso(utcnow()),
                negotiation_id,
            ),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    def approve(self, negotiation_id: str, approved_at: datetime) -> bool:
        """Set ``approved_at`` once; returns False if already approved."""
        cursor = self._conn.execute(
            """
            UPDATE deal_terms SET approved_at = ?, updated_at = ?
            WHERE negotiation_id = ? AND approved_at IS NULL
            """,
            (to_iso(approved_at), to_iso(approved_at), negotiation_id),
        )
        self._conn.commit()
        return cursor.rowcount == 1

    def get_for_negotiation(self, negotiation_id: str) -> DealTerms | None:
        row = fetch_one(
            self._conn,
            "SELECT * FROM deal_terms WHERE negotiation_id = ?",
            (negotiation_id,),
        )
        if row is None:
            return None
        return DealTerms(
            id=row["id"],
            negotiation_id=row["negotiation_id"],
            fee=Decimal(row["fee"]),
            deliverables=load_json(row["deliverables_json"], []),
            timeline=Timeline.model_validate_json(row["timeline_json"]),
            requirements=load_json(row["requirements_json"], []),
            revisions=row["revisions"],
            approved_at=row["approved_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
