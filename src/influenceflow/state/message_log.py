"""Append-only message log for negotiations.

Messages are never updated or deleted.  Ordering is by the
application-assigned timestamp, with insertion order breaking ties.
"""

from __future__ import annotations

import sqlite3

from influenceflow.domain.errors import AlreadyExistsError
from influenceflow.domain.models import EmailMetadata, Message
from influenceflow.domain.types import ContentType, MessageSender
from influenceflow.state.base import fetch_all, fetch_one, load_json, to_iso


class MessageLog:
    """Store and query negotiation messages."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def append(self, message: Message) -> Message:
        """Append *message* to the log.

        Raises:
            AlreadyExistsError: If a message with the same email Message-ID
                was already stored.
        """
        metadata = message.email_metadata
        try:
            self._conn.execute(
                """
                INSERT INTO messages (
                    id, negotiation_id, sender, content, content_type,
                    timestamp, email_message_id, email_metadata_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.negotiation_id,
                    message.sender.value,
                    message.content,
                    message.content_type.value,
                    to_iso(message.timestamp),
                    metadata.message_id if metadata else None,
                    metadata.model_dump_json() if metadata else None,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise AlreadyExistsError(
                f"Message {metadata.message_id if metadata else message.id} already logged"
            ) from exc
        return message

    def get_by_email_message_id(self, email_message_id: str) -> Message | None:
        """Return the message carrying *email_message_id*, if any."""
        row = fetch_one(
            self._conn,
            "SELECT * FROM messages WHERE email_message_id = ?",
            (email_message_id,),
        )
        if row is None:
            return None
        return _row_to_message(row)

    def list_for_negotiation(self, negotiation_id: str) -> list[Message]:
        rows = fetch_all(
            self._conn,
            "SELECT * FROM messages WHERE negotiation_id = ? ORDER BY timestamp, rowid",
            (negotiation_id,),
        )
        return [_row_to_message(row) for row in rows]

    def email_message_ids(self, negotiation_id: str) -> list[str]:
        """Return the thread's email Message-IDs in chronological order."""
        rows = fetch_all(
            self._conn,
            """
            SELECT email_message_id FROM messages
            WHERE negotiation_id = ? AND email_message_id IS NOT NULL
            ORDER BY timestamp, rowid
            """,
            (negotiation_id,),
        )
        return [row["email_message_id"] for row in rows]


def _row_to_message(row: sqlite3.Row) -> Message:
    metadata_raw = load_json(row["email_metadata_json"])
    return Message(
        id=row["id"],
        negotiation_id=row["negotiation_id"],
        sender=MessageSender(row["sender"]),
        content=row["content"],
        content_type=ContentType(row["content_type"]),
        timestamp=row["timestamp"],
        email_metadata=EmailMetadata(**metadata_raw) if metadata_raw else None,
    )
