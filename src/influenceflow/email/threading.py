"""Message-ID generation and References chain management.

Provides helpers for:
- Generating application-owned RFC 5322 Message-IDs
- Normalizing identifiers and parsing ``References`` headers
- Building the ``References`` chain for an outbound message
- Prefixing reply subjects
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterable

_BRACKETED_ID = re.compile(r"<[^<>\s]+>")


def normalize_message_id(raw: str) -> str:
    """Return *raw* stripped and wrapped in angle brackets."""
    value = raw.strip()
    if not value.startswith("<"):
        value = f"<{value}"
    if not value.endswith(">"):
        value = f"{value}>"
    return value


def generate_message_id(domain: str) -> str:
    """Return a fresh, globally unique Message-ID on *domain*."""
    return f"<{uuid.uuid4()}@{domain}>"


def parse_references(header: str) -> list[str]:
    """Split a ``References`` header into normalized ids, preserving order.

    Bracketed ids are extracted wherever they appear; a header without
    brackets is split on whitespace and commas.
    """
    found = _BRACKETED_ID.findall(header)
    if not found:
        found = [part for part in re.split(r"[\s,]+", header) if part]
    return dedupe_ids(normalize_message_id(item) for item in found)


def dedupe_ids(ids: Iterable[str]) -> list[str]:
    """Drop repeated ids, keeping the first occurrence."""
    seen: set[str] = set()
    result: list[str] = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def build_references(prior_ids: Iterable[str], reply_to: str | None) -> list[str]:
    """Build the ``References`` chain for a new message in a thread.

    Args:
        prior_ids: Message-IDs already in the thread, oldest first.
        reply_to: The Message-ID being replied to, if any.

    Returns:
        The prior ids deduplicated in chronological order, followed by
        *reply_to* if it is not already part of the chain.
    """
    chain = list(prior_ids)
    if reply_to is not None:
        chain.append(reply_to)
    return dedupe_ids(chain)


def reply_subject(subject: str) -> str:
    """Prefix *subject* with ``Re: `` unless it already is a reply (case-insensitive)."""
    if subject.lower().startswith("re:"):
        return subject
    return f"Re: {subject}"
