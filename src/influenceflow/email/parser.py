"""Inbound email content helpers.

Provides helpers for:
- Reducing an HTML body to plain text for the message log
- Classifying out-of-office, vacation and bounce messages as auto-replies
"""

from __future__ import annotations

import html as html_lib
import re
from collections.abc import Mapping

AUTO_REPLY_SUBJECT_MARKERS: tuple[str, ...] = (
    "out of office",
    "automatic reply",
    "auto:",
    "auto-reply",
    "automatic response",
    "away from my mail",
)


def html_to_text(html: str) -> str:
    """Strip tags from an HTML body and collapse the leftover whitespace.

    Block-level closing tags and ``<br>`` become line breaks so paragraphs
    stay readable.

    Args:
        html: The HTML body of an email.

    Returns:
        The plain-text rendering of *html*.
    """
    text = re.sub(r"(?is)<(script|style)[^>]*>.*?</\1>", "", html)
    text = re.sub(r"(?i)<br\s*/?>|</(p|div|li|tr|h[1-6])>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    text = html_lib.unescape(text)
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def is_auto_reply(subject: str, headers: Mapping[str, str]) -> bool:
    """Return True if the message looks machine-generated.

    Any one of these marks the message as an auto-reply:

    - ``Auto-Submitted`` present with a value other than ``no``/``false``
    - ``X-Auto-Response-Suppress`` present
    - a known auto-reply marker in the subject (case-insensitive)
    - ``Return-Path: <>`` (bounce)

    Args:
        subject: The message subject.
        headers: Header mapping with lower-cased names.

    Returns:
        True when the message should be ignored.
    """
    auto_submitted = headers.get("auto-submitted")
    if auto_submitted and auto_submitted.strip().lower() not in ("no", "false"):
        return True

    if "x-auto-response-suppress" in headers:
        return True

    lowered = subject.lower()
    if any(marker in lowered for marker in AUTO_REPLY_SUBJECT_MARKERS):
        return True

    return headers.get("return-path", "").strip() == "<>"
