"""Email domain: models, threading headers, content parsing, and transports.

The mailer and correlator live in :mod:`influenceflow.email.mailer` and
:mod:`influenceflow.email.correlator`; they depend on the negotiation
lifecycle and are imported from there directly.
"""

from influenceflow.email.client import (
    EmailTransport,
    GmailClient,
    LoggingTransport,
    build_mime_message,
)
from influenceflow.email.models import InboundEmail, OutboundEmail, SendResult
from influenceflow.email.parser import html_to_text, is_auto_reply
from influenceflow.email.threading import (
    build_references,
    generate_message_id,
    normalize_message_id,
    parse_references,
    reply_subject,
)

__all__ = [
    "EmailTransport",
    "GmailClient",
    "InboundEmail",
    "LoggingTransport",
    "OutboundEmail",
    "SendResult",
    "build_mime_message",
    "build_references",
    "generate_message_id",
    "html_to_text",
    "is_auto_reply",
    "normalize_message_id",
    "parse_references",
    "reply_subject",
]
