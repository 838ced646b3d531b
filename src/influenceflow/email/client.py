"""Outbound email transports.

Provides the ``EmailTransport`` protocol the mailer depends on, the
``GmailClient`` that sends through the Gmail API, and ``LoggingTransport``
which only logs, for development without credentials.
"""

from __future__ import annotations

import base64
from email.message import EmailMessage
from typing import Any, Protocol

import structlog

from influenceflow.email.models import OutboundEmail, SendResult
from influenceflow.resilience.retry import resilient_api_call

logger = structlog.get_logger()

# Mail servers that honour this header suppress vacation responders.
AUTO_RESPONSE_SUPPRESS = "OOF, AutoReply"


class EmailTransport(Protocol):
    """Anything that can deliver an ``OutboundEmail``."""

    def send(self, outbound: OutboundEmail) -> SendResult: ...


def build_mime_message(outbound: OutboundEmail, from_email: str) -> EmailMessage:
    """Compose the RFC 5322 message for *outbound*.

    Sets the application-owned ``Message-ID`` and the threading headers, and
    adds an HTML alternative part when ``outbound.html`` is present.

    Args:
        outbound: The email to compose.
        from_email: Address for the ``From`` header.

    Returns:
        The composed ``EmailMessage``.
    """
    message = EmailMessage()
    message.set_content(outbound.text)
    if outbound.html:
        message.add_alternative(outbound.html, subtype="html")

    message["To"] = outbound.to
    message["From"] = from_email
    message["Subject"] = outbound.subject
    message["Message-ID"] = outbound.message_id
    message["X-Auto-Response-Suppress"] = AUTO_RESPONSE_SUPPRESS

    if outbound.in_reply_to:
        message["In-Reply-To"] = outbound.in_reply_to
    if outbound.references:
        message["References"] = " ".join(outbound.references)

    for name, value in outbound.headers.items():
        message[name] = value

    return message


class GmailClient:
    """Wrapper around the Gmail API service for sending negotiation mail.

    All methods operate through the provided Gmail API service resource
    (obtained via ``build_gmail_service``).  No real network calls are made
    by this class directly -- the service object handles transport.

    Args:
        service: An authenticated Gmail API v1 service resource.
        from_email: The email address to use as the ``From`` header.
    """

    def __init__(self, service: Any, from_email: str) -> None:
        self._service = service
        self._from_email = from_email

    @resilient_api_call("gmail")
    def send(self, outbound: OutboundEmail) -> SendResult:
        """Compose and send an email via the Gmail API.

        Constructs the MIME message, base64url-encodes it, and sends via
        ``users.messages.send``.  Gmail may rewrite ``Message-ID`` on
        delivery, so the header is read back from the sent message and the
        stored value is what the creator's client will reply to.

        Args:
            outbound: The email to send.

        Returns:
            A ``SendResult`` with the effective Message-ID and Gmail's
            internal message id.
        """
        message = build_mime_message(outbound, self._from_email)
        encoded = base64.urlsafe_b64encode(message.as_bytes()).decode()

        result: dict[str, Any] = (
            self._service.users().messages().send(userId="me", body={"raw": encoded}).execute()
        )
        gmail_id = result.get("id")
        effective_id = self._read_message_id(gmail_id) if gmail_id else None

        return SendResult(message_id=effective_id or outbound.message_id, provider_id=gmail_id)

    def _read_message_id(self, gmail_id: str) -> str | None:
        meta: dict[str, Any] = (
            self._service.users()
            .messages()
            .get(userId="me", id=gmail_id, format="metadata", metadataHeaders=["Message-ID"])
            .execute()
        )
        headers = {
            h["name"].lower(): h["value"] for h in meta.get("payload", {}).get("headers", [])
        }
        return headers.get("message-id")


class LoggingTransport:
    """Development transport that logs each email instead of sending it."""

    def __init__(self, from_email: str = "") -> None:
        self._from_email = from_email
        self.sent: list[OutboundEmail] = []

    def send(self, outbound: OutboundEmail) -> SendResult:
        self.sent.append(outbound)
        logger.info(
            "email_send_simulated",
            to=outbound.to,
            subject=outbound.subject,
            message_id=outbound.message_id,
            in_reply_to=outbound.in_reply_to,
            references=outbound.references,
        )
        return SendResult(message_id=outbound.message_id)
