"""Pydantic v2 models for the email domain.

Provides frozen (immutable) models for inbound webhook payloads, outbound
messages handed to a transport, and the transport's send receipt.  Message
identifiers are normalized to their angle-bracketed RFC 5322 form and header
names are lower-cased at this boundary so the rest of the code never has to.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from influenceflow.email.threading import normalize_message_id, parse_references


class InboundEmail(BaseModel):
    """An inbound email as delivered by the mail provider's webhook.

    Accepts the provider's camelCase keys (``messageId``, ``inReplyTo``) as
    well as the snake_case field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_address: str = Field(alias="from")
    to_address: str = Field(default="", alias="to")
    subject: str = ""
    text: str = ""
    html: str | None = None
    message_id: str = Field(alias="messageId")
    in_reply_to: str | None = Field(default=None, alias="inReplyTo")
    references: list[str] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("from_address", "message_id")
    @classmethod
    def required_not_blank(cls, v: str) -> str:
        """Reject blank values for fields the correlator depends on."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("message_id")
    @classmethod
    def normalize_id(cls, v: str) -> str:
        return normalize_message_id(v)

    @field_validator("in_reply_to", mode="before")
    @classmethod
    def normalize_in_reply_to(cls, v: object) -> object:
        """Treat blank In-Reply-To as absent and normalize the rest."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, str):
            return normalize_message_id(v)
        return v

    @field_validator("references", mode="before")
    @classmethod
    def split_references(cls, v: object) -> object:
        """Accept a raw ``References`` header string or a list of ids."""
        if v is None:
            return []
        if isinstance(v, str):
            return parse_references(v)
        if isinstance(v, list):
            return [normalize_message_id(str(item)) for item in v if str(item).strip()]
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def lower_header_names(cls, v: object) -> object:
        """Lower-case header names and join multi-valued headers."""
        if not isinstance(v, dict):
            return v
        normalized: dict[str, str] = {}
        for name, value in v.items():
            normalized[str(name).lower()] = _header_value(value)
        return normalized

    def header(self, name: str) -> str | None:
        """Return a header value by case-insensitive name."""
        return self.headers.get(name.lower())


def _header_value(value: Any) -> str:
    if isinstance(value, list | tuple):
        return ", ".join(str(item) for item in value)
    return "" if value is None else str(value)


class OutboundEmail(BaseModel):
    """An outbound email to be handed to a transport.

    ``message_id`` is generated by the application so the message can be
    correlated when the creator replies.
    """

    model_config = ConfigDict(frozen=True)

    to: str
    subject: str
    text: str
    html: str | None = None
    message_id: str
    in_reply_to: str | None = None
    references: list[str] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)


class SendResult(BaseModel):
    """Receipt returned by a transport after a successful send."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    provider_id: str | None = None

    @field_validator("message_id")
    @classmethod
    def normalize_id(cls, v: str) -> str:
        return normalize_message_id(v)
