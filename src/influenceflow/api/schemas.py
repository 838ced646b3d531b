"""Request bodies accepted by the HTTP API."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from influenceflow.domain.models import NegotiationParameters, PayoutDetails
from influenceflow.domain.types import AIMode, CampaignStatus, MessageSender, SignerRole


class CampaignRegistration(BaseModel):
    model_config = ConfigDict(extra="forbid")

    brand_id: str
    brand_name: str
    brand_email: str = ""
    title: str
    description: str = ""
    budget: Decimal = Decimal("0")
    start_date: str | None = None
    end_date: str | None = None

    @field_validator("budget", mode="before")
    @classmethod
    def coerce_budget(cls, v: object) -> object:
        return str(v) if isinstance(v, float) else v


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus


class FundingRequest(BaseModel):
    """Body of ``POST /campaigns/{id}/fund``."""

    amount: Decimal
    return_url: str
    description: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: object) -> object:
        """Route JSON floats through ``str`` so Decimal keeps the literal value."""
        return str(v) if isinstance(v, float) else v


class NegotiationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    campaign_id: str
    creator_id: str
    creator_email: str
    parameters: NegotiationParameters | None = None
    ai_mode: AIMode = AIMode.AUTONOMOUS

    @field_validator("creator_email")
    @classmethod
    def email_shape(cls, v: str) -> str:
        """Require something that looks like an address."""
        if "@" not in v or not v.split("@", 1)[0].strip():
            raise ValueError("creator_email must be an email address")
        return v.strip()


class AIModeUpdate(BaseModel):
    ai_mode: AIMode


class OutreachRequest(BaseModel):
    """Optional overrides for the default outreach email."""

    subject: str | None = None
    text: str | None = None
    html: str | None = None


class MessageCreate(BaseModel):
    text: str = Field(min_length=1)
    sender: MessageSender
    subject: str | None = None
    html: str | None = None
    reply_to_message_id: str | None = None


class SignatureRequest(BaseModel):
    role: SignerRole
    signer_identity: str
    payout_details: PayoutDetails | None = None


class SettlementRequest(BaseModel):
    deliverable_ids: list[str]
