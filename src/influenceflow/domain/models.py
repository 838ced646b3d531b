"""Pydantic v2 models for negotiations, terms, contracts and payments.

Monetary fields are ``Decimal`` throughout.  Aggregates are frozen: stores
return fresh instances and services derive updated copies with
``model_copy(update=...)`` before persisting them.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from influenceflow.domain.types import (
    AIMode,
    CampaignStatus,
    ContentType,
    ContractStatus,
    MessageSender,
    NegotiationStatus,
    PaymentStatus,
    PaymentType,
)

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round *value* to whole cents."""
    return value.quantize(CENT)


def to_cents(value: Decimal) -> int:
    """Convert a Decimal amount into an integer number of cents."""
    return int(quantize_money(value) * 100)


def _reject_float(v: object) -> object:
    if isinstance(v, float):
        raise ValueError("Use Decimal or string, not float, for monetary values")
    return v


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


class Campaign(BaseModel):
    """The slice of an externally owned campaign record the deal flow reads."""

    model_config = ConfigDict(frozen=True)

    id: str
    brand_id: str
    brand_name: str
    brand_email: str = ""
    title: str
    description: str = ""
    budget: Decimal = Decimal("0")
    start_date: str | None = None
    end_date: str | None = None
    status: CampaignStatus = CampaignStatus.DRAFT

    @field_validator("budget", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        return _reject_float(v)


# ---------------------------------------------------------------------------
# Negotiations and messages
# ---------------------------------------------------------------------------


class NegotiationParameters(BaseModel):
    """Informational creator metrics attached to a negotiation.

    Every field is optional.  Outreach rendering substitutes a neutral
    placeholder for anything missing rather than failing.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    follower_count: int | None = None
    engagement_rate: float | None = None
    niches: list[str] = Field(default_factory=list)
    location: str | None = None
    budget_min: Decimal | None = None
    budget_max: Decimal | None = None

    @field_validator("budget_min", "budget_max", mode="before")
    @classmethod
    def reject_float_budget(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        return _reject_float(v)

    @field_validator("follower_count")
    @classmethod
    def follower_count_not_negative(cls, v: int | None) -> int | None:
        """Ensure follower_count is not negative."""
        if v is not None and v < 0:
            raise ValueError("follower_count must not be negative")
        return v


class Negotiation(BaseModel):
    """One brand/creator conversation for one campaign."""

    model_config = ConfigDict(frozen=True)

    id: str
    campaign_id: str
    creator_id: str
    creator_email: str
    status: NegotiationStatus = NegotiationStatus.PENDING_OUTREACH
    ai_mode: AIMode = AIMode.AUTONOMOUS
    parameters: NegotiationParameters = Field(default_factory=NegotiationParameters)
    email_thread_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def creator_name(self) -> str:
        """Display name derived from the local part of the creator email."""
        return self.creator_email.split("@", 1)[0]


class EmailMetadata(BaseModel):
    """Correlation headers stored alongside an email-borne message."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    in_reply_to: str | None = None
    references: list[str] = Field(default_factory=list)
    from_address: str = ""
    to_address: str = ""
    subject: str = ""
    headers: dict[str, str] = Field(default_factory=dict)


class Message(BaseModel):
    """An immutable entry in a negotiation's message log."""

    model_config = ConfigDict(frozen=True)

    id: str
    negotiation_id: str
    sender: MessageSender
    content: str
    content_type: ContentType = ContentType.TEXT
    timestamp: datetime
    email_metadata: EmailMetadata | None = None


# ---------------------------------------------------------------------------
# Deal terms
# ---------------------------------------------------------------------------


class Milestone(BaseModel):
    """An intermediate checkpoint inside a deal timeline."""

    model_config = ConfigDict(frozen=True)

    date: str
    description: str


class Timeline(BaseModel):
    """Start/end dates of a deal as caller-supplied ISO date strings.

    Dates are not checked for chronological order.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    start_date: str
    end_date: str
    milestones: list[Milestone] = Field(default_factory=list)


class DealTermsInput(BaseModel):
    """Commercial terms as proposed or revised by the brand.

    ``deliverables`` must contain at least one entry while ``requirements``
    may be empty.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fee: Decimal
    deliverables: list[str]
    timeline: Timeline
    requirements: list[str] = Field(default_factory=list)
    revisions: int = 0

    @field_validator("fee", mode="before")
    @classmethod
    def coerce_fee(cls, v: object) -> object:
        """Route JSON floats through ``str`` so Decimal keeps the literal value."""
        if isinstance(v, float):
            return str(v)
        return v

    @field_validator("fee")
    @classmethod
    def fee_not_negative(cls, v: Decimal) -> Decimal:
        """Ensure the fee is zero or positive."""
        if v < 0:
            raise ValueError("fee must not be negative")
        return v

    @field_validator("deliverables")
    @classmethod
    def deliverables_not_empty(cls, v: list[str]) -> list[str]:
        """Ensure at least one non-blank deliverable is listed."""
        cleaned = [item.strip() for item in v]
        if not cleaned or any(not item for item in cleaned):
            raise ValueError("deliverables must contain at least one non-empty entry")
        return cleaned

    @field_validator("revisions")
    @classmethod
    def revisions_not_negative(cls, v: int) -> int:
        """Ensure the revision count is zero or positive."""
        if v < 0:
            raise ValueError("revisions must not be negative")
        return v


class DealTerms(BaseModel):
    """The single terms object of a negotiation."""

    model_config = ConfigDict(frozen=True)

    id: str
    negotiation_id: str
    fee: Decimal
    deliverables: list[str]
    timeline: Timeline
    requirements: list[str] = Field(default_factory=list)
    revisions: int = 0
    approved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_approved(self) -> bool:
        """Return True once the brand has approved the terms."""
        return self.approved_at is not None


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class PayoutDetails(BaseModel):
    """Creator payout destination captured with the creator's signature."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    account_number: str
    routing_number: str | None = None
    account_type: str | None = None
    bank_name: str | None = None
    ifsc_code: str | None = None

    @field_validator("account_number")
    @classmethod
    def account_number_present(cls, v: str) -> str:
        """Ensure the account number is not blank."""
        if not v.strip():
            raise ValueError("account_number must not be empty")
        return v.strip()


class ContractDeliverable(BaseModel):
    """A line item of a contract with its fixed amount and settlement flags."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    amount: Decimal
    completed: bool = False
    completed_at: datetime | None = None
    paid: bool = False
    paid_at: datetime | None = None


class Contract(BaseModel):
    """A rendered agreement generated from a negotiation's terms."""

    model_config = ConfigDict(frozen=True)

    id: str
    negotiation_id: str
    status: ContractStatus = ContractStatus.DRAFT
    content: str
    version: int = 1
    signed_by_brand: bool = False
    brand_signed_at: datetime | None = None
    signed_by_creator: bool = False
    creator_signed_at: datetime | None = None
    deliverables: list[ContractDeliverable] = Field(default_factory=list)
    payment_details: PayoutDetails | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def fully_signed(self) -> bool:
        """Return True when both parties have signed."""
        return self.signed_by_brand and self.signed_by_creator

    @property
    def total_amount(self) -> Decimal:
        """Return the sum of all deliverable amounts."""
        return sum((d.amount for d in self.deliverables), Decimal("0"))


class PublicContract(BaseModel):
    """The view of a contract shown to signers through the signing link.

    Leaves out the creator's payout details.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    negotiation_id: str
    status: ContractStatus
    content: str
    version: int
    signed_by_brand: bool
    brand_signed_at: datetime | None = None
    signed_by_creator: bool
    creator_signed_at: datetime | None = None
    deliverables: list[ContractDeliverable] = Field(default_factory=list)
    campaign_title: str = ""

    @classmethod
    def from_contract(cls, contract: Contract, campaign_title: str = "") -> PublicContract:
        return cls(
            **contract.model_dump(exclude={"payment_details", "created_at", "updated_at"}),
            campaign_title=campaign_title,
        )


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class Payment(BaseModel):
    """An entry in the payment ledger."""

    model_config = ConfigDict(frozen=True)

    id: str
    campaign_id: str
    contract_id: str | None = None
    creator_id: str | None = None
    amount: Decimal
    type: PaymentType
    status: PaymentStatus = PaymentStatus.PENDING
    gateway_session_id: str | None = None
    gateway_transaction_id: str | None = None
    completed_at: datetime | None = None
    created_at: datetime

    @field_validator("amount", mode="before")
    @classmethod
    def reject_float_inputs(cls, v: object) -> object:
        """Reject float inputs for monetary fields to prevent precision errors."""
        return _reject_float(v)
