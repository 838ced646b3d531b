"""Domain types, models, and errors for the deal pipeline."""

from influenceflow.domain.errors import (
    AlreadyApprovedError,
    AlreadyExistsError,
    CampaignNotFundedError,
    ExternalServiceError,
    ImmutableTermsError,
    InfluenceFlowError,
    InvalidDeliverableError,
    InvalidInputError,
    InvalidModeError,
    InvalidStateError,
    InvalidTransitionError,
    MissingPayoutDetailsError,
    NotFoundError,
    NothingToPayError,
    NotSignedError,
)
from influenceflow.domain.models import (
    Campaign,
    Contract,
    ContractDeliverable,
    DealTerms,
    DealTermsInput,
    EmailMetadata,
    Message,
    Milestone,
    Negotiation,
    NegotiationParameters,
    Payment,
    PayoutDetails,
    PublicContract,
    Timeline,
)
from influenceflow.domain.types import (
    ACTIVE_STATUSES,
    AUTHORING_CAPABILITIES,
    AIMode,
    CampaignStatus,
    ContentType,
    ContractStatus,
    MessageSender,
    NegotiationStatus,
    PaymentStatus,
    PaymentType,
    SignerRole,
    can_author,
    sender_for_mode,
)

__all__ = [
    "ACTIVE_STATUSES",
    "AUTHORING_CAPABILITIES",
    "AIMode",
    "AlreadyApprovedError",
    "AlreadyExistsError",
    "Campaign",
    "CampaignNotFundedError",
    "CampaignStatus",
    "ContentType",
    "Contract",
    "ContractDeliverable",
    "ContractStatus",
    "DealTerms",
    "DealTermsInput",
    "EmailMetadata",
    "ExternalServiceError",
    "ImmutableTermsError",
    "InfluenceFlowError",
    "InvalidDeliverableError",
    "InvalidInputError",
    "InvalidModeError",
    "InvalidStateError",
    "InvalidTransitionError",
    "Message",
    "MessageSender",
    "MissingPayoutDetailsError",
    "Milestone",
    "Negotiation",
    "NegotiationParameters",
    "NegotiationStatus",
    "NotFoundError",
    "NotSignedError",
    "NothingToPayError",
    "Payment",
    "PaymentStatus",
    "PaymentType",
    "PayoutDetails",
    "PublicContract",
    "SignerRole",
    "Timeline",
    "can_author",
    "sender_for_mode",
]
