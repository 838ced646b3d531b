"""Domain-specific exception classes for the deal pipeline.

Every error carries a stable ``code`` so the HTTP layer can hand callers a
discriminated result instead of a generic failure.
"""

from __future__ import annotations

from collections.abc import Iterable

from influenceflow.domain.types import AIMode, MessageSender


class InfluenceFlowError(Exception):
    """Base class for all domain errors."""

    code: str = "error"
    retryable: bool = False


class NotFoundError(InfluenceFlowError):
    """Raised when an entity is absent or the caller may not see it.

    Attributes:
        entity: Kind of entity that was looked up.
        entity_id: Identifier that was looked up.
    """

    code = "not_found"

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class InvalidStateError(InfluenceFlowError):
    """Raised when an operation is not valid in the current lifecycle state."""

    code = "invalid_state"


class InvalidTransitionError(InvalidStateError):
    """Raised when an invalid state transition is attempted.

    Attributes:
        current_state: The state the machine was in when the transition was attempted.
        event: The event that was rejected.
    """

    code = "invalid_transition"

    def __init__(self, current_state: str, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply event '{event}' in state '{current_state}'")


class InvalidModeError(InvalidStateError):
    """Raised when a sender is not allowed to author under the current AI mode."""

    code = "invalid_mode"

    def __init__(self, sender: MessageSender, ai_mode: AIMode) -> None:
        self.sender = sender
        self.ai_mode = ai_mode
        super().__init__(f"Sender '{sender}' cannot author messages in '{ai_mode}' mode")


class NotSignedError(InvalidStateError):
    """Raised when settlement is attempted on a contract missing a signature."""

    code = "not_signed"

    def __init__(self, contract_id: str) -> None:
        self.contract_id = contract_id
        super().__init__(f"Contract '{contract_id}' is not signed by both parties")


class ImmutableTermsError(InvalidStateError):
    """Raised when approved deal terms are edited."""

    code = "immutable"

    def __init__(self) -> None:
        super().__init__("Cannot update already approved terms")


class AlreadyExistsError(InfluenceFlowError):
    """Raised when creating something that may only exist once."""

    code = "already_exists"


class AlreadyApprovedError(InfluenceFlowError):
    """Raised when approving deal terms a second time."""

    code = "already_approved"

    def __init__(self) -> None:
        super().__init__("Terms are already approved")


class InvalidInputError(InfluenceFlowError):
    """Raised for malformed caller input (e.g. an empty deliverables list)."""

    code = "validation_error"


class ExternalServiceError(InfluenceFlowError):
    """Raised when the email or payment transport fails or times out.

    Attributes:
        service: Name of the external service.
        detail: Human-readable failure detail.
    """

    code = "external_service_error"
    retryable = True

    def __init__(self, service: str, detail: str) -> None:
        self.service = service
        self.detail = detail
        super().__init__(f"{service} failed: {detail}")


class InvalidDeliverableError(InfluenceFlowError):
    """Raised when a settlement batch names deliverables the contract lacks.

    Attributes:
        unknown_ids: The ids that were not found on the contract.
    """

    code = "invalid_deliverable"

    def __init__(self, unknown_ids: Iterable[str]) -> None:
        self.unknown_ids = sorted(unknown_ids)
        super().__init__(f"Unknown deliverable ids: {', '.join(self.unknown_ids)}")


class NothingToPayError(InfluenceFlowError):
    """Raised when every deliverable in a batch is already paid or free."""

    code = "nothing_to_pay"

    def __init__(self) -> None:
        super().__init__("No unpaid amount for the requested deliverables")


class CampaignNotFundedError(InfluenceFlowError):
    """Raised when a campaign lacks the deposit required for the operation."""

    code = "campaign_not_funded"

    def __init__(self, campaign_id: str) -> None:
        self.campaign_id = campaign_id
        super().__init__(f"Campaign '{campaign_id}' has no completed deposit")


class MissingPayoutDetailsError(InfluenceFlowError):
    """Raised when a payout is attempted without creator bank details."""

    code = "missing_payout_details"

    def __init__(self, contract_id: str) -> None:
        self.contract_id = contract_id
        super().__init__(f"Contract '{contract_id}' has no creator payout details")
