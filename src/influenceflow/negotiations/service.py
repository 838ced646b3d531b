"""Caller-facing negotiation operations.

Creation, AI mode toggling, outreach, manual or AI messages, and brand
rejection.  Terms, contracts and settlement live in their own services.
"""

from __future__ import annotations

from typing import Any

import structlog

from influenceflow.audit.logger import AuditLogger
from influenceflow.domain.errors import InvalidStateError, NotFoundError
from influenceflow.domain.models import Message, Negotiation, NegotiationParameters
from influenceflow.domain.types import AIMode, MessageSender, NegotiationStatus, sender_for_mode
from influenceflow.email.mailer import NegotiationMailer
from influenceflow.email.threading import reply_subject
from influenceflow.negotiations.lifecycle import advance
from influenceflow.negotiations.outreach import render_outreach
from influenceflow.observability.metrics import ACTIVE_NEGOTIATIONS
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.locks import NEGOTIATION, AggregateLocks
from influenceflow.state.message_log import MessageLog
from influenceflow.state.store import CampaignStore, NegotiationStore
from influenceflow.state_machine.transitions import TERMINAL_STATES, NegotiationEvent

logger = structlog.get_logger()


class NegotiationService:
    """Entry point for negotiation operations used by the HTTP layer."""

    def __init__(
        self,
        campaigns: CampaignStore,
        negotiations: NegotiationStore,
        messages: MessageLog,
        mailer: NegotiationMailer,
        locks: AggregateLocks,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._campaigns = campaigns
        self._negotiations = negotiations
        self._messages = messages
        self._mailer = mailer
        self._locks = locks
        self._audit = audit_logger

    def create_negotiation(
        self,
        campaign_id: str,
        creator_id: str,
        creator_email: str,
        parameters: NegotiationParameters | None = None,
        ai_mode: AIMode = AIMode.AUTONOMOUS,
    ) -> Negotiation:
        """Open a negotiation with a creator for a campaign.

        Raises:
            NotFoundError: If the campaign does not exist.
            AlreadyExistsError: If an active negotiation already exists for
                this campaign and creator email.
        """
        if self._campaigns.get(campaign_id) is None:
            raise NotFoundError("campaign", campaign_id)

        now = utcnow()
        negotiation = Negotiation(
            id=new_id(),
            campaign_id=campaign_id,
            creator_id=creator_id,
            creator_email=creator_email.strip().lower(),
            ai_mode=ai_mode,
            parameters=parameters or NegotiationParameters(),
            created_at=now,
            updated_at=now,
        )
        self._negotiations.insert(negotiation)
        ACTIVE_NEGOTIATIONS.inc()

        logger.info(
            "negotiation_created",
            negotiation_id=negotiation.id,
            campaign_id=campaign_id,
            creator_email=negotiation.creator_email,
            ai_mode=ai_mode.value,
        )
        return negotiation

    def get(self, negotiation_id: str) -> Negotiation:
        negotiation = self._negotiations.get(negotiation_id)
        if negotiation is None:
            raise NotFoundError("negotiation", negotiation_id)
        return negotiation

    def list_for_campaign(
        self, campaign_id: str, creator_id: str | None = None
    ) -> list[Negotiation]:
        if self._campaigns.get(campaign_id) is None:
            raise NotFoundError("campaign", campaign_id)
        return self._negotiations.list_for_campaign(campaign_id, creator_id)

    def list_messages(self, negotiation_id: str) -> list[Message]:
        self.get(negotiation_id)
        return self._messages.list_for_negotiation(negotiation_id)

    async def set_ai_mode(self, negotiation_id: str, ai_mode: AIMode) -> Negotiation:
        """Switch who authors brand messages.

        Taken under the negotiation lock, so a send already in progress
        finishes under the mode it started with.

        Raises:
            NotFoundError: Unknown negotiation.
            InvalidStateError: The negotiation is terminal.
        """
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self.get(negotiation_id)
            if negotiation.status in TERMINAL_STATES:
                raise InvalidStateError(
                    f"Cannot change AI mode of a '{negotiation.status}' negotiation"
                )
            if negotiation.ai_mode != ai_mode:
                self._negotiations.set_ai_mode(negotiation_id, ai_mode)
                logger.info(
                    "negotiation_ai_mode_changed",
                    negotiation_id=negotiation_id,
                    from_mode=negotiation.ai_mode.value,
                    to_mode=ai_mode.value,
                )
            return negotiation.model_copy(update={"ai_mode": ai_mode})

    async def update_parameters(
        self, negotiation_id: str, updates: dict[str, Any]
    ) -> Negotiation:
        """Merge partial updates into the negotiation's parameters.

        Raises:
            NotFoundError: Unknown negotiation.
            InvalidStateError: The negotiation is terminal.
            pydantic.ValidationError: An unknown key or an invalid value.
        """
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self.get(negotiation_id)
            if negotiation.status in TERMINAL_STATES:
                raise InvalidStateError(
                    f"Cannot update parameters of a '{negotiation.status}' negotiation"
                )
            parameters = NegotiationParameters(
                **{**negotiation.parameters.model_dump(), **updates}
            )
            self._negotiations.set_parameters(negotiation_id, parameters)
            logger.info(
                "negotiation_parameters_updated",
                negotiation_id=negotiation_id,
                fields=sorted(updates),
            )
            return negotiation.model_copy(update={"parameters": parameters})

    async def send_outreach(
        self,
        negotiation_id: str,
        *,
        subject: str | None = None,
        text: str | None = None,
        html: str | None = None,
    ) -> Message:
        """Send the initial outreach email.

        Uses the default outreach template unless a body is supplied, and
        attributes the message according to the negotiation's AI mode.

        Raises:
            InvalidStateError: The negotiation is not awaiting outreach.
        """
        negotiation = self.get(negotiation_id)
        if negotiation.status != NegotiationStatus.PENDING_OUTREACH:
            raise InvalidStateError(
                f"Cannot initiate outreach: negotiation is '{negotiation.status}'"
            )
        campaign = self._campaigns.get(negotiation.campaign_id)
        if campaign is None:
            raise NotFoundError("campaign", negotiation.campaign_id)

        rendered = render_outreach(campaign, negotiation)
        if text is None:
            text, html = rendered.text, rendered.html
        return await self._mailer.send(
            negotiation_id,
            subject=subject or rendered.subject,
            text=text,
            html=html,
            sender=sender_for_mode(negotiation.ai_mode),
            expected_status=NegotiationStatus.PENDING_OUTREACH,
        )

    async def send_message(
        self,
        negotiation_id: str,
        *,
        text: str,
        sender: MessageSender,
        subject: str | None = None,
        html: str | None = None,
        reply_to_message_id: str | None = None,
    ) -> Message:
        """Send a brand message in the negotiation's email thread.

        Without an explicit subject the reply continues the thread's latest
        subject with a ``Re:`` prefix.
        """
        negotiation = self.get(negotiation_id)
        if subject is None:
            subject = reply_subject(self._thread_subject(negotiation))
        return await self._mailer.send(
            negotiation_id,
            subject=subject,
            text=text,
            html=html,
            sender=sender,
            reply_to_message_id=reply_to_message_id,
        )

    async def reject(self, negotiation_id: str) -> Negotiation:
        """Mark the negotiation rejected by the brand.

        Raises:
            InvalidTransitionError: From AGREED or any terminal status.
        """
        async with self._locks.hold(NEGOTIATION, negotiation_id):
            negotiation = self.get(negotiation_id)
            return advance(
                negotiation,
                NegotiationEvent.REJECT,
                store=self._negotiations,
                audit_logger=self._audit,
            )

    def _thread_subject(self, negotiation: Negotiation) -> str:
        for message in reversed(self._messages.list_for_negotiation(negotiation.id)):
            if message.email_metadata is not None and message.email_metadata.subject:
                return message.email_metadata.subject
        campaign = self._campaigns.get(negotiation.campaign_id)
        return campaign.title if campaign is not None else "Collaboration"
