"""Tests for EmailThreadCorrelator: reply routing, auto-reply filtering and deduplication."""

from __future__ import annotations

import pytest

from influenceflow.domain.types import ContentType, MessageSender, NegotiationStatus
from influenceflow.email.correlator import CorrelationOutcome
from influenceflow.email.models import InboundEmail

pytestmark = pytest.mark.anyio()


def _inbound(**overrides) -> InboundEmail:
    payload = {
        "from": "jane@creators.test",
        "to": "agent@acme.test",
        "subject": "Re: Collaboration opportunity",
        "text": "Interested!",
        "messageId": "<reply@creators.test>",
    }
    payload.update(overrides)
    return InboundEmail(**payload)


# =============================================================================
# Ignored mail
# =============================================================================


class TestIgnored:
    async def test_not_a_reply(self, correlator):
        result = await correlator.correlate(_inbound())
        assert result.outcome == CorrelationOutcome.NOT_A_REPLY
        assert not result.stored

    async def test_orphaned_reply(self, correlator):
        result = await correlator.correlate(_inbound(inReplyTo="<unknown@acme.test>"))
        assert result.outcome == CorrelationOutcome.ORPHANED
        assert result.negotiation_id is None

    @pytest.mark.parametrize(
        ("subject", "headers"),
        [
            ("Out of Office: Collaboration", {}),
            ("Re: Collaboration", {"Auto-Submitted": "auto-replied"}),
            ("Re: Collaboration", {"Return-Path": "<>"}),
        ],
        ids=["subject", "auto-submitted", "bounce"],
    )
    async def test_auto_reply_never_moves_status(
        self, flow, message_log, negotiation_store, subject, headers
    ):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        result = await flow.reply(
            first.email_metadata.message_id, subject=subject, headers=headers
        )
        assert result.outcome == CorrelationOutcome.AUTO_REPLY
        assert negotiation_store.get(negotiation.id).status == NegotiationStatus.OUTREACH_SENT
        assert len(message_log.list_for_negotiation(negotiation.id)) == 1


# =============================================================================
# Correlated replies
# =============================================================================


class TestCorrelated:
    async def test_first_reply_opens_conversation(self, flow, negotiation_store):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        result = await flow.reply(first.email_metadata.message_id, text="Tell me more")
        assert result.outcome == CorrelationOutcome.CORRELATED
        assert result.negotiation_id == negotiation.id
        assert result.message.sender == MessageSender.CREATOR
        assert result.message.content == "Tell me more"
        assert negotiation_store.get(negotiation.id).status == NegotiationStatus.IN_PROGRESS

    async def test_reply_references_chain(self, flow):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        result = await flow.reply(first.email_metadata.message_id)
        assert result.message.email_metadata.references == [first.email_metadata.message_id]

    async def test_duplicate_delivery_stored_once(self, flow, message_log):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        anchor = first.email_metadata.message_id
        stored = await flow.reply(anchor, message_id="<same@creators.test>")
        again = await flow.reply(anchor, message_id="<same@creators.test>")
        assert stored.outcome == CorrelationOutcome.CORRELATED
        assert again.outcome == CorrelationOutcome.DUPLICATE
        assert again.negotiation_id == negotiation.id
        assert len(message_log.list_for_negotiation(negotiation.id)) == 2

    async def test_late_reply_logged_without_transition(
        self, flow, negotiation_store, message_log, sample_terms
    ):
        negotiation = await flow.agreed_negotiation(sample_terms)
        anchor = message_log.email_message_ids(negotiation.id)[0]
        result = await flow.reply(anchor, text="Thanks, looking forward")
        assert result.stored
        assert negotiation_store.get(negotiation.id).status == NegotiationStatus.AGREED

    async def test_reply_to_terminal_negotiation_is_kept(
        self, flow, negotiation_service, negotiation_store
    ):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        await negotiation_service.reject(negotiation.id)
        result = await flow.reply(first.email_metadata.message_id)
        assert result.stored
        assert negotiation_store.get(negotiation.id).status == NegotiationStatus.REJECTED

    async def test_html_only_body_reduced_to_text(self, flow, correlator):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        result = await correlator.correlate(
            _inbound(
                text="",
                html="<p>Hello <b>there</b></p>",
                inReplyTo=first.email_metadata.message_id,
            )
        )
        assert result.message.content == "Hello there"
        assert result.message.content_type == ContentType.EMAIL_HTML

    async def test_interleaved_replies_route_by_pointer(self, flow, negotiation_store):
        first_neg = flow.create(creator_email="a@creators.test")
        second_neg = flow.create(creator_email="b@creators.test")
        first_out = await flow.outreach(first_neg.id)
        second_out = await flow.outreach(second_neg.id)

        to_second = await flow.reply(second_out.email_metadata.message_id)
        to_first = await flow.reply(first_out.email_metadata.message_id)

        assert to_second.negotiation_id == second_neg.id
        assert to_first.negotiation_id == first_neg.id
        assert negotiation_store.get(first_neg.id).status == NegotiationStatus.IN_PROGRESS
        assert negotiation_store.get(second_neg.id).status == NegotiationStatus.IN_PROGRESS

    async def test_reply_to_creator_message_still_correlates(self, flow):
        negotiation = flow.create()
        first = await flow.outreach(negotiation.id)
        await flow.reply(first.email_metadata.message_id, message_id="<r1@creators.test>")
        result = await flow.reply("<r1@creators.test>", message_id="<r2@creators.test>")
        assert result.negotiation_id == negotiation.id
