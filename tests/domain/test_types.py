"""Tests for domain enumerations and the authoring capability table."""

import pytest

from influenceflow.domain.types import (
    ACTIVE_STATUSES,
    AUTHORING_CAPABILITIES,
    AIMode,
    ContractStatus,
    MessageSender,
    NegotiationStatus,
    PaymentStatus,
    can_author,
    sender_for_mode,
)


class TestNegotiationStatus:
    """Tests for the NegotiationStatus enum."""

    def test_has_exactly_eight_members(self):
        assert len(NegotiationStatus) == 8

    def test_string_serialization(self):
        assert str(NegotiationStatus.PENDING_OUTREACH) == "pending_outreach"
        assert str(NegotiationStatus.TERMS_PROPOSED) == "terms_proposed"

    def test_invalid_value_raises(self):
        with pytest.raises(ValueError):
            NegotiationStatus("cancelled")

    def test_active_statuses_exclude_agreed_and_terminal(self):
        assert NegotiationStatus.AGREED not in ACTIVE_STATUSES
        assert NegotiationStatus.DONE not in ACTIVE_STATUSES
        assert NegotiationStatus.REJECTED not in ACTIVE_STATUSES
        assert NegotiationStatus.FAILED not in ACTIVE_STATUSES
        assert len(ACTIVE_STATUSES) == 4


class TestOtherEnums:
    def test_contract_status_values(self):
        assert {s.value for s in ContractStatus} == {"draft", "sent", "signed", "canceled"}

    def test_payment_status_values(self):
        assert {s.value for s in PaymentStatus} == {
            "pending",
            "processing",
            "completed",
            "failed",
        }


class TestAuthoringCapabilities:
    """Tests for who may author messages under each AI mode."""

    def test_every_mode_has_an_entry(self):
        assert set(AUTHORING_CAPABILITIES) == set(AIMode)

    @pytest.mark.parametrize(
        ("sender", "mode", "allowed"),
        [
            (MessageSender.BRAND_AI, AIMode.AUTONOMOUS, True),
            (MessageSender.CREATOR, AIMode.AUTONOMOUS, True),
            (MessageSender.BRAND_MANUAL, AIMode.AUTONOMOUS, False),
            (MessageSender.BRAND_AI, AIMode.ASSISTED, True),
            (MessageSender.BRAND_MANUAL, AIMode.ASSISTED, True),
            (MessageSender.CREATOR, AIMode.ASSISTED, True),
        ],
        ids=[
            "ai-autonomous",
            "creator-autonomous",
            "manual-autonomous",
            "ai-assisted",
            "manual-assisted",
            "creator-assisted",
        ],
    )
    def test_can_author(self, sender, mode, allowed):
        assert can_author(sender, mode) is allowed

    def test_sender_for_mode(self):
        assert sender_for_mode(AIMode.AUTONOMOUS) == MessageSender.BRAND_AI
        assert sender_for_mode(AIMode.ASSISTED) == MessageSender.BRAND_MANUAL
