"""Tests for TermsStore: single row per negotiation, edits only before approval."""

from __future__ import annotations

from decimal import Decimal

import pytest

from influenceflow.domain.errors import AlreadyExistsError
from influenceflow.domain.models import DealTerms, DealTermsInput, Negotiation, Timeline
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.store import NegotiationStore
from influenceflow.state.terms_store import TermsStore


@pytest.fixture
def negotiation(negotiation_store: NegotiationStore, campaign) -> Negotiation:
    now = utcnow()
    negotiation = Negotiation(
        id="neg-1",
        campaign_id=campaign.id,
        creator_id="creator-1",
        creator_email="jane@creators.test",
        created_at=now,
        updated_at=now,
    )
    negotiation_store.insert(negotiation)
    return negotiation


def _terms(proposal: DealTermsInput, negotiation_id: str = "neg-1") -> DealTerms:
    now = utcnow()
    return DealTerms(
        id=new_id(),
        negotiation_id=negotiation_id,
        created_at=now,
        updated_at=now,
        **proposal.model_dump(),
    )


class TestTermsStore:
    def test_insert_and_get(
        self, terms_store: TermsStore, negotiation: Negotiation, sample_terms: DealTermsInput
    ):
        terms_store.insert(_terms(sample_terms))
        loaded = terms_store.get_for_negotiation(negotiation.id)
        assert loaded.fee == Decimal("500")
        assert loaded.deliverables == ["1 post"]
        assert loaded.timeline.start_date == "2026-03-01"
        assert loaded.requirements == ["Tag @acme"]
        assert loaded.is_approved is False

    def test_second_insert_rejected(
        self, terms_store: TermsStore, negotiation: Negotiation, sample_terms: DealTermsInput
    ):
        terms_store.insert(_terms(sample_terms))
        with pytest.raises(AlreadyExistsError):
            terms_store.insert(_terms(sample_terms))

    def test_update_in_place_keeps_id(
        self, terms_store: TermsStore, negotiation: Negotiation, sample_terms: DealTermsInput
    ):
        original = _terms(sample_terms)
        terms_store.insert(original)
        revised = sample_terms.model_copy(
            update={"fee": Decimal("750"), "deliverables": ["1 post", "1 story"]}
        )
        assert terms_store.update_if_unapproved(negotiation.id, revised)
        loaded = terms_store.get_for_negotiation(negotiation.id)
        assert loaded.id == original.id
        assert loaded.fee == Decimal("750")
        assert loaded.deliverables == ["1 post", "1 story"]

    def test_update_refused_after_approval(
        self, terms_store: TermsStore, negotiation: Negotiation, sample_terms: DealTermsInput
    ):
        terms_store.insert(_terms(sample_terms))
        assert terms_store.approve(negotiation.id, utcnow())
        revised = sample_terms.model_copy(update={"fee": Decimal("1")})
        assert not terms_store.update_if_unapproved(negotiation.id, revised)
        assert terms_store.get_for_negotiation(negotiation.id).fee == Decimal("500")

    def test_approve_only_once(
        self, terms_store: TermsStore, negotiation: Negotiation, sample_terms: DealTermsInput
    ):
        terms_store.insert(_terms(sample_terms))
        first = utcnow()
        assert terms_store.approve(negotiation.id, first)
        assert not terms_store.approve(negotiation.id, utcnow())
        assert terms_store.get_for_negotiation(negotiation.id).approved_at == first

    def test_missing_terms(self, terms_store: TermsStore):
        assert terms_store.get_for_negotiation("missing") is None
        assert not terms_store.approve("missing", utcnow())

    def test_timeline_dates_stored_verbatim(
        self, terms_store: TermsStore, negotiation: Negotiation
    ):
        proposal = DealTermsInput(
            fee=Decimal("10"),
            deliverables=["story"],
            timeline=Timeline(start_date="2026-12-31", end_date="2026-01-01"),
        )
        terms_store.insert(_terms(proposal))
        timeline = terms_store.get_for_negotiation(negotiation.id).timeline
        assert (timeline.start_date, timeline.end_date) == ("2026-12-31", "2026-01-01")
