"""Shared pytest fixtures for the deal pipeline test suite.

Every store runs on an in-memory SQLite database; email goes through the
``LoggingTransport`` and payments through the ``SimulatedGateway``.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from decimal import Decimal

import pytest

from influenceflow.audit.logger import AuditLogger
from influenceflow.audit.store import init_audit_db
from influenceflow.campaign.service import CampaignService
from influenceflow.contracts.generator import ContractGenerator
from influenceflow.domain.models import (
    Campaign,
    Contract,
    DealTerms,
    DealTermsInput,
    Message,
    Negotiation,
    Payment,
    PayoutDetails,
    Timeline,
)
from influenceflow.domain.types import PaymentStatus, PaymentType, SignerRole
from influenceflow.email.client import LoggingTransport
from influenceflow.email.correlator import CorrelationResult, EmailThreadCorrelator
from influenceflow.email.mailer import NegotiationMailer
from influenceflow.email.models import InboundEmail
from influenceflow.negotiations.service import NegotiationService
from influenceflow.settlement.funding import CampaignFunding
from influenceflow.settlement.gateway import SimulatedGateway
from influenceflow.settlement.ledger import SettlementLedger
from influenceflow.state.base import new_id, utcnow
from influenceflow.state.contract_store import ContractStore
from influenceflow.state.locks import AggregateLocks
from influenceflow.state.message_log import MessageLog
from influenceflow.state.payment_store import PaymentStore
from influenceflow.state.schema import connect, init_deal_tables
from influenceflow.state.store import CampaignStore, NegotiationStore
from influenceflow.state.terms_store import TermsStore
from influenceflow.terms.negotiator import TermsNegotiator

AGENT_EMAIL = "agent@acme.test"
BRAND_EMAIL = "brand@acme.test"
CREATOR_EMAIL = "jane@creators.test"
APP_BASE_URL = "https://app.influenceflow.test"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """The service is built on asyncio; run async tests on that backend only."""
    return "asyncio"


# ---------------------------------------------------------------------------
# Databases and stores
# ---------------------------------------------------------------------------


@pytest.fixture
def deal_conn() -> Iterator[sqlite3.Connection]:
    """In-memory deal database with every table created."""
    conn = connect(":memory:")
    init_deal_tables(conn)
    yield conn
    conn.close()


@pytest.fixture
def audit_conn() -> Iterator[sqlite3.Connection]:
    """In-memory audit database."""
    conn = init_audit_db(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def audit_logger(audit_conn: sqlite3.Connection) -> AuditLogger:
    return AuditLogger(audit_conn)


@pytest.fixture
def locks() -> AggregateLocks:
    return AggregateLocks()


@pytest.fixture
def campaign_store(deal_conn: sqlite3.Connection) -> CampaignStore:
    return CampaignStore(deal_conn)


@pytest.fixture
def negotiation_store(deal_conn: sqlite3.Connection) -> NegotiationStore:
    return NegotiationStore(deal_conn)


@pytest.fixture
def message_log(deal_conn: sqlite3.Connection) -> MessageLog:
    return MessageLog(deal_conn)


@pytest.fixture
def terms_store(deal_conn: sqlite3.Connection) -> TermsStore:
    return TermsStore(deal_conn)


@pytest.fixture
def contract_store(deal_conn: sqlite3.Connection) -> ContractStore:
    return ContractStore(deal_conn)


@pytest.fixture
def payment_store(deal_conn: sqlite3.Connection) -> PaymentStore:
    return PaymentStore(deal_conn)


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


@pytest.fixture
def transport() -> LoggingTransport:
    return LoggingTransport(AGENT_EMAIL)


@pytest.fixture
def gateway() -> SimulatedGateway:
    return SimulatedGateway()


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def campaign(campaign_store: CampaignStore) -> Campaign:
    """A registered campaign owned by brand ``brand-1``."""
    return campaign_store.upsert(
        Campaign(
            id="camp-1",
            brand_id="brand-1",
            brand_name="Acme",
            brand_email=BRAND_EMAIL,
            title="Spring Launch",
            description="Launch of the spring collection",
            budget=Decimal("1000"),
            start_date="2026-03-01",
            end_date="2026-04-30",
        )
    )


@pytest.fixture
def sample_terms() -> DealTermsInput:
    """Terms with one deliverable worth the full fee of 500."""
    return DealTermsInput(
        fee=Decimal("500"),
        deliverables=["1 post"],
        timeline=Timeline(start_date="2026-03-01", end_date="2026-03-31"),
        requirements=["Tag @acme"],
        revisions=1,
    )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def mailer(
    negotiation_store: NegotiationStore,
    message_log: MessageLog,
    transport: LoggingTransport,
    locks: AggregateLocks,
    audit_logger: AuditLogger,
) -> NegotiationMailer:
    return NegotiationMailer(
        negotiation_store,
        message_log,
        transport,
        locks,
        from_email=AGENT_EMAIL,
        message_id_domain="acme.test",
        timeout_seconds=5,
        audit_logger=audit_logger,
    )


@pytest.fixture
def negotiation_service(
    campaign_store: CampaignStore,
    negotiation_store: NegotiationStore,
    message_log: MessageLog,
    mailer: NegotiationMailer,
    locks: AggregateLocks,
    audit_logger: AuditLogger,
) -> NegotiationService:
    return NegotiationService(
        campaign_store, negotiation_store, message_log, mailer, locks, audit_logger=audit_logger
    )


@pytest.fixture
def correlator(
    negotiation_store: NegotiationStore,
    message_log: MessageLog,
    locks: AggregateLocks,
    audit_logger: AuditLogger,
) -> EmailThreadCorrelator:
    return EmailThreadCorrelator(negotiation_store, message_log, locks, audit_logger=audit_logger)


@pytest.fixture
def terms_negotiator(
    negotiation_store: NegotiationStore,
    terms_store: TermsStore,
    locks: AggregateLocks,
    audit_logger: AuditLogger,
) -> TermsNegotiator:
    return TermsNegotiator(negotiation_store, terms_store, locks, audit_logger=audit_logger)


@pytest.fixture
def contract_generator(
    campaign_store: CampaignStore,
    negotiation_store: NegotiationStore,
    terms_store: TermsStore,
    contract_store: ContractStore,
    payment_store: PaymentStore,
    mailer: NegotiationMailer,
    locks: AggregateLocks,
    audit_logger: AuditLogger,
) -> ContractGenerator:
    return ContractGenerator(
        campaign_store,
        negotiation_store,
        terms_store,
        contract_store,
        payment_store,
        mailer,
        locks,
        app_base_url=APP_BASE_URL,
        audit_logger=audit_logger,
    )


@pytest.fixture
def settlement_ledger(
    negotiation_store: NegotiationStore,
    contract_store: ContractStore,
    payment_store: PaymentStore,
    gateway: SimulatedGateway,
    locks: AggregateLocks,
    audit_logger: AuditLogger,
) -> SettlementLedger:
    return SettlementLedger(
        negotiation_store,
        contract_store,
        payment_store,
        gateway,
        locks,
        timeout_seconds=5,
        audit_logger=audit_logger,
    )


@pytest.fixture
def campaign_funding(
    campaign_store: CampaignStore,
    payment_store: PaymentStore,
    gateway: SimulatedGateway,
    locks: AggregateLocks,
    audit_logger: AuditLogger,
) -> CampaignFunding:
    return CampaignFunding(
        campaign_store,
        payment_store,
        gateway,
        locks,
        timeout_seconds=5,
        audit_logger=audit_logger,
    )


@pytest.fixture
def campaign_service(
    campaign_store: CampaignStore, payment_store: PaymentStore
) -> CampaignService:
    return CampaignService(campaign_store, payment_store)


# ---------------------------------------------------------------------------
# Lifecycle driver
# ---------------------------------------------------------------------------


class DealFlow:
    """Drives a negotiation through its lifecycle with the real services."""

    def __init__(
        self,
        campaign: Campaign,
        negotiations: NegotiationService,
        correlator: EmailThreadCorrelator,
        terms: TermsNegotiator,
        contracts: ContractGenerator,
        payments: PaymentStore,
    ) -> None:
        self.campaign = campaign
        self.negotiations = negotiations
        self.correlator = correlator
        self.terms = terms
        self.contracts = contracts
        self.payments = payments

    def create(self, creator_email: str = CREATOR_EMAIL, **kwargs) -> Negotiation:
        return self.negotiations.create_negotiation(
            self.campaign.id, f"creator-{creator_email}", creator_email, **kwargs
        )

    async def outreach(self, negotiation_id: str) -> Message:
        return await self.negotiations.send_outreach(negotiation_id)

    async def reply(
        self,
        in_reply_to: str,
        *,
        text: str = "Sounds great, tell me more.",
        message_id: str | None = None,
        headers: dict[str, str] | None = None,
        subject: str = "Re: Collaboration opportunity: Spring Launch",
    ) -> CorrelationResult:
        inbound = InboundEmail(
            **{
                "from": CREATOR_EMAIL,
                "to": AGENT_EMAIL,
                "subject": subject,
                "text": text,
                "messageId": message_id or f"<{new_id()}@creators.test>",
                "inReplyTo": in_reply_to,
                "headers": headers or {},
            }
        )
        return await self.correlator.correlate(inbound)

    async def agree(self, negotiation_id: str, proposal: DealTermsInput) -> DealTerms:
        await self.terms.propose(negotiation_id, proposal)
        return await self.terms.approve(negotiation_id)

    async def agreed_negotiation(self, proposal: DealTermsInput) -> Negotiation:
        negotiation = self.create()
        first = await self.outreach(negotiation.id)
        await self.reply(first.email_metadata.message_id)
        await self.agree(negotiation.id, proposal)
        return self.negotiations.get(negotiation.id)

    async def signed_contract(
        self, proposal: DealTermsInput, *, payout_details: bool = True
    ) -> Contract:
        negotiation = await self.agreed_negotiation(proposal)
        contract = await self.contracts.generate(negotiation.id)
        await self.contracts.send(contract.id)
        await self.contracts.sign(contract.id, SignerRole.BRAND, BRAND_EMAIL)
        return await self.contracts.sign(
            contract.id,
            SignerRole.CREATOR,
            CREATOR_EMAIL,
            PayoutDetails(account_number="acct_123", bank_name="Test Bank")
            if payout_details
            else None,
        )

    def fund(self, amount: Decimal = Decimal("1000")) -> Payment:
        """Record a completed campaign deposit directly in the ledger."""
        return self.payments.insert(
            Payment(
                id=new_id(),
                campaign_id=self.campaign.id,
                amount=amount,
                type=PaymentType.DEPOSIT,
                status=PaymentStatus.COMPLETED,
                completed_at=utcnow(),
                created_at=utcnow(),
            )
        )


@pytest.fixture
def flow(
    campaign: Campaign,
    negotiation_service: NegotiationService,
    correlator: EmailThreadCorrelator,
    terms_negotiator: TermsNegotiator,
    contract_generator: ContractGenerator,
    payment_store: PaymentStore,
) -> DealFlow:
    return DealFlow(
        campaign,
        negotiation_service,
        correlator,
        terms_negotiator,
        contract_generator,
        payment_store,
    )
