"""Application entry point: the deal pipeline's FastAPI service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error forwarding when ``SENTRY_DSN`` is set
- **Audit logging** wired into every service and into retry exhaustion
- **Transports**: Gmail and Stripe when configured, logging/simulated otherwise
- **HTTP**: negotiation, contract, campaign and webhook routers plus
  ``/health``, ``/ready`` and ``/metrics``
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from influenceflow.api import campaigns, contracts, negotiations, webhooks
from influenceflow.api.errors import register_exception_handlers
from influenceflow.audit.logger import AuditLogger
from influenceflow.audit.store import close_audit_db, init_audit_db
from influenceflow.campaign.service import CampaignService
from influenceflow.config import Settings, get_settings, validate_credentials
from influenceflow.contracts.generator import ContractGenerator
from influenceflow.contracts.templates import load_template
from influenceflow.email.client import EmailTransport, GmailClient, LoggingTransport
from influenceflow.email.correlator import EmailThreadCorrelator
from influenceflow.email.mailer import NegotiationMailer
from influenceflow.health import register_health_routes
from influenceflow.negotiations.service import NegotiationService
from influenceflow.observability.metrics import ACTIVE_NEGOTIATIONS, setup_metrics
from influenceflow.observability.middleware import RequestIdMiddleware
from influenceflow.observability.sentry import get_sentry_processor, init_sentry
from influenceflow.resilience.retry import configure_error_notifier
from influenceflow.settlement.funding import CampaignFunding
from influenceflow.settlement.gateway import PaymentGateway, SimulatedGateway, StripeGateway
from influenceflow.settlement.ledger import SettlementLedger
from influenceflow.state.contract_store import ContractStore
from influenceflow.state.locks import AggregateLocks
from influenceflow.state.message_log import MessageLog
from influenceflow.state.payment_store import PaymentStore
from influenceflow.state.schema import init_deal_db
from influenceflow.state.store import CampaignStore, NegotiationStore
from influenceflow.state.terms_store import TermsStore
from influenceflow.terms.negotiator import TermsNegotiator

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Insert the Sentry processor ahead of the renderer.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="influenceflow")


def build_services(
    settings: Settings,
    deal_conn: sqlite3.Connection,
    audit_conn: sqlite3.Connection,
    email_transport: EmailTransport,
    payment_gateway: PaymentGateway,
) -> dict[str, Any]:
    """Wire stores and services around already opened connections and adapters.

    Returns:
        A dict of service instances keyed by name, as read by the routers.
    """
    audit_logger = AuditLogger(audit_conn)
    locks = AggregateLocks()
    timeout = settings.external_call_timeout_seconds

    campaign_store = CampaignStore(deal_conn)
    negotiation_store = NegotiationStore(deal_conn)
    message_log = MessageLog(deal_conn)
    terms_store = TermsStore(deal_conn)
    contract_store = ContractStore(deal_conn)
    payment_store = PaymentStore(deal_conn)

    mailer = NegotiationMailer(
        negotiation_store,
        message_log,
        email_transport,
        locks,
        from_email=settings.agent_email,
        message_id_domain=settings.message_id_domain,
        timeout_seconds=timeout,
        audit_logger=audit_logger,
    )

    services: dict[str, Any] = {
        "_settings": settings,
        "deal_conn": deal_conn,
        "audit_conn": audit_conn,
        "audit_logger": audit_logger,
        "locks": locks,
        "email_transport": email_transport,
        "payment_gateway": payment_gateway,
        "mailer": mailer,
        "campaign_service": CampaignService(campaign_store, payment_store),
        "negotiation_service": NegotiationService(
            campaign_store,
            negotiation_store,
            message_log,
            mailer,
            locks,
            audit_logger=audit_logger,
        ),
        "correlator": EmailThreadCorrelator(
            negotiation_store, message_log, locks, audit_logger=audit_logger
        ),
        "terms_negotiator": TermsNegotiator(
            negotiation_store, terms_store, locks, audit_logger=audit_logger
        ),
        "contract_generator": ContractGenerator(
            campaign_store,
            negotiation_store,
            terms_store,
            contract_store,
            payment_store,
            mailer,
            locks,
            app_base_url=settings.app_base_url,
            template=load_template(settings.contract_template_path),
            audit_logger=audit_logger,
        ),
        "settlement_ledger": SettlementLedger(
            negotiation_store,
            contract_store,
            payment_store,
            payment_gateway,
            locks,
            timeout_seconds=timeout,
            audit_logger=audit_logger,
        ),
        "campaign_funding": CampaignFunding(
            campaign_store,
            payment_store,
            payment_gateway,
            locks,
            timeout_seconds=timeout,
            audit_logger=audit_logger,
        ),
    }

    ACTIVE_NEGOTIATIONS.set(negotiation_store.count_open())
    return services


def _email_transport(settings: Settings) -> EmailTransport:
    from influenceflow.auth.credentials import build_gmail_service, load_gmail_credentials

    credentials = load_gmail_credentials(settings.gmail_token_path)
    if credentials is None:
        logger.info("Gmail token unavailable, using LoggingTransport")
        return LoggingTransport(settings.agent_email)
    logger.info("GmailClient initialized")
    return GmailClient(build_gmail_service(credentials), settings.agent_email)


def _payment_gateway(settings: Settings) -> PaymentGateway:
    if not settings.stripe_configured:
        logger.info("Stripe keys not set, using SimulatedGateway")
        return SimulatedGateway()
    logger.info("StripeGateway initialized")
    return StripeGateway(
        settings.stripe_secret_key.get_secret_value(),
        settings.stripe_webhook_secret.get_secret_value(),
    )


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Open the databases, pick transports and build every service.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    deal_conn = init_deal_db(settings.database_path)
    settings.audit_db_path.parent.mkdir(parents=True, exist_ok=True)
    audit_conn = init_audit_db(settings.audit_db_path)

    services = build_services(
        settings,
        deal_conn,
        audit_conn,
        _email_transport(settings),
        _payment_gateway(settings),
    )
    configure_error_notifier(services["audit_logger"])
    logger.info("Services initialized", database=str(settings.database_path))
    return services


def close_services(services: dict[str, Any]) -> None:
    """Close both database connections."""
    deal_conn = services.get("deal_conn")
    if deal_conn is not None:
        deal_conn.close()
    audit_conn = services.get("audit_conn")
    if audit_conn is not None:
        close_audit_db(audit_conn)
    logger.info("Database connections closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Log startup and close the databases on shutdown."""
    logger.info("FastAPI application starting")
    yield
    close_services(app.state.services)


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with middleware, routers and error handlers.

    Args:
        services: The services dict from ``initialize_services`` or
            ``build_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="InfluenceFlow Deals", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()

    fastapi_app.add_middleware(RequestIdMiddleware)
    register_exception_handlers(fastapi_app)
    for module in (negotiations, contracts, campaigns, webhooks):
        fastapi_app.include_router(module.router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


def run() -> None:
    """Console entry point: configure, initialize and serve with uvicorn."""
    settings = get_settings()
    sentry_enabled = init_sentry(
        settings.sentry_dsn,
        environment="production" if settings.production else "development",
    )
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("Application starting")

    validate_credentials(settings)
    services = initialize_services(settings)
    uvicorn.run(
        create_app(services),
        host="0.0.0.0",
        port=settings.webhook_port,
        log_level="info",
    )


if __name__ == "__main__":
    run()
