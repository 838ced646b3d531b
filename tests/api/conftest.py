"""Fixtures for exercising the HTTP API through the real service wiring."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from influenceflow.app import build_services, create_app
from influenceflow.config import Settings
from influenceflow.email.client import LoggingTransport
from influenceflow.settlement.gateway import SimulatedGateway

WEBHOOK_SECRET = "hook-secret"


@pytest.fixture
def api_settings() -> Settings:
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        agent_email="agent@acme.test",
        message_id_domain="acme.test",
        email_webhook_secret=WEBHOOK_SECRET,  # type: ignore[arg-type]
        app_base_url="https://app.influenceflow.test",
        external_call_timeout_seconds=5,
    )


@pytest.fixture
def services(
    api_settings: Settings,
    deal_conn: sqlite3.Connection,
    audit_conn: sqlite3.Connection,
) -> dict[str, Any]:
    return build_services(
        api_settings,
        deal_conn,
        audit_conn,
        LoggingTransport(api_settings.agent_email),
        SimulatedGateway(),
    )


@pytest.fixture
def app(services: dict[str, Any]) -> FastAPI:
    return create_app(services)


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """A client that does not run the lifespan, so fixtures own the connections."""
    yield TestClient(app)
