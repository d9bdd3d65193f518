"""
tests/conftest.py -- Shared test fixtures for KGL API integration tests.

This module provides:
  - make_services(): builds an isolated store, verifier and token service
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api_client: TestClient plus a Manager and a Sales Agent account with tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

RATE_LIMIT_ENABLED and BCRYPT_ROUNDS must be set before any api/ import: the
limiter reads its enabled flag when api.limiter is first imported.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

# CRITICAL: set before importing api.main so the shared limiter starts disabled
# and every bcrypt hash in the test run is cheap.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Identity, Role
from auth.passwords import CredentialVerifier
from auth.tokens import TokenConfig, TokenService
from core.validation import FieldValidator
from records.store import RecordKind, RecordStore

TEST_SECRET = "kgl-test-secret-key-0123456789-abcdef"

MANAGER_PASSWORD = "manager123"
AGENT_PASSWORD = "agent123"


class Services(NamedTuple):
    store: RecordStore
    credentials: CredentialVerifier
    token_service: TokenService


class ApiContext(NamedTuple):
    client: TestClient
    services: Services
    manager_id: int
    manager_token: str
    agent_id: int
    agent_token: str


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Service helpers
# ---------------------------------------------------------------------------


def make_services(db_suffix: str) -> Services:
    """Create isolated services backed by a named shared-memory SQLite DB.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. the test module name).
    """
    db_url = f"sqlite:///file:test_kgl_{db_suffix}?mode=memory&cache=shared&uri=true"
    return Services(
        store=RecordStore(db_url=db_url),
        credentials=CredentialVerifier(rounds=4),
        token_service=TokenService(TokenConfig(secret_key=TEST_SECRET)),
    )


def add_user(services: Services, username: str, password: str, role: Role, **extra) -> dict:
    """Store an account directly, bypassing the HTTP layer."""
    return services.store.create(
        RecordKind.USER,
        {
            "username": username,
            "email": f"{username}@kgl.ug",
            "password_hash": services.credentials.hash(password),
            "role": role.value,
            **extra,
        },
    )


def _patch_lifespan(services: Services):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test services into app.state so TestClient routes see
    an isolated test DB and the test signing secret.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = services.store
        app.state.credentials = services.credentials
        app.state.token_service = services.token_service
        app.state.validator = FieldValidator()
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    Two accounts exist before the client starts:
      simon (Manager, password MANAGER_PASSWORD)
      amina (Sales Agent, password AGENT_PASSWORD)
    """
    services = make_services(request.module.__name__.rsplit(".", 1)[-1])

    manager = add_user(services, "simon", MANAGER_PASSWORD, Role.MANAGER)
    agent = add_user(services, "amina", AGENT_PASSWORD, Role.SALES_AGENT, contact="0772123456")
    manager_token = services.token_service.issue(Identity(manager["id"], "simon", Role.MANAGER))
    agent_token = services.token_service.issue(Identity(agent["id"], "amina", Role.SALES_AGENT))

    app.router.lifespan_context = _patch_lifespan(services)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(client, services, manager["id"], manager_token, agent["id"], agent_token)

    services.store.close()


@pytest.fixture
def procurement_body() -> dict:
    """A procurement that passes every rule."""
    return {
        "produceName": "Maize",
        "produceType": "Grain",
        "date": "2026-01-01",
        "time": "09:00",
        "tonnage": 150,
        "cost": 20000,
        "dealerName": "Acme",
        "branch": "Maganjo",
        "contact": "0701234567",
        "sellingPrice": 25000,
    }


@pytest.fixture
def cash_sale_body() -> dict:
    return {
        "produceName": "Beans",
        "tonnage": 20,
        "amountPaid": 50000,
        "buyerName": "Grace Nakato",
        "salesAgentName": "Amina",
        "date": "2026-02-03",
        "time": "14:30",
    }


@pytest.fixture
def credit_sale_body() -> dict:
    return {
        "buyerName": "Okello Traders",
        "nin": "12345678901234",
        "location": "Kasangati",
        "contact": "+256772000111",
        "amountDue": 300000,
        "salesAgentName": "Amina",
        "dueDate": "2026-03-01",
        "produceName": "Maize",
        "produceType": "Grain",
        "tonnage": 200,
        "dispatchDate": "2026-02-10",
    }
