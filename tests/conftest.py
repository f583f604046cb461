"""Root-level pytest fixtures for all tests.

Provides shared fixtures for:
- ERP credentials and a fake Odoo endpoint (httpx.MockTransport)
- Skill contexts with a fixed reference date
- In-memory SQLite tenant configuration storage
"""

import os
from collections.abc import Generator
from datetime import date

# The connection module builds its engine at import time; keep it off disk.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from erp_analyst.db.models import Base
from erp_analyst.documents.client import DocumentSearchCredentials
from erp_analyst.erp.client import OdooClient, OdooClientFactory
from erp_analyst.erp.models import ErpCredentials
from erp_analyst.erp.session_cache import SessionCache
from erp_analyst.services.tenant_integrations import TenantIntegrationStore
from erp_analyst.skills.base import SkillContext
from tests.helpers.fake_odoo import FakeOdoo

# Sunday 18 October 2026
TODAY = date(2026, 10, 18)


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks end-to-end tests across several layers"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests that take a long time to run"
    )


# ============================================================================
# ERP Fixtures
# ============================================================================


@pytest.fixture
def erp_credentials() -> ErpCredentials:
    return ErpCredentials(
        url="https://acme.odoo.test",
        database="acme",
        username="bot@acme.test",
        secret="s3cret-api-key",
    )


@pytest.fixture
def document_credentials() -> DocumentSearchCredentials:
    return DocumentSearchCredentials(
        url="https://docs.acme.test", api_key="doc-key-123", default_scope="policies",
    )


@pytest.fixture
def fake_odoo() -> FakeOdoo:
    return FakeOdoo()


@pytest.fixture
def session_cache() -> SessionCache:
    return SessionCache(ttl_seconds=300)


@pytest.fixture
def odoo_client(erp_credentials, fake_odoo, session_cache) -> OdooClient:
    """OdooClient wired to the fake endpoint."""
    return OdooClient(
        erp_credentials, session_cache=session_cache, http_client=fake_odoo.http_client(),
    )


@pytest.fixture
def odoo_factory(fake_odoo, session_cache) -> OdooClientFactory:
    return OdooClientFactory(session_cache, http_client=fake_odoo.http_client())


@pytest.fixture
def skill_context(erp_credentials) -> SkillContext:
    return SkillContext(
        tenant_id="acme",
        user_id="user-1",
        credentials={"odoo": erp_credentials},
        today=TODAY,
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """In-memory SQLite session with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    session = sessionmaker(bind=engine, expire_on_commit=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def encryption_key() -> bytes:
    return os.urandom(32)


@pytest.fixture
def tenant_store(db_session, encryption_key) -> TenantIntegrationStore:
    return TenantIntegrationStore(db_session, key=encryption_key)
