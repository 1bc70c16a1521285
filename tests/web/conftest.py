"""Shared fixtures for web API tests."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from cli.config_models import RateLimitsConfig, RealtyConfig
from knowledge.retrieval import KnowledgeRetrievalService
from knowledge.store import Point
from offers.orchestrator import GenerationOrchestrator
from offers.service import GenerationService
from personalization.models import TenantConfig
from web.app import app
from web.deps import (
    get_config,
    get_generation_service,
    get_rate_limiter,
    get_retrieval_service,
    get_tenant_store,
)
from web.rate_limit import RateLimiter


@pytest.fixture
def jwt_secret(monkeypatch):
    secret = "test-jwt-secret"
    monkeypatch.setenv("REALTY_JWT_SECRET", secret)
    return secret


@pytest.fixture
def auth_headers(jwt_secret):
    token = jwt.encode({"sub": "user-123", "email": "test@example.com", "name": "Test"}, jwt_secret, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def knowledge_store(story_payloads):
    store = MagicMock()
    store.scroll.return_value = ([Point(i, p) for i, p in story_payloads.items()], None)
    store.get.return_value = []
    return store


@pytest.fixture
def seeded_tenants(tenant_store):
    tenant_store.save_tenant(
        TenantConfig(id="acme", slug="acme-realty", business_name="Acme Realty", offers=["landingPage"])
    )
    tenant_store.save_tenant(
        TenantConfig(id="multi", slug="multi-realty", business_name="Multi", offers=["landingPage", "pdf"])
    )
    tenant_store.save_tenant(
        TenantConfig(id="timeline", slug="timeline-realty", business_name="Steps", offers=["real-estate-timeline"])
    )
    return tenant_store


@pytest.fixture
def rate_limits():
    """Small anonymous limit so tests can hit it."""
    return RateLimitsConfig.model_validate(
        {
            "features": {
                "offer_generation": {
                    "authenticated": {"requests": 5, "window": "1h"},
                    "unauthenticated": {"requests": 2, "window": "24h"},
                }
            }
        }
    )


@pytest.fixture
def client(seeded_tenants, knowledge_store, mock_llm, rate_limits, no_sleep):
    """TestClient with every service dependency replaced."""
    config = RealtyConfig()
    retrieval = KnowledgeRetrievalService(knowledge_store)
    service = GenerationService(
        seeded_tenants,
        GenerationOrchestrator(mock_llm, sleep=no_sleep),
        retrieval=retrieval,
        collection_prefix=config.vector_store.collection_prefix,
    )
    limiter = RateLimiter(rate_limits)

    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_tenant_store] = lambda: seeded_tenants
    app.dependency_overrides[get_retrieval_service] = lambda: retrieval
    app.dependency_overrides[get_generation_service] = lambda: service
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    yield TestClient(app)
    app.dependency_overrides.clear()
