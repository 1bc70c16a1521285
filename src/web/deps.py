"""Dependency injection for FastAPI routes and the CLI.

Service handles are built from config once per process and handed to routes
through ``Depends``; tests replace them with ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Optional

import structlog

from cli.config import load_config_model
from cli.config_models import RealtyConfig
from knowledge.retrieval import KnowledgeRetrievalService
from knowledge.store import VectorStore
from llm import LLMProvider, create_embedding_provider, create_llm_provider
from offers.orchestrator import GenerationOrchestrator
from offers.registry import registry
from offers.service import GenerationService
from personalization.scoring import ScoringWeights
from web.rate_limit import RateLimiter
from web.tenant_store import TenantStore

logger = structlog.get_logger()


@lru_cache
def get_config() -> RealtyConfig:
    """Load shared config from ./config.yaml or ~/.realty/config.yaml."""
    return load_config_model()


def build_llm(config: RealtyConfig) -> Optional[LLMProvider]:
    try:
        return create_llm_provider(
            provider=config.llm.provider,
            api_key=config.llm.api_key,
            model=config.llm.model,
            embedding_model=config.llm.embedding_model,
        )
    except Exception as e:  # SDK clients raise their own errors on missing keys
        logger.warning("deps.llm_unavailable", error=str(e))
        return None


def build_embedder(config: RealtyConfig) -> Optional[LLMProvider]:
    provider = None if config.llm.embedding_provider == "auto" else config.llm.embedding_provider
    try:
        return create_embedding_provider(
            provider=provider,
            api_key=config.llm.embedding_api_key,
            embedding_model=config.llm.embedding_model,
        )
    except Exception as e:  # SDK clients raise their own errors on missing keys
        # retrieval runs rule-only without embeddings
        logger.warning("deps.embedder_unavailable", error=str(e))
        return None


def build_retrieval(config: RealtyConfig, store: VectorStore, embedder: Optional[LLMProvider]):
    return KnowledgeRetrievalService(
        store,
        embedder=embedder,
        top_k=config.retrieval.top_k,
        min_similarity=config.retrieval.min_similarity,
        vector_candidate_multiplier=config.retrieval.vector_candidate_multiplier,
        rule_candidate_limit=config.retrieval.rule_candidate_limit,
        weights=ScoringWeights(**config.scoring.model_dump()),
        per_category_limit=config.retrieval.per_category_limit,
    )


def build_generation_service(
    config: RealtyConfig,
    tenants: TenantStore,
    retrieval: Optional[KnowledgeRetrievalService],
    llm: Optional[LLMProvider],
) -> GenerationService:
    orchestrator = GenerationOrchestrator(
        llm,
        registry=registry,
        backoff_seconds=config.generation.backoff_seconds,
    )
    return GenerationService(
        tenants,
        orchestrator,
        retrieval=retrieval,
        registry=registry,
        collection_prefix=config.vector_store.collection_prefix,
    )


@lru_cache
def get_tenant_store() -> TenantStore:
    return TenantStore(get_config().paths.db_path)


@lru_cache
def get_vector_store() -> VectorStore:
    return VectorStore(get_config().paths.chroma_dir)


@lru_cache
def get_retrieval_service() -> KnowledgeRetrievalService:
    config = get_config()
    return build_retrieval(config, get_vector_store(), build_embedder(config))


@lru_cache
def get_generation_service() -> GenerationService:
    config = get_config()
    return build_generation_service(config, get_tenant_store(), get_retrieval_service(), build_llm(config))


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return RateLimiter(get_config().rate_limits)
