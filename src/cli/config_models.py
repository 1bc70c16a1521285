"""Pydantic configuration models for realty-intake."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_LLM_PROVIDERS = {"auto", "claude", "openai", "gemini"}
VALID_EMBEDDING_PROVIDERS = {"auto", "openai", "gemini"}
VALID_WINDOWS = {"1h": 3600, "24h": 86400}


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "auto"
    model: Optional[str] = None  # None = use provider default
    api_key: Optional[str] = None
    # Claude has no embeddings API, so embeddings may come from another provider
    embedding_provider: str = "auto"
    embedding_model: Optional[str] = None
    embedding_api_key: Optional[str] = None

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v

    @field_validator("embedding_provider")
    @classmethod
    def validate_embedding_provider(cls, v: str) -> str:
        if v not in VALID_EMBEDDING_PROVIDERS:
            raise ValueError(f"Invalid embedding provider: {v}. Must be one of {VALID_EMBEDDING_PROVIDERS}")
        return v


class PathsConfig(BaseModel):
    """File paths configuration."""

    data_dir: Path = Path("~/.realty")
    db_path: Path = Path("~/.realty/realty.db")
    chroma_dir: Path = Path("~/.realty/chroma")
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.data_dir = self.data_dir.expanduser()
        self.db_path = self.db_path.expanduser()
        self.chroma_dir = self.chroma_dir.expanduser()
        if self.log_file is not None:
            self.log_file = self.log_file.expanduser()
        return self


class VectorStoreConfig(BaseModel):
    """Tenant collections are named ``<collection_prefix><tenant id>``."""

    collection_prefix: str = "tenant_"


class RetrievalConfig(BaseModel):
    top_k: int = 5
    min_similarity: float = 0.0
    rule_candidate_limit: int = 500
    vector_candidate_multiplier: int = 3
    per_category_limit: Optional[int] = None

    @field_validator("min_similarity")
    @classmethod
    def validate_similarity(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"min_similarity must be 0-1, got {v}")
        return v

    @field_validator("top_k", "rule_candidate_limit", "vector_candidate_multiplier")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v


class ScoringConfig(BaseModel):
    """Story-to-phase assignment bonuses."""

    explicit_placement_bonus: int = 100
    tag_match_bonus: int = 10
    content_match_bonus: int = 5


class RateLimitRule(BaseModel):
    requests: int = 10
    window: str = "1h"

    @field_validator("window")
    @classmethod
    def validate_window(cls, v: str) -> str:
        if v not in VALID_WINDOWS:
            raise ValueError(f"Invalid window: {v}. Must be one of {sorted(VALID_WINDOWS)}")
        return v

    @property
    def window_seconds(self) -> int:
        return VALID_WINDOWS[self.window]


class FeatureRateLimit(BaseModel):
    """Limits for one rate-limited feature."""

    enabled: bool = True
    authenticated: RateLimitRule = Field(default_factory=lambda: RateLimitRule(requests=50, window="1h"))
    unauthenticated: RateLimitRule = Field(default_factory=lambda: RateLimitRule(requests=10, window="24h"))


class RateLimitsConfig(BaseModel):
    """Per-feature admission limits. ``offer_generation`` covers both generate routes."""

    features: dict[str, FeatureRateLimit] = Field(
        default_factory=lambda: {"offer_generation": FeatureRateLimit()}
    )

    def for_feature(self, feature: str) -> Optional[FeatureRateLimit]:
        return self.features.get(feature)


class GenerationConfig(BaseModel):
    # None keeps each offer's own retry backoff
    backoff_seconds: Optional[float] = None


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_mode: bool = Field(default=False, alias="json")

    model_config = {"populate_by_name": True}

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class RealtyConfig(BaseModel):
    """Main configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    rate_limits: RateLimitsConfig = Field(default_factory=RateLimitsConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in API keys."""
        for attr in ("api_key", "embedding_api_key"):
            key = getattr(self.llm, attr)
            if key and key.startswith("${") and key.endswith("}"):
                setattr(self.llm, attr, os.getenv(key[2:-1], ""))
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "RealtyConfig":
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
