"""Tests for configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError

from cli.config import _deep_merge, find_config, load_config_model
from cli.config_models import LoggingConfig, RateLimitRule, RealtyConfig, RetrievalConfig


class TestDeepMerge:
    def test_nested(self):
        base = {"llm": {"provider": "openai", "model": "gpt-4o"}, "logging": {"level": "INFO"}}
        merged = _deep_merge(base, {"llm": {"model": "gpt-4o-mini"}})
        assert merged["llm"] == {"provider": "openai", "model": "gpt-4o-mini"}
        assert merged["logging"] == {"level": "INFO"}
        assert base["llm"]["model"] == "gpt-4o"


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path):
        config = load_config_model(tmp_path / "missing.yaml")
        assert config.llm.provider == "auto"
        assert config.vector_store.collection_prefix == "tenant_"
        assert config.retrieval.top_k == 5

    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "llm": {"provider": "claude"},
                    "retrieval": {"top_k": 8},
                    "logging": {"level": "debug", "json": True},
                }
            )
        )

        config = load_config_model(path)
        assert config.llm.provider == "claude"
        assert config.retrieval.top_k == 8
        assert config.logging.level == "DEBUG"
        assert config.logging.json_mode is True

    def test_overrides_win(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"retrieval": {"top_k": 8, "min_similarity": 0.3}}))

        config = load_config_model(path, overrides={"retrieval": {"top_k": 2}})
        assert config.retrieval.top_k == 2
        assert config.retrieval.min_similarity == 0.3

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("llm: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_model(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"llm": {"provider": "llama"}}))
        with pytest.raises(ValueError, match="Config validation failed"):
            load_config_model(path)

    def test_env_override_path(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        monkeypatch.setenv("REALTY_CONFIG", str(path))
        assert find_config() == path


class TestModels:
    def test_api_key_env_expansion(self, monkeypatch):
        monkeypatch.setenv("MY_OPENAI_KEY", "sk-from-env")
        config = RealtyConfig.model_validate({"llm": {"api_key": "${MY_OPENAI_KEY}"}})
        assert config.llm.api_key == "sk-from-env"

    def test_paths_expanded(self):
        config = RealtyConfig()
        assert "~" not in str(config.paths.db_path)

    def test_rate_limit_windows(self):
        assert RateLimitRule(window="24h").window_seconds == 86400
        with pytest.raises(ValidationError):
            RateLimitRule(window="5m")

    def test_default_rate_limits(self):
        limits = RealtyConfig().rate_limits.for_feature("offer_generation")
        assert limits.authenticated.requests == 50
        assert limits.unauthenticated.window == "24h"

    @pytest.mark.parametrize("value", [-0.1, 1.5])
    def test_similarity_bounds(self, value):
        with pytest.raises(ValidationError):
            RetrievalConfig(min_similarity=value)

    def test_bad_log_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")
