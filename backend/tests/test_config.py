"""
Tests for environment-driven settings.
"""
from pathlib import Path

import pytest
from pydantic import ValidationError

from eldermind.core import config
from eldermind.core.config import DEFAULT_CORPUS_PATH, Settings, get_settings, reset_settings

ENV_VARS = [
    "LORE_CORPUS_PATH",
    "LORE_RETRIEVAL_ENABLED",
    "LORE_RETRIEVAL_THRESHOLD",
    "LORE_RETRIEVAL_TOP_K",
    "LORE_DECISION_LOG_SIZE",
    "LLM_API_BASE",
    "LLM_API_KEY",
    "LLM_MODEL",
    "LLM_TIMEOUT_SECONDS",
    "LLM_MAX_RETRIES",
    "CORS_ORIGINS",
    "LOG_JSON",
    "OTEL_EXPORTER_OTLP_ENDPOINT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()

    assert settings.corpus_path == DEFAULT_CORPUS_PATH
    assert settings.retrieval_enabled is True
    assert settings.retrieval_threshold == 0.15
    assert settings.retrieval_top_k == 4
    assert settings.decision_log_size == 100
    assert settings.llm_api_key is None
    assert settings.llm_model == "gpt-4o-mini"
    assert settings.cors_origins == ["http://localhost:5173"]
    assert settings.otlp_endpoint is None


def test_reads_environment(clean_env, tmp_path):
    corpus = tmp_path / "corpus.json"
    clean_env.setenv("LORE_CORPUS_PATH", str(corpus))
    clean_env.setenv("LORE_RETRIEVAL_ENABLED", "false")
    clean_env.setenv("LORE_RETRIEVAL_THRESHOLD", "1.5")
    clean_env.setenv("LORE_RETRIEVAL_TOP_K", "6")
    clean_env.setenv("LLM_API_KEY", "sk-test")
    clean_env.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")
    clean_env.setenv("LOG_JSON", "0")

    settings = Settings.from_env()

    assert settings.corpus_path == Path(corpus)
    assert settings.retrieval_enabled is False
    assert settings.retrieval_threshold == 1.5
    assert settings.retrieval_top_k == 6
    assert settings.llm_api_key == "sk-test"
    assert settings.cors_origins == ["http://a.test", "http://b.test"]
    assert settings.log_json is False


def test_invalid_numbers_fall_back_to_defaults(clean_env):
    clean_env.setenv("LORE_RETRIEVAL_THRESHOLD", "high")
    clean_env.setenv("LORE_RETRIEVAL_TOP_K", "four")
    clean_env.setenv("LLM_MAX_RETRIES", "-3")

    settings = Settings.from_env()

    assert settings.retrieval_threshold == 0.15
    assert settings.retrieval_top_k == 4
    assert settings.llm_max_retries == 0


@pytest.mark.parametrize("raw", ["nan", "inf", "-inf", "-1"])
def test_unusable_threshold_falls_back_to_default(clean_env, raw):
    clean_env.setenv("LORE_RETRIEVAL_THRESHOLD", raw)

    assert Settings.from_env().retrieval_threshold == 0.15


@pytest.mark.parametrize("value", [float("nan"), float("inf"), -0.5])
def test_settings_reject_unusable_threshold(value):
    with pytest.raises(ValidationError):
        Settings(retrieval_threshold=value)


def test_blank_api_key_is_unset(clean_env):
    clean_env.setenv("LLM_API_KEY", "")

    assert Settings.from_env().llm_api_key is None


def test_settings_are_frozen():
    settings = Settings()

    with pytest.raises(Exception):
        settings.retrieval_threshold = 0.5


def test_get_settings_is_cached(clean_env, tmp_path):
    clean_env.setattr(config, "ENV_PATH", tmp_path / "missing.env")
    reset_settings()
    try:
        first = get_settings()
        clean_env.setenv("LLM_MODEL", "other-model")
        assert get_settings() is first

        reset_settings()
        assert get_settings().llm_model == "other-model"
    finally:
        reset_settings()
