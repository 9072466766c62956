"""
Process-wide configuration.

Settings are resolved once from the environment (after loading a `.env` file
from the repository root, if present) and then shared by every component that
is built at startup.

Environment configuration:
- LORE_CORPUS_PATH: Path to the lore corpus JSON file (default: packaged corpus)
- LORE_RETRIEVAL_ENABLED: Feature flag for evidence retrieval (default: true)
- LORE_RETRIEVAL_THRESHOLD: Minimum top score for evidence to be used (default: 0.15)
- LORE_RETRIEVAL_TOP_K: Number of evidence snippets to retrieve (default: 4)
- LORE_DECISION_LOG_SIZE: Number of recent gating decisions kept in memory (default: 100)
- LLM_API_BASE: Base URL for an OpenAI-compatible API (default: https://api.openai.com/v1)
- LLM_API_KEY: API key / bearer token (unset: LLM calls fail fast)
- LLM_MODEL: Chat model name (default: gpt-4o-mini)
- LLM_TIMEOUT_SECONDS: Per-attempt request timeout (default: 30.0)
- LLM_MAX_RETRIES: Retries for retryable LLM failures (default: 2)
- LLM_MAX_TOKENS / LLM_TEMPERATURE: Completion parameters
- CORS_ORIGINS: Comma-separated allowed origins (default: http://localhost:5173)
- LOG_LEVEL / LOG_JSON: Logging configuration
- OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint for span export (optional)
"""
import math
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from eldermind.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CORPUS_PATH = Path(__file__).parent.parent / "data" / "lore_corpus.json"
ENV_PATH = Path(__file__).parent.parent.parent.parent / ".env"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float, minimum: Optional[float] = None) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("config_invalid_value", name=name, value=raw, default=default)
        return default
    if not math.isfinite(value) or (minimum is not None and value < minimum):
        logger.warning("config_invalid_value", name=name, value=raw, default=default)
        return default
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("config_invalid_value", name=name, value=raw, default=default)
        return default


class Settings(BaseModel):
    """Immutable application settings."""

    model_config = {"frozen": True}

    corpus_path: Path = DEFAULT_CORPUS_PATH
    retrieval_enabled: bool = True
    retrieval_threshold: float = Field(0.15, ge=0.0, allow_inf_nan=False)
    retrieval_top_k: int = Field(4, ge=0)
    decision_log_size: int = Field(100, ge=1)

    llm_api_base: str = "https://api.openai.com/v1"
    llm_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 30.0
    llm_max_retries: int = Field(2, ge=0)
    llm_max_tokens: int = 800
    llm_temperature: float = 0.3

    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"
    log_json: bool = True
    otlp_endpoint: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        corpus_path = os.getenv("LORE_CORPUS_PATH")
        cors_raw = os.getenv("CORS_ORIGINS", "http://localhost:5173")
        return cls(
            corpus_path=Path(corpus_path) if corpus_path else DEFAULT_CORPUS_PATH,
            retrieval_enabled=_env_bool("LORE_RETRIEVAL_ENABLED", True),
            retrieval_threshold=_env_float("LORE_RETRIEVAL_THRESHOLD", 0.15, minimum=0.0),
            retrieval_top_k=max(_env_int("LORE_RETRIEVAL_TOP_K", 4), 0),
            decision_log_size=max(_env_int("LORE_DECISION_LOG_SIZE", 100), 1),
            llm_api_base=os.getenv("LLM_API_BASE", "https://api.openai.com/v1"),
            llm_api_key=os.getenv("LLM_API_KEY") or None,
            llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", 30.0, minimum=0.0),
            llm_max_retries=max(_env_int("LLM_MAX_RETRIES", 2), 0),
            llm_max_tokens=_env_int("LLM_MAX_TOKENS", 800),
            llm_temperature=_env_float("LLM_TEMPERATURE", 0.3),
            cors_origins=[o.strip() for o in cors_raw.split(",") if o.strip()],
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON", True),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or None,
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get global settings instance.

    The `.env` file is loaded on first access; variables already present in
    the environment take precedence.
    """
    global _settings
    if _settings is None:
        if ENV_PATH.exists():
            load_dotenv(ENV_PATH)
            logger.info("env_loaded", env_path=str(ENV_PATH))
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
