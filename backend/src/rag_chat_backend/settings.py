"""
Backend configuration.

All settings come from environment variables; secrets (API keys) are read
from a mounted secret file first and from the environment second, so the same
code runs locally and in a deployment with mounted secrets.

Variables:
    LLM_BACKEND              'openai' (default) or 'local' (any OpenAI-compatible server, needs LLM_BASE_URL)
    MODEL                    model name, per-backend default when unset
    LLM_BASE_URL             base URL of the OpenAI-compatible server
    TEMPERATURE, TOP_P       sampling parameters (default 1.0)
    MAX_TOKENS               completion token limit (unset by default)
    FREQUENCY_PENALTY, PRESENCE_PENALTY
    SEARCH_ENDPOINT          semantic search service; SEARCH_INDEX_NAME and SEARCH_API_KEY go with it
    CORPUS_DIR               directory of .txt/.md files for the offline BM25 retriever
    CONTEXT_RECENT_MESSAGES  history window size (default 6)
    VECTOR_SEARCH_RESULTS    documents retrieved per question (default 5)
    STORE                    'memory' (default) or 'none'
    MOCK_USER_ID             user id assumed for requests from localhost
    LOG_LEVEL                loguru level (default INFO)
    LOCALE                   'en' (default) or 'fr', selects the cancel and error notices
"""

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

SECRETS_DIR = Path("/secrets")

NOTICES: dict[str, dict[str, str]] = {
    "en": {
        "cancel_message": "The response was cancelled.",
        "error_message": "Sorry, something went wrong while generating the response. Please try again.",
    },
    "fr": {
        "cancel_message": "La réponse a été annulée.",
        "error_message": "Désolé, une erreur est survenue lors de la génération de la réponse. Veuillez réessayer.",
    },
}


def _get_secret(name: str, env: Mapping[str, str] | None = None, secrets_dir: Path = SECRETS_DIR) -> str | None:
    """Load a secret from '<secrets_dir>/<name>' or the '<name>' environment variable.

    Returns None if neither is available; callers decide whether that is fatal.
    """
    env = os.environ if env is None else env
    secret_file = secrets_dir / name
    if secret_file.exists():
        return secret_file.read_text().strip()
    return env.get(name) or None


def _env_int(env: Mapping[str, str], name: str, default: int | None) -> int | None:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer, using {default}")
        return default


def _env_float(env: Mapping[str, str], name: str, default: float | None) -> float | None:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a number, using {default}")
        return default


@dataclass
class BackendSettings:
    llm_backend: str = "openai"
    model: str | None = None
    llm_base_url: str | None = None
    llm_api_key: str | None = None
    temperature: float = 1.0
    top_p: float = 1.0
    max_tokens: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    search_endpoint: str | None = None
    search_index_name: str | None = None
    search_api_key: str | None = None
    corpus_dir: Path | None = None
    recent_messages_count: int = 6
    top_search_results_count: int = 5
    store: str = "memory"
    mock_user_id: str | None = None
    log_level: str = "INFO"
    locale: str = "en"
    notices: dict[str, str] = field(default_factory=lambda: dict(NOTICES["en"]))

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, secrets_dir: Path = SECRETS_DIR) -> "BackendSettings":
        env = os.environ if env is None else env

        llm_backend = env.get("LLM_BACKEND", "openai").lower().strip() or "openai"
        api_key_name = "OPENAI_API_KEY" if llm_backend == "openai" else "LLM_API_KEY"

        locale = env.get("LOCALE", "en").lower().strip()
        if locale not in NOTICES:
            logger.warning(f"Unsupported LOCALE {locale!r}, falling back to 'en'")
            locale = "en"

        corpus_dir = env.get("CORPUS_DIR", "").strip()

        return cls(
            llm_backend=llm_backend,
            model=env.get("MODEL") or None,
            llm_base_url=env.get("LLM_BASE_URL") or None,
            llm_api_key=_get_secret(api_key_name, env, secrets_dir),
            temperature=_env_float(env, "TEMPERATURE", 1.0),  # type: ignore[arg-type]
            top_p=_env_float(env, "TOP_P", 1.0),  # type: ignore[arg-type]
            max_tokens=_env_int(env, "MAX_TOKENS", None),
            frequency_penalty=_env_float(env, "FREQUENCY_PENALTY", None),
            presence_penalty=_env_float(env, "PRESENCE_PENALTY", None),
            search_endpoint=env.get("SEARCH_ENDPOINT") or None,
            search_index_name=env.get("SEARCH_INDEX_NAME") or None,
            search_api_key=_get_secret("SEARCH_API_KEY", env, secrets_dir),
            corpus_dir=Path(corpus_dir) if corpus_dir else None,
            recent_messages_count=_env_int(env, "CONTEXT_RECENT_MESSAGES", 6),  # type: ignore[arg-type]
            top_search_results_count=_env_int(env, "VECTOR_SEARCH_RESULTS", 5),  # type: ignore[arg-type]
            store=env.get("STORE", "memory").lower().strip() or "memory",
            mock_user_id=env.get("MOCK_USER_ID") or None,
            log_level=env.get("LOG_LEVEL", "INFO").upper().strip() or "INFO",
            locale=locale,
            notices=dict(NOTICES[locale]),
        )


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a single stderr sink at 'level'."""
    logger.remove()
    logger.add(sys.stderr, level=level)
