"""
Configuration for jobfunnel.

Settings come from a YAML file (all sections optional) and API keys from
the environment, optionally populated from a ``.env`` file via
python-dotenv.  Values are validated when the config is built so that a
bad setting fails before any external call is made.

Example ``funnel.yaml``::

    funnel:
      max_to_scrape: 8
      min_score_to_scrape: 60
    llm:
      provider: openai
      model: gpt-4.1-mini
    embedding:
      provider: openai
      dimensions: 1024
    vector_store:
      backend: pinecone
      namespace: jobs-v1
    logging:
      level: DEBUG
      file: funnel.log
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

import yaml  # type: ignore
from dotenv import load_dotenv

from .errors import ConfigurationError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

BANNED_TITLE_TERMS: Tuple[str, ...] = (
    "counsel",
    "attorney",
    "lawyer",
    "legal",
    "paralegal",
    "recruiter",
    "sales",
    "account executive",
    "marketing",
    "designer",
    "accountant",
    "hr",
    "human resources",
)

LLM_PROVIDERS = ("openai", "gemini")
EMBEDDING_PROVIDERS = ("openai", "gemini", "hashing")
VECTOR_BACKENDS = ("memory", "pinecone")
SEARCH_BACKENDS = ("brightdata", "duckduckgo")
SCRAPE_BACKENDS = ("crawl4ai", "brightdata")


def require_env(name: str) -> str:
    """Return the value of ``name`` or raise :class:`ConfigurationError`."""
    value = os.getenv(name)
    if value is None or not value.strip():
        raise ConfigurationError(f"Missing required env var: {name}")
    return value.strip()


@dataclass
class FunnelSettings:
    """Knobs for the funnel stages.  Limits are per run."""

    max_queries: int = 3
    search_results_per_query: int = 10
    search_concurrency: int = 2
    search_attempts: int = 2
    url_batch_size: int = 25
    score_concurrency: int = 4
    min_score_to_scrape: float = 60
    keep_careers: bool = True
    max_to_scrape: int = 10
    scrape_concurrency: int = 3
    scrape_attempts: int = 2
    exhaustive_extraction: bool = True
    max_postings: int = 200
    embed_concurrency: int = 4
    retrieve_top_k: int = 30
    final_top_k: int = 10
    persist_concurrency: int = 10
    include_known_postings: bool = True
    recent_days: int = 30
    freshness_days: int = 30
    banned_title_terms: List[str] = field(default_factory=lambda: list(BANNED_TITLE_TERMS))

    def validate(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if f.name == "min_score_to_scrape":
                if not 0 <= value <= 100:
                    raise ConfigurationError("funnel.min_score_to_scrape must be within 0..100")
            elif value <= 0:
                raise ConfigurationError(f"funnel.{f.name} must be positive, got {value}")


@dataclass
class LLMSettings:
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.2


@dataclass
class EmbeddingSettings:
    provider: str = "openai"
    model: Optional[str] = None
    dimensions: Optional[int] = None


@dataclass
class VectorStoreSettings:
    backend: str = "memory"
    index_name: Optional[str] = None
    namespace: str = "jobs-v1"


@dataclass
class SearchSettings:
    backend: str = "duckduckgo"


@dataclass
class ScrapeSettings:
    backend: str = "crawl4ai"
    timeout_seconds: int = 30
    max_chars: int = 60000


@dataclass
class LoggingSettings:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    funnel: FunnelSettings = field(default_factory=FunnelSettings)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    llm: LLMSettings = field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = field(default_factory=EmbeddingSettings)
    vector_store: VectorStoreSettings = field(default_factory=VectorStoreSettings)
    search: SearchSettings = field(default_factory=SearchSettings)
    scrape: ScrapeSettings = field(default_factory=ScrapeSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AppConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigurationError("Config root must be a mapping")
        config = cls(
            funnel=_section(FunnelSettings, data.get("funnel")),
            retry=_section(RetryPolicy, data.get("retry")),
            llm=_section(LLMSettings, data.get("llm")),
            embedding=_section(EmbeddingSettings, data.get("embedding")),
            vector_store=_section(VectorStoreSettings, data.get("vector_store")),
            search=_section(SearchSettings, data.get("search")),
            scrape=_section(ScrapeSettings, data.get("scrape")),
            logging=_section(LoggingSettings, data.get("logging")),
        )
        config.validate()
        return config

    def validate(self) -> None:
        self.funnel.validate()
        if self.retry.max_retries < 0 or self.retry.base_delay < 0:
            raise ConfigurationError("retry.max_retries and retry.base_delay must be >= 0")
        _check_choice("llm.provider", self.llm.provider, LLM_PROVIDERS, optional=True)
        _check_choice("embedding.provider", self.embedding.provider, EMBEDDING_PROVIDERS)
        _check_choice("vector_store.backend", self.vector_store.backend, VECTOR_BACKENDS)
        _check_choice("search.backend", self.search.backend, SEARCH_BACKENDS)
        _check_choice("scrape.backend", self.scrape.backend, SCRAPE_BACKENDS)


def _section(cls, raw: Optional[Dict[str, Any]]):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config section for {cls.__name__} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(sorted(unknown)))
    try:
        return cls(**{k: v for k, v in raw.items() if k in known})
    except TypeError as exc:
        raise ConfigurationError(f"Invalid {cls.__name__} settings: {exc}") from exc


def _check_choice(name: str, value: Optional[str], choices: Tuple[str, ...], optional: bool = False) -> None:
    if value is None and optional:
        return
    if value not in choices:
        raise ConfigurationError(f"{name} must be one of {', '.join(choices)}; got {value!r}")


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load ``.env`` into the environment and parse the YAML config at ``path``.

    A missing ``path`` yields the defaults.
    """
    load_dotenv()
    if not path:
        return AppConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Config file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Config file {path} is not valid YAML: {exc}") from exc
    return AppConfig.from_dict(data)


def configure_logging(settings: LoggingSettings) -> None:
    level = getattr(logging, str(settings.level).upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.file:
        handlers.append(logging.FileHandler(settings.file))
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=handlers,
    )
    logger.debug("Logging configured at level %s", settings.level)
