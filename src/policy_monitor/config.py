"""Configuration for the policy monitor.

Runtime settings come from environment variables (``MonitorSettings``); the
list of publishers to watch comes from a YAML file (``SourcesConfig``). Both are
built once at process start and handed to the components that need them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import SourceType

ENV_PREFIX = "POLICY_MONITOR_"

DEFAULT_SEARCH_TERMS = ["artificial intelligence", "machine learning", "algorithmic", "AI", "algorithm"]

DEFAULT_FEED_FAMILIES: Dict[str, Dict[str, Any]] = {
    "white_house": {
        "source_name": "White House",
        "source_type": "white_house",
        "feeds": [
            "https://www.whitehouse.gov/briefing-room/statements-releases/feed/",
            "https://www.whitehouse.gov/briefing-room/presidential-actions/feed/",
            "https://www.whitehouse.gov/briefing-room/press-briefings/feed/",
        ],
    },
    "congress": {
        "source_name": "Congress",
        "source_type": "congress",
        "feeds": [
            "https://science.house.gov/rss.xml",
            "https://www.commerce.senate.gov/public/index.cfm/rss/feed",
        ],
    },
    "eu_commission": {
        "source_name": "European Commission",
        "source_type": "eu_commission",
        "feeds": [
            "https://ec.europa.eu/newsroom/dae/rss.cfm?ServiceID=1090",
            "https://digital-strategy.ec.europa.eu/en/rss.xml",
        ],
    },
    "agency_rss": {
        "source_name": "Agency RSS",
        "source_type": "agency_rss",
        "feeds": [
            {"url": "https://www.nist.gov/news-events/news/rss.xml", "name": "NIST"},
            {"url": "https://www.ftc.gov/news-events/press-releases/rss.xml", "name": "FTC"},
            {"url": "https://www.cisa.gov/news/rss.xml", "name": "CISA"},
        ],
    },
}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(f"{ENV_PREFIX}{name}")
    if value is None or value == "":
        return default
    return value


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    return float(value) if value is not None else default


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    return int(value) if value is not None else default


@dataclass
class MonitorSettings:
    """Process-wide settings for the ingestion pipeline."""

    db_path: Path = Path("database/policy_monitor.db")
    sources_path: Path = Path("config/policy_sources.yaml")

    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.1
    llm_max_tokens: int = 2000
    llm_timeout_seconds: float = 60.0
    max_document_chars: int = 12000

    http_timeout_seconds: float = 30.0
    http_max_retries: int = 2

    search_delay_seconds: float = 1.0
    ingestion_delay_seconds: float = 1.0
    rescan_delay_seconds: float = 2.0

    confidence_threshold: int = 40
    default_days_back: int = 7
    rescan_recent_days: int = 30
    rescan_match_limit: int = 3

    cron_secret: Optional[str] = None
    admin_key: Optional[str] = None
    environment: str = "production"
    next_collection: str = "Daily at 6:00 AM UTC"

    log_level: str = "INFO"
    log_dir: Path = Path("logs")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @classmethod
    def from_env(cls) -> "MonitorSettings":
        """Load settings from environment variables."""
        defaults = cls()
        return cls(
            db_path=Path(_env("DB_PATH", str(defaults.db_path))),
            sources_path=Path(_env("SOURCES_PATH", str(defaults.sources_path))),
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            openai_base_url=os.environ.get("OPENAI_BASE_URL") or None,
            llm_model=_env("LLM_MODEL", defaults.llm_model),
            llm_temperature=_env_float("LLM_TEMPERATURE", defaults.llm_temperature),
            llm_max_tokens=_env_int("LLM_MAX_TOKENS", defaults.llm_max_tokens),
            llm_timeout_seconds=_env_float("LLM_TIMEOUT_SECONDS", defaults.llm_timeout_seconds),
            max_document_chars=_env_int("MAX_DOCUMENT_CHARS", defaults.max_document_chars),
            http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", defaults.http_timeout_seconds),
            http_max_retries=_env_int("HTTP_MAX_RETRIES", defaults.http_max_retries),
            search_delay_seconds=_env_float("SEARCH_DELAY_SECONDS", defaults.search_delay_seconds),
            ingestion_delay_seconds=_env_float("INGESTION_DELAY_SECONDS", defaults.ingestion_delay_seconds),
            rescan_delay_seconds=_env_float("RESCAN_DELAY_SECONDS", defaults.rescan_delay_seconds),
            confidence_threshold=_env_int("CONFIDENCE_THRESHOLD", defaults.confidence_threshold),
            default_days_back=_env_int("DEFAULT_DAYS_BACK", defaults.default_days_back),
            rescan_recent_days=_env_int("RESCAN_RECENT_DAYS", defaults.rescan_recent_days),
            rescan_match_limit=_env_int("RESCAN_MATCH_LIMIT", defaults.rescan_match_limit),
            cron_secret=os.environ.get("CRON_SECRET") or None,
            admin_key=os.environ.get("ADMIN_KEY") or None,
            environment=_env("ENVIRONMENT", defaults.environment),
            next_collection=_env("NEXT_COLLECTION", defaults.next_collection),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
            log_dir=Path(_env("LOG_DIR", str(defaults.log_dir))),
        )


@dataclass
class FeedSpec:
    """One feed URL and the publisher name it is reported under."""

    url: str
    name: str


@dataclass
class FeedFamilyConfig:
    """Configuration for a family of RSS/Atom feeds."""

    family_id: str
    source_name: str
    source_type: SourceType
    feeds: List[FeedSpec] = field(default_factory=list)
    enabled: bool = True
    max_entries_per_feed: int = 10

    @classmethod
    def from_dict(cls, family_id: str, data: Dict[str, Any], max_entries: int) -> "FeedFamilyConfig":
        source_name = data.get("source_name", family_id)
        feeds: List[FeedSpec] = []
        for entry in data.get("feeds", []):
            if isinstance(entry, str):
                feeds.append(FeedSpec(url=entry, name=source_name))
            else:
                feeds.append(FeedSpec(url=entry["url"], name=entry.get("name", source_name)))
        return cls(
            family_id=family_id,
            source_name=source_name,
            source_type=SourceType(data.get("source_type", family_id)),
            feeds=feeds,
            enabled=data.get("enabled", True),
            max_entries_per_feed=data.get("max_entries_per_feed", max_entries),
        )


@dataclass
class SearchApiConfig:
    """Configuration for the Federal Register search API."""

    enabled: bool = True
    endpoint: str = "https://www.federalregister.gov/api/v1/articles.json"
    terms: List[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_TERMS))
    page_size: int = 20
    order: str = "newest"


class SourcesConfig:
    """Source list loaded from ``config/policy_sources.yaml``."""

    DEFAULT_CONFIG_PATH = Path("config/policy_sources.yaml")

    def __init__(self, config_path: Optional[Path | str] = None) -> None:
        path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        if not path.is_absolute():
            path = Path.cwd() / path
        self.config_path = path
        self._data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {"search_api": {}, "feeds": DEFAULT_FEED_FAMILIES, "settings": {}}
        with open(self.config_path, "r", encoding="utf-8") as handle:
            return yaml.safe_load(handle) or {}

    def get_setting(self, key: str, default: Any = None) -> Any:
        return (self._data.get("settings") or {}).get(key, default)

    def get_search_api(self) -> SearchApiConfig:
        data = self._data.get("search_api") or {}
        defaults = SearchApiConfig()
        return SearchApiConfig(
            enabled=data.get("enabled", True),
            endpoint=data.get("endpoint", defaults.endpoint),
            terms=list(data.get("terms", defaults.terms)),
            page_size=min(int(data.get("page_size", defaults.page_size)), 20),
            order=data.get("order", defaults.order),
        )

    def get_feed_family(self, family_id: str) -> Optional[FeedFamilyConfig]:
        families = self._data.get("feeds") or {}
        if family_id not in families:
            return None
        return FeedFamilyConfig.from_dict(
            family_id, families[family_id], self.get_setting("max_entries_per_feed", 10)
        )

    def get_enabled_feed_families(self) -> List[FeedFamilyConfig]:
        families = self._data.get("feeds") or {}
        max_entries = self.get_setting("max_entries_per_feed", 10)
        return [
            FeedFamilyConfig.from_dict(family_id, data, max_entries)
            for family_id, data in families.items()
            if data.get("enabled", True)
        ]
