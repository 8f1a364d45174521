"""
Loads and handles config from config.yml
API keys (METALPRICE_API_KEY, EIA_API_KEY) are loaded from .env for security
"""
import logging
import os
from typing import List, Dict, Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class NewsFeedConfig(BaseModel):
    """A single RSS feed; every headline from it is tagged with `category`."""
    name: str
    url: str
    category: str = "general"
    enabled: bool = True


class LocationConfig(BaseModel):
    name: str = "Ho Chi Minh City"
    latitude: float = 10.82
    longitude: float = 106.63


class CollectionConfig(BaseModel):
    """Configuration for the signal collectors."""
    weather_interval_hours: float = 3.0
    price_interval_hours: float = 12.0
    news_interval_hours: float = 0.5
    location: LocationConfig = Field(default_factory=LocationConfig)
    news_feeds: List[NewsFeedConfig] = []
    use_mocks: bool = False  # Use mock collectors for every signal
    fallback_to_mock: bool = True  # Use the mock when a real collector has no credentials

    @property
    def weather_interval(self) -> float:
        return self.weather_interval_hours * 3600

    @property
    def price_interval(self) -> float:
        return self.price_interval_hours * 3600

    @property
    def news_interval(self) -> float:
        return self.news_interval_hours * 3600


class CoordinatorConfig(BaseModel):
    """
    Knobs for grouping, cooldown and queue processing.
    Durations are configured in minutes/seconds and exposed in seconds.
    """
    cooldown_minutes: float = Field(15.0, ge=0)
    idle_poll_minutes: float = Field(5.0, gt=0)
    min_category_merge_count: int = Field(2, ge=1)
    max_merge_items: int = Field(3, ge=1)
    recent_items_scan_limit: int = Field(100, ge=1)
    generation_timeout_seconds: float = Field(10.0, gt=0)
    max_used_ids: Optional[int] = Field(10000, ge=1)
    min_context_sources: int = Field(2, ge=0)
    scheduled_interval_minutes: float = Field(30.0, ge=0)  # 0 disables the scheduled trigger

    @property
    def cooldown(self) -> float:
        return self.cooldown_minutes * 60

    @property
    def idle_poll_interval(self) -> float:
        return self.idle_poll_minutes * 60

    @property
    def scheduled_interval(self) -> float:
        return self.scheduled_interval_minutes * 60


class Config(BaseModel):
    # Core
    DATABASE_PATH: str
    TEST_MODE: bool = False

    # Ollama
    OLLAMA_BASE_URL: str
    OLLAMA_MODEL: str
    OLLAMA_TEMPERATURE: float = 0.9
    OLLAMA_TIMEOUT: float = 120.0

    # Market data credentials
    METALPRICE_API_KEY: Optional[str] = None
    EIA_API_KEY: Optional[str] = None

    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    collection: CollectionConfig = Field(default_factory=CollectionConfig)


def _bool(value: str | bool) -> bool:
    """Convert string or bool to boolean."""
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes", "on")


def _get_config_path(path: Optional[str] = None) -> str:
    """Get the path to config.yml, handling different working directories."""
    if path:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Cannot find config file: {path}")
        return path

    env_path = os.getenv("FISH_FORGE_CONFIG")
    if env_path and os.path.exists(env_path):
        return env_path

    # Try relative path first
    if os.path.exists('resources/config.yml'):
        return 'resources/config.yml'

    # Try from project root
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    config_path = os.path.join(project_root, 'resources', 'config.yml')
    if os.path.exists(config_path):
        return config_path

    raise FileNotFoundError("Cannot find resources/config.yml")


def _parse_news_feeds(data: List[Dict[str, Any]]) -> List[NewsFeedConfig]:
    feeds = []
    for feed in data or []:
        try:
            feeds.append(NewsFeedConfig(
                name=feed.get("name") or feed.get("url", "rss"),
                url=feed["url"],
                category=feed.get("category", "general"),
                enabled=_bool(feed.get("enabled", True)),
            ))
        except (KeyError, AttributeError) as e:
            logger.error(f"Failed to parse news feed entry {feed!r}: {e}")
    return feeds


def _parse_collection_config(data: Dict[str, Any]) -> CollectionConfig:
    return CollectionConfig(
        weather_interval_hours=float(data.get("weather_interval_hours", 3.0)),
        price_interval_hours=float(data.get("price_interval_hours", 12.0)),
        news_interval_hours=float(data.get("news_interval_hours", 0.5)),
        location=LocationConfig(**(data.get("location") or {})),
        news_feeds=_parse_news_feeds(data.get("news_feeds") or []),
        use_mocks=_bool(data.get("use_mocks", False)),
        fallback_to_mock=_bool(data.get("fallback_to_mock", True)),
    )


def apply_test_mode(config: Config) -> Config:
    """
    Short intervals for local testing: 10 second cooldown, collection every
    30 seconds and mock collectors everywhere.
    """
    coordinator = config.coordinator.model_copy(update={
        "cooldown_minutes": 10 / 60,
        "idle_poll_minutes": 0.5,
        "scheduled_interval_minutes": 1.0,
    })
    collection = config.collection.model_copy(update={
        "weather_interval_hours": 30 / 3600,
        "price_interval_hours": 30 / 3600,
        "news_interval_hours": 30 / 3600,
        "use_mocks": True,
    })
    return config.model_copy(update={
        "TEST_MODE": True,
        "coordinator": coordinator,
        "collection": collection,
    })


def load_config(path: Optional[str] = None, test_mode: bool = False) -> Config:
    """Load configuration from config.yml and API keys from .env."""
    # Load .env for sensitive credentials
    load_dotenv()

    config_path = _get_config_path(path)

    with open(config_path, 'r') as file:
        raw = yaml.safe_load(file) or {}

    config = Config(
        DATABASE_PATH=raw.get("DATABASE_PATH", "data/fish.db"),
        TEST_MODE=_bool(os.getenv("TEST_MODE", raw.get("TEST_MODE", False))),

        OLLAMA_BASE_URL=os.getenv("OLLAMA_BASE_URL", raw.get("OLLAMA_BASE_URL", "http://localhost:11434")),
        OLLAMA_MODEL=raw.get("OLLAMA_MODEL", "llama3.1:8b"),
        OLLAMA_TEMPERATURE=float(raw.get("OLLAMA_TEMPERATURE", 0.9)),
        OLLAMA_TIMEOUT=float(raw.get("OLLAMA_TIMEOUT", 120.0)),

        METALPRICE_API_KEY=os.getenv("METALPRICE_API_KEY"),
        EIA_API_KEY=os.getenv("EIA_API_KEY"),

        coordinator=CoordinatorConfig(**(raw.get("coordinator") or {})),
        collection=_parse_collection_config(raw.get("collection") or {}),
    )

    if test_mode or config.TEST_MODE:
        config = apply_test_mode(config)

    return config


def get_enabled_feeds(collection_config: CollectionConfig) -> List[NewsFeedConfig]:
    """Get only enabled news feeds."""
    return [feed for feed in collection_config.news_feeds if feed.enabled]
