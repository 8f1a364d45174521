"""
Source Factory - Creates signal collectors from configuration.
"""
import logging
from typing import Callable, Dict, List, Optional

from core.errors import CollectionError
from ingestion.base import SignalCollector, SignalEvent
from ingestion.markets import CryptoCollector, GoldCollector, OilCollector
from ingestion.mock import (
    MockCryptoCollector,
    MockGoldCollector,
    MockNewsCollector,
    MockOilCollector,
    MockWeatherCollector,
)
from ingestion.rss import NewsCollector
from ingestion.weather import WeatherCollector
from services.config import Config, get_enabled_feeds
from services.logging import signal_extra

logger = logging.getLogger(__name__)

MOCK_COLLECTORS: Dict[str, Callable[[], SignalCollector]] = {
    "weather": MockWeatherCollector,
    "crypto": MockCryptoCollector,
    "gold": MockGoldCollector,
    "oil": MockOilCollector,
    "news": MockNewsCollector,
}


class FallbackCollector(SignalCollector):
    """
    Uses the real collector and falls back to its mock when collection fails.
    """

    def __init__(self, primary: SignalCollector, fallback: SignalCollector):
        self.primary = primary
        self.fallback = fallback
        self.kind = primary.kind
        self.name = primary.name

    async def collect(self) -> SignalEvent:
        try:
            return await self.primary.collect()
        except CollectionError as e:
            logger.warning(
                f"{self.primary.name} failed, using mock {self.kind} data: {e}",
                extra=signal_extra(self.kind),
            )
            return await self.fallback.collect()


def create_collector(kind: str, config: Config) -> Optional[SignalCollector]:
    """
    Create the real collector for a signal kind.

    Returns:
        The collector, or None when its credentials or feeds are missing

    Raises:
        ValueError: If the kind is unknown
    """
    collection = config.collection

    if kind == "weather":
        return WeatherCollector(collection.location)

    elif kind == "crypto":
        return CryptoCollector()

    elif kind == "gold":
        if not config.METALPRICE_API_KEY:
            return None
        return GoldCollector(config.METALPRICE_API_KEY)

    elif kind == "oil":
        if not config.EIA_API_KEY:
            return None
        return OilCollector(config.EIA_API_KEY)

    elif kind == "news":
        feeds = get_enabled_feeds(collection)
        if not feeds:
            return None
        return NewsCollector(feeds)

    else:
        raise ValueError(f"Unknown signal kind: {kind}")


def create_collectors(config: Config) -> List[SignalCollector]:
    """
    Create one collector per signal kind from configuration.
    """
    collection = config.collection
    collectors: List[SignalCollector] = []

    for kind, mock_factory in MOCK_COLLECTORS.items():
        if collection.use_mocks:
            collectors.append(mock_factory())
            logger.info(f"Using mock {kind} collector", extra=signal_extra(kind))
            continue

        collector = create_collector(kind, config)
        if collector is None:
            if collection.fallback_to_mock:
                logger.warning(f"No credentials or feeds for {kind}, using mock collector", extra=signal_extra(kind))
                collectors.append(mock_factory())
            else:
                logger.warning(f"No credentials or feeds for {kind}, collector disabled", extra=signal_extra(kind))
            continue

        if collection.fallback_to_mock:
            collector = FallbackCollector(collector, mock_factory())
        collectors.append(collector)
        logger.info(f"Created {kind} collector: {collector.name}", extra=signal_extra(kind))

    return collectors
