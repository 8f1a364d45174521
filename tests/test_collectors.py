"""Tests for signal collectors and the collector factory (no network access)."""

from __future__ import annotations

import math

import pytest

from core.errors import CollectionError
from ingestion.base import SignalCollector, SignalEvent
from ingestion.markets import GoldCollector, OilCollector, CryptoCollector, sanitize_gold_price
from ingestion.mock import MockGoldCollector, MockNewsCollector, MockWeatherCollector
from ingestion.rss import NewsCollector, estimate_sentiment, extract_keywords
from ingestion.source_factory import FallbackCollector, create_collectors
from ingestion.weather import WeatherCollector, is_extreme_weather
from services.config import Config, CollectionConfig, LocationConfig, NewsFeedConfig

RSS_XML = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>Test</title>
<item><title>Tech giants celebrate record growth</title><link>https://example.com/1</link>
<description>Numbers went up.</description><pubDate>Wed, 01 May 2024 10:00:00 GMT</pubDate></item>
<item><title></title><link>https://example.com/empty</link></item>
<item><title>Storm damage causes crisis on coast</title><link>https://example.com/2</link></item>
</channel></rss>"""


class FailingCollector(SignalCollector):
    kind = "gold"
    name = "broken"

    async def collect(self) -> SignalEvent:
        raise CollectionError("api down", kind=self.kind)


def _config(**collection) -> Config:
    return Config(
        DATABASE_PATH=":memory:",
        OLLAMA_BASE_URL="http://localhost:11434",
        OLLAMA_MODEL="test",
        collection=CollectionConfig(**collection),
    )


class TestNewsHelpers:

    def test_sentiment(self) -> None:
        assert estimate_sentiment("Company celebrates success") == 1.0
        assert estimate_sentiment("Market crash sparks fear") == -1.0
        assert estimate_sentiment("Council meets on Tuesday") == 0.0

    def test_keywords_drop_short_and_stop_words(self) -> None:
        assert extract_keywords("The Ocean, and the Reef!", "science") == ["ocean", "reef", "science"]


class TestNewsCollector:

    def test_parse_feed(self) -> None:
        feed = NewsFeedConfig(name="test-feed", url="https://example.com/rss", category="technology")
        items = NewsCollector([feed]).parse_feed(RSS_XML, feed)

        assert [i.headline for i in items] == [
            "Tech giants celebrate record growth",
            "Storm damage causes crisis on coast",
        ]
        first = items[0]
        assert first.source == "test-feed"
        assert first.category == "technology"
        assert first.url == "https://example.com/1"
        assert first.sentiment > 0
        assert first.published_at is not None
        assert first.source_id == "test-feed:Tech giants celebrate record growth"
        assert items[1].sentiment < 0

    @pytest.mark.asyncio
    async def test_no_feeds_configured(self) -> None:
        with pytest.raises(CollectionError):
            await NewsCollector([]).collect()


class TestMarketParsers:

    @pytest.mark.parametrize("price", [50.0, float("nan"), float("inf"), -3.0])
    def test_implausible_gold_price_clamped(self, price) -> None:
        assert sanitize_gold_price(price) == 1800.0

    def test_plausible_gold_price_kept(self) -> None:
        assert sanitize_gold_price(2345.6) == 2345.6

    def test_gold_change_from_previous(self) -> None:
        collector = GoldCollector("key")
        first = collector.parse({"success": True, "result": 2000.0})
        second = collector.parse({"success": True, "result": 2020.0})
        assert first.change_24h == 0.0
        assert second.change_24h == pytest.approx(1.0)

    def test_gold_unsuccessful_response(self) -> None:
        with pytest.raises(CollectionError):
            GoldCollector("key").parse({"success": False})

    def test_gold_requires_key(self) -> None:
        with pytest.raises(ValueError):
            GoldCollector("")

    def test_oil_parse(self) -> None:
        data = {"response": {"data": [{"value": 82.0}, {"value": 80.0}]}}
        oil = OilCollector("key").parse(data)
        assert oil.price_usd == 82.0
        assert oil.change_24h == pytest.approx(2.5)

    def test_oil_bad_payload(self) -> None:
        with pytest.raises(CollectionError):
            OilCollector("key").parse({"response": {}})

    def test_crypto_parse(self) -> None:
        data = [{"symbol": "btc", "current_price": 64000, "price_change_percentage_24h": -2.5, "total_volume": 1e9}]
        price = CryptoCollector().parse(data)
        assert price.symbol == "BTC"
        assert price.price_usd == 64000.0
        assert price.change_24h == -2.5

    def test_crypto_empty(self) -> None:
        with pytest.raises(CollectionError):
            CryptoCollector().parse([])


class TestWeather:

    def test_parse(self) -> None:
        collector = WeatherCollector(LocationConfig())
        weather = collector.parse({
            "current": {
                "temperature_2m": 31.2,
                "relative_humidity_2m": 80,
                "wind_speed_10m": 12.0,
                "weather_code": 95,
            }
        })
        assert weather.condition == "Thunderstorm"
        assert weather.location == "Ho Chi Minh City"
        assert weather.is_extreme

    def test_missing_current_block(self) -> None:
        with pytest.raises(CollectionError):
            WeatherCollector(LocationConfig()).parse({})

    def test_extreme_thresholds(self) -> None:
        assert is_extreme_weather("Clear", 36.0, 5.0)
        assert is_extreme_weather("Clear", -11.0, 5.0)
        assert is_extreme_weather("Clear", 20.0, 80.0)
        assert not is_extreme_weather("Clear", 20.0, 5.0)


class TestMocks:

    @pytest.mark.asyncio
    async def test_mock_events_have_expected_kinds(self) -> None:
        weather = await MockWeatherCollector().collect()
        gold = await MockGoldCollector().collect()
        news = await MockNewsCollector(items_per_collect=4).collect()

        assert weather.kind == "weather"
        assert 10.0 <= weather.value.temp_c <= 35.0
        assert gold.kind == "gold"
        assert 1600 <= gold.value.price_usd <= 2200
        assert not math.isnan(gold.value.price_usd)
        assert news.kind == "news"
        assert len(news.value) == 4
        assert all(item.category for item in news.value)


class TestFactory:

    @pytest.mark.asyncio
    async def test_fallback_used_on_failure(self) -> None:
        collector = FallbackCollector(FailingCollector(), MockGoldCollector())
        event = await collector.collect()
        assert event.kind == "gold"
        assert event.source == "mock-gold"

    def test_use_mocks_everywhere(self) -> None:
        collectors = create_collectors(_config(use_mocks=True))
        assert sorted(c.kind for c in collectors) == ["crypto", "gold", "news", "oil", "weather"]
        assert all(c.name.startswith("mock-") for c in collectors)

    def test_missing_credentials_fall_back_to_mock(self) -> None:
        collectors = {c.kind: c for c in create_collectors(_config())}
        assert collectors["gold"].name == "mock-gold"
        assert collectors["oil"].name == "mock-oil"
        assert collectors["news"].name == "mock-news"
        assert isinstance(collectors["weather"], FallbackCollector)

    def test_missing_credentials_without_fallback(self) -> None:
        collectors = create_collectors(_config(fallback_to_mock=False))
        assert sorted(c.kind for c in collectors) == ["crypto", "weather"]
