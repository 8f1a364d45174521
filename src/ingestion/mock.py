"""
Mock collectors producing plausible random signals.
Used in test mode and as fallback when a real collector is unavailable.
"""
import random
from typing import List, Optional

from ingestion.base import (
    CryptoPrice,
    GoldPrice,
    NewsItem,
    OilPrice,
    SignalCollector,
    SignalEvent,
    WeatherInfo,
)
from ingestion.rss import estimate_sentiment, extract_keywords

MOCK_LOCATIONS = ["Ho Chi Minh City", "Hanoi", "Da Nang", "Nha Trang", "Can Tho"]
MOCK_CONDITIONS = ["Clear", "Partly Cloudy", "Overcast", "Rain", "Thunderstorm", "Fog", "Drizzle"]

MOCK_HEADLINES = {
    "technology": [
        "{subject} unveils breakthrough battery technology",
        "{subject} faces outage after cloud failure",
        "Startups race to build AI tools for {subject}",
    ],
    "business": [
        "{subject} shares rise after strong quarterly results",
        "{subject} announces job cuts amid market decline",
        "Investors weigh risk as {subject} expands overseas",
    ],
    "science": [
        "Researchers report discovery of new species near {subject}",
        "Ocean temperatures near {subject} hit record high",
        "Scientists celebrate progress on {subject} reef restoration",
    ],
    "world": [
        "Leaders meet in {subject} to discuss fishing rights",
        "Storm warning issued for coastal areas of {subject}",
        "{subject} celebrates annual lantern festival",
    ],
}

MOCK_SUBJECTS = ["Vietnam", "Mekong Delta", "Pacific Rim", "Saigon River", "Ha Long Bay", "Southeast Asia"]


class MockWeatherCollector(SignalCollector):
    kind = "weather"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.name = "mock-weather"

    async def collect(self) -> SignalEvent:
        weather = WeatherInfo(
            condition=self.rng.choice(MOCK_CONDITIONS),
            location=self.rng.choice(MOCK_LOCATIONS),
            temp_c=round(10.0 + self.rng.random() * 25.0, 1),
            humidity=30 + self.rng.randrange(70),
            wind_kph=round(5.0 + self.rng.random() * 45.0, 1),
            is_extreme=self.rng.random() < 0.1,
        )
        return SignalEvent(kind=self.kind, value=weather, source=self.name)


class _RandomWalk:
    """Price that drifts by a bounded percentage on every step, with rare spikes."""

    def __init__(self, rng: random.Random, start: float, step: float, spike: float, low: float, high: float):
        self.rng = rng
        self.price = start
        self.step = step
        self.spike = spike
        self.low = low
        self.high = high

    def next(self) -> tuple:
        change = self.rng.uniform(-self.step, self.step)
        if self.rng.random() < 0.1:
            change = self.rng.uniform(-self.spike, self.spike)
        self.price = max(self.low, min(self.high, self.price * (1 + change / 100)))
        return self.price, change


class MockCryptoCollector(SignalCollector):
    kind = "crypto"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.name = "mock-crypto"
        self._walk = _RandomWalk(self.rng, 35000 + self.rng.random() * 10000, 5.0, 15.0, 20000, 100000)

    async def collect(self) -> SignalEvent:
        price, change = self._walk.next()
        value = CryptoPrice(
            symbol="BTC",
            price_usd=round(price, 2),
            change_24h=round(change, 2),
            volume_24h=round(20.0 + self.rng.random() * 40.0, 2),
        )
        return SignalEvent(kind=self.kind, value=value, source=self.name)


class MockGoldCollector(SignalCollector):
    kind = "gold"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.name = "mock-gold"
        self._walk = _RandomWalk(self.rng, 1800.0, 0.5, 0.5, 1600, 2200)

    async def collect(self) -> SignalEvent:
        price, change = self._walk.next()
        value = GoldPrice(price_usd=round(price, 2), change_24h=round(change, 2))
        return SignalEvent(kind=self.kind, value=value, source=self.name)


class MockOilCollector(SignalCollector):
    kind = "oil"

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.name = "mock-oil"
        self._walk = _RandomWalk(self.rng, 60 + self.rng.random() * 40, 3.0, 10.0, 30, 150)

    async def collect(self) -> SignalEvent:
        price, change = self._walk.next()
        value = OilPrice(price_usd=round(price, 2), change_24h=round(change, 2))
        return SignalEvent(kind=self.kind, value=value, source=self.name)


class MockNewsCollector(SignalCollector):
    kind = "news"

    def __init__(self, items_per_collect: int = 5, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.items_per_collect = items_per_collect
        self.name = "mock-news"

    def _headlines(self) -> List[NewsItem]:
        items = []
        for _ in range(self.items_per_collect):
            category = self.rng.choice(list(MOCK_HEADLINES))
            headline = self.rng.choice(MOCK_HEADLINES[category]).format(
                subject=self.rng.choice(MOCK_SUBJECTS)
            )
            items.append(
                NewsItem(
                    headline=headline,
                    source=self.name,
                    category=category,
                    keywords=extract_keywords(headline, category),
                    sentiment=estimate_sentiment(headline),
                )
            )
        return items

    async def collect(self) -> SignalEvent:
        return SignalEvent(kind=self.kind, value=self._headlines(), source=self.name)
