"""Shared fixtures and fakes for the fish-forge test suite."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pytest

from core.entities import ContextSnapshot, FishRecord
from core.errors import GenerationError, SourceQueryError
from ingestion.base import CryptoPrice, GoldPrice, NewsItem, WeatherInfo
from services.storage import InMemoryStorage
from workflows.base import Generator
from workflows.coordinator import CoordinatorSettings, GenerationCoordinator

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_news(
    headline: str,
    category: str = "general",
    source: str = "feed",
    minutes_ago: float = 0.0,
) -> NewsItem:
    return NewsItem(
        headline=headline,
        source=source,
        category=category,
        collected_at=BASE_TIME - timedelta(minutes=minutes_ago),
    )


def make_fish(reason: str = "test", name: str = "Testfin") -> FishRecord:
    return FishRecord(
        name=name,
        description="A fish made for tests.",
        appearance="Plain",
        color="Grey",
        diet="Plankton",
        habitat="Aquarium",
        effect="None",
        favorite_weather="Clear",
        existence_reason="Unit tests",
        rarity="Common",
        length_m=0.5,
        weight_kg=1.2,
        catch_chance=75.0,
        value=5.0,
        generation_reason=reason,
    )


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll `predicate` until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


class FakeGenerator(Generator):
    """Records every call; can be told to fail or to hang."""

    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None):
        self.delay = delay
        self.error = error
        self.calls: List[tuple] = []
        self.call_times: List[float] = []
        self.cancelled = 0

    async def generate(self, reason: str, context: ContextSnapshot) -> FishRecord:
        self.calls.append((reason, context))
        self.call_times.append(time.monotonic())
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if self.error is not None:
            raise self.error
        return make_fish(reason)


class RecordingStorage(InMemoryStorage):
    """InMemoryStorage that counts provider queries and can fail on demand."""

    def __init__(self):
        super().__init__()
        self.recent_calls = 0
        self.fail_queries = False
        self.fail_saves = False
        self.query_delay = 0.0

    async def recent_items(self, kind: str, limit: int) -> List[NewsItem]:
        self.recent_calls += 1
        if self.query_delay:
            await asyncio.sleep(self.query_delay)
        if self.fail_queries:
            raise SourceQueryError("store unavailable")
        return await super().recent_items(kind, limit)

    async def save_used_ids(self, used_ids):
        if self.fail_saves:
            raise RuntimeError("disk full")
        await super().save_used_ids(used_ids)

    async def save_queue(self, queue):
        if self.fail_saves:
            raise RuntimeError("disk full")
        await super().save_queue(queue)


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fast_settings() -> CoordinatorSettings:
    """Settings with timings small enough for real-time tests."""
    return CoordinatorSettings(
        cooldown=0.05,
        idle_poll_interval=0.1,
        generation_timeout=1.0,
    )


@pytest.fixture
def make_coordinator(storage, generator, fast_settings):
    """Factory so tests can override settings, storage or generator."""

    def _make(
        settings: Optional[CoordinatorSettings] = None,
        store: Optional[InMemoryStorage] = None,
        gen: Optional[Generator] = None,
    ) -> GenerationCoordinator:
        store = store if store is not None else storage
        return GenerationCoordinator(
            settings=settings or fast_settings,
            source_provider=store,
            persistence=store,
            generator=gen or generator,
            news_store=store,
            artifact_store=store,
        )

    return _make


@pytest.fixture
def full_context() -> ContextSnapshot:
    return ContextSnapshot(
        weather=WeatherInfo(condition="Rain", location="Hanoi", temp_c=24.5),
        crypto=CryptoPrice(price_usd=42000.0, change_24h=3.2),
        gold=GoldPrice(price_usd=1950.0, change_24h=-0.4),
        primary_news=make_news("Markets rally after rate decision", category="business"),
        merged_news=[
            make_news("Banks report record profits", category="business"),
            make_news("Retail investors pile into stocks", category="business"),
        ],
    )


@pytest.fixture
def sample_error() -> GenerationError:
    return GenerationError("model returned garbage")
