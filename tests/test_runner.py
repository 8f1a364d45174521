"""Tests for collection loop, scheduled trigger and the single-shot runner."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeGenerator, wait_for
from core.errors import CollectionError
from ingestion.base import SignalCollector, SignalEvent
from ingestion.mock import (
    MockCryptoCollector,
    MockGoldCollector,
    MockNewsCollector,
    MockWeatherCollector,
)
from services.config import Config, CollectionConfig, CoordinatorConfig
from workflows.runner import ForgeRunner
from workflows.triggers import ScheduledTrigger, SignalCollectionLoop, collection_intervals


class BrokenCollector(SignalCollector):
    kind = "oil"
    name = "broken"

    async def collect(self) -> SignalEvent:
        raise CollectionError("no data", kind=self.kind)


def _collectors():
    return [
        MockWeatherCollector(),
        MockCryptoCollector(),
        MockGoldCollector(),
        MockNewsCollector(items_per_collect=3),
        BrokenCollector(),
    ]


def _config(tmp_path, test_mode: bool = False) -> Config:
    return Config(
        DATABASE_PATH=str(tmp_path / "fish.db"),
        TEST_MODE=test_mode,
        OLLAMA_BASE_URL="http://localhost:11434",
        OLLAMA_MODEL="test",
        coordinator=CoordinatorConfig(cooldown_minutes=0.001),
        collection=CollectionConfig(use_mocks=True),
    )


class TestSignalCollectionLoop:

    @pytest.mark.asyncio
    async def test_collect_once_ingests_everything(self, make_coordinator, storage) -> None:
        coordinator = make_coordinator()
        loop = SignalCollectionLoop(_collectors(), coordinator, {})

        succeeded = await loop.collect_once()
        await coordinator.flush()

        assert succeeded == 4
        async with coordinator.locked() as state:
            assert state.snapshot.sources_available() == 3
            assert state.snapshot.oil is None
            assert state.snapshot.primary_news is not None
        assert storage.news

    def test_intervals_by_kind(self) -> None:
        intervals = collection_intervals(CollectionConfig())
        assert intervals["weather"] == 3 * 3600
        assert intervals["gold"] == intervals["oil"] == intervals["crypto"] == 12 * 3600
        assert intervals["news"] == 1800


class TestScheduledTrigger:

    @pytest.mark.asyncio
    async def test_fire_requests_generation(self, make_coordinator, storage, generator) -> None:
        await storage.save_news(MockNewsCollector(items_per_collect=1)._headlines()[0])
        coordinator = make_coordinator()

        await ScheduledTrigger(coordinator, 60).fire()
        assert await wait_for(lambda: len(generator.calls) == 1)
        await coordinator.stop()

        assert generator.calls[0][0].startswith("scheduled generation at ")

    @pytest.mark.asyncio
    async def test_disabled_interval_returns(self, make_coordinator) -> None:
        await ScheduledTrigger(make_coordinator(), 0).run()


class TestForgeRunner:

    @pytest.mark.asyncio
    async def test_run_once_generates_one_fish(self, tmp_path) -> None:
        generator = FakeGenerator()
        runner = ForgeRunner.from_config(_config(tmp_path), generator=generator)

        assert await runner.run_once() is True
        assert len(generator.calls) == 1

        rows = await runner.database.fetchall("SELECT COUNT(*) FROM fish")
        assert rows[0][0] == 1
        # the spent news survives in the dedup table
        assert await runner.database.load_used_ids()

    @pytest.mark.asyncio
    async def test_run_stops_on_shutdown(self, tmp_path) -> None:
        generator = FakeGenerator()
        runner = ForgeRunner.from_config(_config(tmp_path, test_mode=True), generator=generator)

        task = asyncio.create_task(runner.run())
        assert await wait_for(lambda: len(generator.calls) >= 2, timeout=3.0)
        runner.coordinator.shutdown.set()
        await asyncio.wait_for(task, timeout=2.0)

        reasons = [c[0] for c in generator.calls]
        assert "test mode startup generation" in reasons
        async with runner.coordinator.locked() as state:
            assert not state.processor_running
