"""
Producers that feed the coordinator on a timer: one collection loop per
signal collector, and the periodic scheduled generation request.
"""
import asyncio
import logging
from datetime import datetime
from typing import Dict, List

from core.errors import CollectionError
from ingestion.base import SignalCollector
from services.config import CollectionConfig
from services.logging import signal_extra
from services.scheduler import run_every
from workflows.coordinator import GenerationCoordinator

logger = logging.getLogger(__name__)


def collection_intervals(config: CollectionConfig) -> Dict[str, float]:
    """Seconds between collections for each signal kind."""
    return {
        "weather": config.weather_interval,
        "crypto": config.price_interval,
        "gold": config.price_interval,
        "oil": config.price_interval,
        "news": config.news_interval,
    }


class SignalCollectionLoop:
    """
    Runs every collector at its own interval and forwards events to the coordinator.
    """

    def __init__(
        self,
        collectors: List[SignalCollector],
        coordinator: GenerationCoordinator,
        intervals: Dict[str, float],
    ):
        self.collectors = collectors
        self.coordinator = coordinator
        self.intervals = intervals

    async def collect(self, collector: SignalCollector) -> bool:
        """Collect one signal and ingest it. Returns False if collection failed."""
        try:
            event = await collector.collect()
        except CollectionError as e:
            logger.error(f"Error collecting {collector.kind} data: {e}", extra=signal_extra(collector.kind))
            return False

        await self.coordinator.ingest(event)
        return True

    async def collect_once(self) -> int:
        """Run every collector once, concurrently. Returns the number that succeeded."""
        results = await asyncio.gather(
            *(self.collect(collector) for collector in self.collectors),
            return_exceptions=True,
        )
        succeeded = 0
        for collector, result in zip(self.collectors, results):
            if isinstance(result, Exception):
                logger.error(f"Unexpected error collecting {collector.kind}: {result}", extra=signal_extra(collector.kind))
            elif result:
                succeeded += 1
        logger.info(f"Initial collection finished: {succeeded}/{len(self.collectors)} collectors succeeded")
        return succeeded

    async def run(self, run_immediately: bool = True) -> None:
        shutdown = self.coordinator.shutdown
        tasks = []
        for collector in self.collectors:
            interval = self.intervals.get(collector.kind, 3600.0)
            logger.info(
                f"Collecting {collector.kind} every {interval:.0f} seconds",
                extra=signal_extra(collector.kind),
            )
            tasks.append(asyncio.create_task(
                run_every(
                    interval,
                    lambda c=collector: self.collect(c),
                    shutdown,
                    name=f"collect-{collector.kind}",
                    run_immediately=run_immediately,
                ),
                name=f"collect-{collector.kind}",
            ))
        await asyncio.gather(*tasks)


class ScheduledTrigger:
    """
    Requests a generation every `interval` seconds regardless of news flow.
    """

    def __init__(self, coordinator: GenerationCoordinator, interval: float):
        self.coordinator = coordinator
        self.interval = interval

    async def fire(self) -> None:
        reason = f"scheduled generation at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        await self.coordinator.request_generation(reason)

    async def run(self) -> None:
        if self.interval <= 0:
            logger.info("Scheduled generation disabled")
            return
        await run_every(
            self.interval,
            self.fire,
            self.coordinator.shutdown,
            name="scheduled-generation",
            run_immediately=False,
        )
