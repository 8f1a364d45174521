"""
ForgeRunner - wires storage, collectors, generator and coordinator together
and runs them until shutdown.
"""
import asyncio
import logging
from typing import List, Optional

from ingestion.base import SignalCollector
from ingestion.source_factory import create_collectors
from processing.generator import FishGenerator
from services.config import Config
from services.database import Database
from services.llm import OllamaClient
from workflows.base import Generator
from workflows.coordinator import CoordinatorSettings, GenerationCoordinator
from workflows.processor import QueueProcessor
from workflows.triggers import ScheduledTrigger, SignalCollectionLoop, collection_intervals

logger = logging.getLogger(__name__)

TEST_MODE_STARTUP_REASON = "test mode startup generation"


class ForgeRunner:

    def __init__(
        self,
        config: Config,
        coordinator: GenerationCoordinator,
        collectors: List[SignalCollector],
        database: Optional[Database] = None,
    ):
        self.config = config
        self.coordinator = coordinator
        self.database = database
        self.collection = SignalCollectionLoop(
            collectors, coordinator, collection_intervals(config.collection)
        )
        self.scheduled = ScheduledTrigger(coordinator, config.coordinator.scheduled_interval)

    @classmethod
    def from_config(
        cls,
        config: Config,
        shutdown: Optional[asyncio.Event] = None,
        generator: Optional[Generator] = None,
    ) -> "ForgeRunner":
        database = Database(config.DATABASE_PATH)

        if generator is None:
            llm = OllamaClient(
                base_url=config.OLLAMA_BASE_URL,
                model=config.OLLAMA_MODEL,
                temperature=config.OLLAMA_TEMPERATURE,
                timeout=config.OLLAMA_TIMEOUT,
            )
            generator = FishGenerator(llm, min_context_sources=config.coordinator.min_context_sources)

        coordinator = GenerationCoordinator(
            settings=CoordinatorSettings.from_config(config.coordinator),
            source_provider=database,
            persistence=database,
            generator=generator,
            news_store=database,
            artifact_store=database,
            shutdown=shutdown,
        )
        return cls(config, coordinator, create_collectors(config), database=database)

    async def _prepare(self) -> None:
        if self.database is not None:
            await self.database.init_tables()
        await self.coordinator.restore()
        await self.collection.collect_once()

    async def run(self) -> None:
        """Run until the shutdown event is set."""
        coordinator = self.coordinator
        logger.info(
            f"Starting fish forge (test_mode={self.config.TEST_MODE}, "
            f"cooldown={coordinator.settings.cooldown:.0f}s)"
        )

        try:
            await self._prepare()
            await coordinator.start_processor()

            if self.config.TEST_MODE:
                await coordinator.request_generation(TEST_MODE_STARTUP_REASON)

            await asyncio.gather(
                self.collection.run(run_immediately=False),
                self.scheduled.run(),
                coordinator.shutdown.wait(),
            )
        finally:
            await coordinator.stop()

        logger.info("Fish forge stopped")

    async def run_once(self) -> bool:
        """
        Collect one round of signals, generate at most one fish and stop.
        Returns True if a request was processed.
        """
        coordinator = self.coordinator
        try:
            await self._prepare()

            async with coordinator.locked() as state:
                has_requests = bool(state.queue)
            if not has_requests:
                await coordinator.run_grouping_pass()

            processed = await QueueProcessor(coordinator).process_next()
            if not processed:
                logger.info("Nothing to generate")
            return processed
        finally:
            await coordinator.stop()
