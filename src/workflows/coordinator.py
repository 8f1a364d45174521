"""
GenerationCoordinator - owns all shared state of the fish generation pipeline.

Producers push signal events in through `ingest`, the grouping pass turns
unused news into queued requests, and a single QueueProcessor drains the queue
under the cooldown. Every read or write of shared state goes through
`locked()`; persistence and generation run outside the lock.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional, Set

from core.entities import ContextSnapshot, GenerationRequest
from core.errors import PersistenceError, SourceQueryError
from ingestion.base import NewsItem, SignalEvent
from processing.clustering import ThematicGrouper
from processing.cooldown import CooldownGate
from processing.deduplicator import Deduplicator
from services.config import CoordinatorConfig
from services.logging import signal_extra
from services.storage import ArtifactStore, NewsStore, PersistenceAdapter, SourceProvider
from workflows.base import Generator
from workflows.processor import ProcessorState, QueueProcessor
from workflows.queue import GenerationQueue

logger = logging.getLogger(__name__)

SNAPSHOT_KINDS = ("weather", "crypto", "gold", "oil")


@dataclass(frozen=True)
class CoordinatorSettings:
    cooldown: float = 15 * 60
    idle_poll_interval: float = 5 * 60
    min_category_merge_count: int = 2
    max_merge_items: int = 3
    recent_items_scan_limit: int = 100
    generation_timeout: float = 10.0
    max_used_ids: Optional[int] = 10000

    @classmethod
    def from_config(cls, config: CoordinatorConfig) -> "CoordinatorSettings":
        return cls(
            cooldown=config.cooldown,
            idle_poll_interval=config.idle_poll_interval,
            min_category_merge_count=config.min_category_merge_count,
            max_merge_items=config.max_merge_items,
            recent_items_scan_limit=config.recent_items_scan_limit,
            generation_timeout=config.generation_timeout_seconds,
            max_used_ids=config.max_used_ids,
        )


@dataclass
class CoordinatorState:
    """Everything the producers and the processor share."""
    dedup: Deduplicator
    queue: GenerationQueue
    cooldown: CooldownGate
    snapshot: ContextSnapshot = field(default_factory=ContextSnapshot)
    processor_running: bool = False
    processor_state: ProcessorState = ProcessorState.IDLE


class GenerationCoordinator:

    def __init__(
        self,
        *,
        settings: CoordinatorSettings,
        source_provider: SourceProvider,
        persistence: PersistenceAdapter,
        generator: Generator,
        news_store: Optional[NewsStore] = None,
        artifact_store: Optional[ArtifactStore] = None,
        shutdown: Optional[asyncio.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.source_provider = source_provider
        self.persistence = persistence
        self.generator = generator
        self.news_store = news_store
        self.artifact_store = artifact_store
        self.shutdown = shutdown or asyncio.Event()
        self.grouper = ThematicGrouper(
            min_category_merge_count=settings.min_category_merge_count,
            max_merge_items=settings.max_merge_items,
        )

        # Set whenever new work may exist; lets an idle processor skip its poll wait
        self.wake = asyncio.Event()

        self._state = CoordinatorState(
            dedup=Deduplicator(max_entries=settings.max_used_ids),
            queue=GenerationQueue(),
            cooldown=CooldownGate(settings.cooldown, clock=clock),
        )
        self._lock = asyncio.Lock()
        self._save_lock = asyncio.Lock()
        self._pending_saves: Set[asyncio.Task] = set()
        self._processor_task: Optional[asyncio.Task] = None

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[CoordinatorState]:
        """The only way to touch shared state."""
        async with self._lock:
            yield self._state

    # ----------------------------
    # Startup / shutdown
    # ----------------------------
    async def restore(self) -> None:
        """Reload the dedup set and pending queue persisted before the last exit."""
        try:
            used_ids = await self.persistence.load_used_ids()
        except PersistenceError as e:
            logger.error(f"Failed to load used source ids: {e}")
            used_ids = []

        try:
            queue = await self.persistence.load_queue()
        except PersistenceError as e:
            logger.error(f"Failed to load generation queue: {e}")
            queue = []

        async with self.locked() as state:
            state.dedup.restore(used_ids)
            state.queue.restore(queue)

        logger.info(
            f"Restored {len(used_ids)} used source ids and {len(queue)} pending requests",
            extra=signal_extra("fish"),
        )

    async def start_processor(self) -> Optional[asyncio.Task]:
        """Start the queue processor. A no-op while one is already running."""
        async with self.locked() as state:
            if state.processor_running:
                return None
            state.processor_running = True
            state.processor_state = ProcessorState.IDLE

        self._processor_task = asyncio.create_task(
            QueueProcessor(self).run(), name="queue-processor"
        )
        return self._processor_task

    async def stop(self) -> None:
        """Signal shutdown, wait for the processor and flush state to storage."""
        self.shutdown.set()
        if self._processor_task is not None:
            await asyncio.gather(self._processor_task, return_exceptions=True)
            self._processor_task = None
        await self.flush()
        await self.save_state()
        logger.info("Generation coordinator stopped")

    # ----------------------------
    # Producers
    # ----------------------------
    async def ingest(self, event: SignalEvent) -> None:
        """Record a new signal observation."""
        if event.kind == "news":
            await self._ingest_news(list(event.value))
            return

        if event.kind not in SNAPSHOT_KINDS:
            logger.warning(f"Ignoring signal of unknown kind: {event.kind}")
            return

        async with self.locked() as state:
            setattr(state.snapshot, event.kind, event.value)

        logger.info(f"Updated {event.kind} from {event.source}", extra=signal_extra(event.kind))

    async def _ingest_news(self, items: List[NewsItem]) -> None:
        async with self.locked() as state:
            fresh = [item for item in items if not state.dedup.is_used(item.source_id)]

        saved: List[NewsItem] = []
        for item in fresh:
            if self.news_store is None:
                saved.append(item)
                continue
            try:
                if await self.news_store.save_news(item):
                    saved.append(item)
            except PersistenceError as e:
                logger.error(f"Error saving news item '{item.headline[:30]}': {e}")

        logger.info(
            f"Processed {len(items)} news items ({len(saved)} saved, {len(items) - len(saved)} skipped)",
            extra=signal_extra("news"),
        )
        if not saved:
            return

        async with self.locked() as state:
            if not state.dedup.is_used(saved[0].source_id):
                state.snapshot.primary_news = saved[0]
            ready, _ = state.cooldown.check_ready()

        # While cooling down the processor picks the material up on its own
        if ready:
            await self.run_grouping_pass()
        self.wake.set()

    async def request_generation(self, reason: str) -> Optional[GenerationRequest]:
        """
        Manually queue a generation with whatever context is current.
        Returns None when no news has been observed yet.
        """
        async with self.locked() as state:
            has_news = state.snapshot.primary_news is not None

        if not has_news:
            try:
                recent = await self.source_provider.recent_items("news", 1)
            except SourceQueryError as e:
                logger.error(f"No news data available for fish generation: {e}")
                return None
            if not recent:
                logger.warning("No news data available for fish generation, not queueing")
                return None
            async with self.locked() as state:
                if state.snapshot.primary_news is None:
                    state.snapshot.primary_news = recent[0]

        request = GenerationRequest(reason=reason)
        async with self.locked() as state:
            size = state.queue.enqueue(request)

        logger.info(
            f"Added fish generation request to queue: {reason} (queue size: {size})",
            extra=signal_extra("fish"),
        )
        self.schedule_save()
        self.wake.set()
        await self.start_processor()
        return request

    # ----------------------------
    # Grouping
    # ----------------------------
    async def run_grouping_pass(self) -> Optional[GenerationRequest]:
        """
        Turn unused news into at most one queued request.
        Selection, marking and enqueueing happen in one critical section, so
        concurrent passes never pick the same item.
        """
        try:
            recent = await self.source_provider.recent_items(
                "news", self.settings.recent_items_scan_limit
            )
        except SourceQueryError as e:
            logger.error(f"Skipping grouping pass: {e}", extra=signal_extra("news"))
            return None

        if not recent:
            logger.info("No recent news found, skipping fish generation", extra=signal_extra("news"))
            return None

        async with self.locked() as state:
            selection = self.grouper.select(recent, state.dedup.is_used)
            if selection is None:
                request = None
            else:
                request = GenerationRequest(
                    reason=selection.reason,
                    source_ids=tuple(selection.source_ids),
                )
                state.dedup.mark_many(selection.source_ids)
                state.snapshot.primary_news = selection.items[0]
                state.snapshot.merged_news = list(selection.items[1:])
                size = state.queue.enqueue(request)

        if request is None:
            logger.info("No new unused news available, skipping fish generation", extra=signal_extra("news"))
            return None

        logger.info(
            f"Queued '{request.reason}' from {len(request.source_ids)} article(s) (queue size: {size})",
            extra=signal_extra("news"),
        )
        self.schedule_save()
        return request

    # ----------------------------
    # Persistence
    # ----------------------------
    def schedule_save(self) -> asyncio.Task:
        """Persist the current state in the background."""
        task = asyncio.create_task(self.save_state())
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)
        return task

    async def save_state(self) -> None:
        """
        Write the dedup set and the queue. Saves run one at a time and copy
        state only once they own the save lock, so a stale copy never lands
        after a newer one.
        """
        async with self._save_lock:
            async with self.locked() as state:
                used_ids = state.dedup.snapshot()
                queue = state.queue.snapshot()

            try:
                await self.persistence.save_used_ids(used_ids)
            except Exception as e:
                logger.error(f"Failed to save used source ids: {e}")

            try:
                await self.persistence.save_queue(queue)
            except Exception as e:
                logger.error(f"Failed to save generation queue: {e}")

    async def flush(self) -> None:
        """Wait for background saves that are still running."""
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves), return_exceptions=True)
