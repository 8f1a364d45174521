"""
QueueProcessor - the single consumer of the generation queue.

Loop:
  1. wait out the cooldown
  2. if the queue is empty, run a grouping pass; still empty -> idle poll
  3. pop one request, stamp the cooldown and invoke the generator
"""
import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from core.entities import ContextSnapshot, FishRecord, GenerationRequest
from core.errors import GenerationError
from services.logging import signal_extra
from services.scheduler import interruptible_sleep

if TYPE_CHECKING:
    from workflows.coordinator import GenerationCoordinator

logger = logging.getLogger(__name__)


class ProcessorState(str, Enum):
    IDLE = "idle"
    WAITING_ON_COOLDOWN = "waiting_on_cooldown"
    DEQUEUING = "dequeuing"
    INVOKING = "invoking"
    STOPPED = "stopped"


class QueueProcessor:

    def __init__(self, coordinator: "GenerationCoordinator"):
        self.coordinator = coordinator

    async def run(self) -> None:
        coordinator = self.coordinator
        shutdown = coordinator.shutdown
        logger.info("Queue processor started", extra=signal_extra("fish"))

        try:
            while not shutdown.is_set():
                try:
                    if await self._iteration():
                        break
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.exception(f"Queue processor iteration failed: {e}")
                    # Persistent faults retry at the idle poll rate
                    if await interruptible_sleep(
                        coordinator.settings.idle_poll_interval, shutdown, coordinator.wake
                    ):
                        break
        finally:
            async with coordinator.locked() as state:
                state.processor_running = False
                state.processor_state = ProcessorState.STOPPED
            logger.info("Queue processor stopped", extra=signal_extra("fish"))

    async def _iteration(self) -> bool:
        """One pass of the loop. Returns True when shutdown was observed."""
        coordinator = self.coordinator
        shutdown = coordinator.shutdown

        async with coordinator.locked() as state:
            ready, remaining = state.cooldown.check_ready()
            if not ready:
                state.processor_state = ProcessorState.WAITING_ON_COOLDOWN
            has_requests = bool(state.queue)

        if not ready:
            logger.info(
                f"Fish generation on cooldown, waiting {remaining:.0f} seconds",
                extra=signal_extra("fish"),
            )
            return await interruptible_sleep(remaining, shutdown)

        if not has_requests:
            coordinator.wake.clear()
            await coordinator.run_grouping_pass()
            async with coordinator.locked() as state:
                has_requests = bool(state.queue)
                if not has_requests:
                    state.processor_state = ProcessorState.IDLE

            if not has_requests:
                return await interruptible_sleep(
                    coordinator.settings.idle_poll_interval, shutdown, coordinator.wake
                )

        await self.process_next()
        return shutdown.is_set()

    async def process_next(self) -> bool:
        """
        Pop one request and invoke the generator for it.
        Returns False when the queue was empty.
        The cooldown is stamped before the call, whatever its outcome.
        """
        coordinator = self.coordinator

        async with coordinator.locked() as state:
            state.processor_state = ProcessorState.DEQUEUING
            request = state.queue.pop()
            if request is None:
                state.processor_state = ProcessorState.IDLE
                return False

            state.cooldown.stamp()
            context = state.snapshot.copy()
            state.dedup.mark_many(item.source_id for item in context.news_items())
            state.snapshot.merged_news = []
            state.processor_state = ProcessorState.INVOKING
            remaining = len(state.queue)

        coordinator.schedule_save()
        logger.info(
            f"Processing fish generation: {request.reason} (remaining in queue: {remaining})",
            extra=signal_extra("fish"),
        )

        try:
            fish = await self._invoke(request, context)
            if fish is not None:
                await self._store(fish)
        finally:
            async with coordinator.locked() as state:
                if state.processor_state == ProcessorState.INVOKING:
                    state.processor_state = ProcessorState.IDLE

        return True

    async def _invoke(
        self, request: GenerationRequest, context: ContextSnapshot
    ) -> Optional[FishRecord]:
        """
        Run the generator, bounded by the generation timeout and shutdown.
        Failures are logged and the request is dropped.
        """
        coordinator = self.coordinator
        timeout = coordinator.settings.generation_timeout

        generate_task = asyncio.create_task(
            coordinator.generator.generate(request.reason, context)
        )
        shutdown_task = asyncio.create_task(coordinator.shutdown.wait())

        try:
            done, _ = await asyncio.wait(
                {generate_task, shutdown_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            shutdown_task.cancel()
            if not generate_task.done():
                generate_task.cancel()
                await asyncio.gather(generate_task, return_exceptions=True)

        if generate_task not in done:
            if coordinator.shutdown.is_set():
                logger.warning(f"Generation interrupted by shutdown: {request.reason}")
            else:
                logger.error(
                    f"Generation timed out after {timeout:.0f}s, dropping request: {request.reason}",
                    extra=signal_extra("fish"),
                )
            return None

        try:
            fish = generate_task.result()
        except GenerationError as e:
            logger.error(
                f"Failed to generate fish for '{request.reason}': {e}",
                extra=signal_extra("fish"),
            )
            return None
        except Exception as e:
            logger.exception(f"Unexpected error generating fish for '{request.reason}': {e}")
            return None

        logger.info(
            f"Generated fish: {fish.name} ({fish.rarity}, {fish.length_m:.2f}m, "
            f"{fish.weight_kg:.2f}kg, {fish.catch_chance:.1f}% catch, value {fish.value:.2f})",
            extra=signal_extra("fish"),
        )
        return fish

    async def _store(self, fish: FishRecord) -> None:
        store = self.coordinator.artifact_store
        if store is None:
            return
        try:
            await store.save_artifact(fish)
        except Exception as e:
            logger.error(f"Failed to save fish '{fish.name}': {e}")
