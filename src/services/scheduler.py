"""
Cancellable timers shared by the collection loops, the scheduled trigger and
the queue processor. Every wait returns early when the shutdown event is set.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


async def interruptible_sleep(
    timeout: float,
    shutdown: asyncio.Event,
    wake: Optional[asyncio.Event] = None,
) -> bool:
    """
    Sleep for up to `timeout` seconds.
    Returns early if `shutdown` (or `wake`, when given) is set.

    Returns:
        True if shutdown was signalled, False otherwise
    """
    if shutdown.is_set():
        return True
    if timeout <= 0:
        return False

    waiters = [asyncio.ensure_future(shutdown.wait())]
    if wake is not None:
        waiters.append(asyncio.ensure_future(wake.wait()))

    try:
        await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()

    return shutdown.is_set()


async def run_every(
    interval: float,
    action: Callable[[], Awaitable[None]],
    shutdown: asyncio.Event,
    *,
    name: str,
    run_immediately: bool = True,
) -> None:
    """
    Run `action` every `interval` seconds until shutdown.
    Exceptions from `action` are logged and the loop keeps ticking.
    """
    if not run_immediately and await interruptible_sleep(interval, shutdown):
        return

    while not shutdown.is_set():
        try:
            await action()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Periodic task '{name}' failed: {e}")

        if await interruptible_sleep(interval, shutdown):
            break

    logger.info(f"Periodic task '{name}' stopped")
