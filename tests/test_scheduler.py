"""Tests for the cancellable timers."""

from __future__ import annotations

import asyncio
import time

import pytest

from services.scheduler import interruptible_sleep, run_every


class TestInterruptibleSleep:

    @pytest.mark.asyncio
    async def test_full_timeout(self) -> None:
        shutdown = asyncio.Event()
        started = time.monotonic()
        assert await interruptible_sleep(0.05, shutdown) is False
        assert time.monotonic() - started >= 0.04

    @pytest.mark.asyncio
    async def test_shutdown_already_set(self) -> None:
        shutdown = asyncio.Event()
        shutdown.set()
        assert await interruptible_sleep(60, shutdown) is True

    @pytest.mark.asyncio
    async def test_shutdown_interrupts(self) -> None:
        shutdown = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, shutdown.set)
        started = time.monotonic()
        assert await interruptible_sleep(60, shutdown) is True
        assert time.monotonic() - started < 1.0

    @pytest.mark.asyncio
    async def test_wake_interrupts_without_shutdown(self) -> None:
        shutdown = asyncio.Event()
        wake = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, wake.set)
        started = time.monotonic()
        assert await interruptible_sleep(60, shutdown, wake) is False
        assert time.monotonic() - started < 1.0


class TestRunEvery:

    @pytest.mark.asyncio
    async def test_keeps_ticking_after_errors(self) -> None:
        shutdown = asyncio.Event()
        calls = []

        async def action() -> None:
            calls.append(time.monotonic())
            if len(calls) == 1:
                raise RuntimeError("first tick fails")
            if len(calls) == 3:
                shutdown.set()

        await asyncio.wait_for(run_every(0.01, action, shutdown, name="test"), timeout=2.0)
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_delayed_start(self) -> None:
        shutdown = asyncio.Event()
        calls = []

        async def action() -> None:
            calls.append(1)

        asyncio.get_running_loop().call_later(0.05, shutdown.set)
        await run_every(60, action, shutdown, name="test", run_immediately=False)
        assert calls == []
