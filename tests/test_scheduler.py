"""Tests for the update scheduler."""

import asyncio
import logging

import pytest

from macro_ledger.services.scheduler import UpdateOutcome, UpdateScheduler


def test_updates_run_in_submission_order() -> None:
    scheduler = UpdateScheduler(timeout_seconds=1)
    events: list[str] = []

    async def slow() -> None:
        events.append("slow:start")
        await asyncio.sleep(0.02)
        events.append("slow:end")

    async def fast() -> None:
        events.append("fast")

    async def run() -> list[UpdateOutcome]:
        return await asyncio.gather(
            scheduler.queue_update(slow), scheduler.queue_update(fast)
        )

    outcomes = asyncio.run(run())

    assert outcomes == [UpdateOutcome.COMPLETED, UpdateOutcome.COMPLETED]
    assert events == ["slow:start", "slow:end", "fast"]


def test_later_update_sees_effects_of_earlier_one() -> None:
    scheduler = UpdateScheduler(timeout_seconds=1)
    state = {"value": 0}
    seen: list[int] = []

    async def increment() -> None:
        await asyncio.sleep(0)
        state["value"] += 1

    async def observe() -> None:
        seen.append(state["value"])

    async def run() -> None:
        await asyncio.gather(
            scheduler.queue_update(increment),
            scheduler.queue_update(increment),
            scheduler.queue_update(observe),
        )

    asyncio.run(run())

    assert seen == [2]


def test_failed_update_does_not_stall_queue() -> None:
    scheduler = UpdateScheduler(timeout_seconds=1)
    events: list[str] = []

    async def broken() -> None:
        raise ValueError("boom")

    async def after() -> None:
        events.append("after")

    async def run() -> list[UpdateOutcome]:
        return await asyncio.gather(
            scheduler.queue_update(broken), scheduler.queue_update(after)
        )

    outcomes = asyncio.run(run())

    assert outcomes == [UpdateOutcome.FAILED, UpdateOutcome.COMPLETED]
    assert events == ["after"]


def test_update_that_never_finishes_is_abandoned(
    caplog: pytest.LogCaptureFixture,
) -> None:
    scheduler = UpdateScheduler(timeout_seconds=0.05)
    events: list[str] = []
    package_logger = logging.getLogger("macro_ledger")
    package_logger.addHandler(caplog.handler)

    async def hang() -> None:
        await asyncio.Event().wait()

    async def after() -> None:
        events.append("after")

    async def run() -> tuple[list[UpdateOutcome], int]:
        outcomes = await asyncio.gather(
            scheduler.queue_update(hang), scheduler.queue_update(after)
        )
        return outcomes, scheduler.abandoned_count

    try:
        outcomes, abandoned = asyncio.run(run())
    finally:
        package_logger.removeHandler(caplog.handler)

    assert outcomes == [UpdateOutcome.TIMED_OUT, UpdateOutcome.COMPLETED]
    assert events == ["after"]
    assert abandoned == 1
    assert "timed out" in caplog.text


def test_drain_waits_for_queued_updates() -> None:
    scheduler = UpdateScheduler(timeout_seconds=1)
    events: list[str] = []

    async def slow() -> None:
        await asyncio.sleep(0.01)
        events.append("done")

    async def run() -> None:
        pending = asyncio.ensure_future(scheduler.queue_update(slow))
        await asyncio.sleep(0)
        await scheduler.drain()
        assert events == ["done"]
        await pending

    asyncio.run(run())


def test_drain_without_updates_returns() -> None:
    asyncio.run(UpdateScheduler().drain())
