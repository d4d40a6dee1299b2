"""Single-worker FIFO queue for ledger mutations."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

DEFAULT_TIMEOUT_SECONDS = 30.0

_logger = logging.getLogger(__name__)

UpdateFn = Callable[[], Awaitable[None]]


class UpdateOutcome(str, Enum):
    """How a queued update ended."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class UpdateScheduler:
    """Run queued updates one at a time, in submission order.

    There is one queue for the whole process, so updates to unrelated
    ledgers are serialized too. Each update is bounded by `timeout_seconds`;
    an update that overruns is abandoned, not cancelled, and the next one
    starts immediately. Failures are logged and reported as an outcome; the
    queue never stalls on them.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds
        self._tail: asyncio.Future[UpdateOutcome] | None = None
        self._abandoned: set[asyncio.Future[None]] = set()

    async def queue_update(self, update_fn: UpdateFn) -> UpdateOutcome:
        """Append `update_fn` to the queue and wait for its outcome."""
        prior = self._tail
        link = asyncio.ensure_future(self._run_after(prior, update_fn))
        self._tail = link
        return await asyncio.shield(link)

    async def drain(self) -> None:
        """Wait until everything queued so far has finished or been abandoned."""
        tail = self._tail
        if tail is not None and not tail.done():
            await asyncio.wait({tail})

    @property
    def abandoned_count(self) -> int:
        """Number of timed-out updates that are still running."""
        return len(self._abandoned)

    async def _run_after(
        self, prior: "asyncio.Future[UpdateOutcome] | None", update_fn: UpdateFn
    ) -> UpdateOutcome:
        if prior is not None and not prior.done():
            await asyncio.wait({prior})
        try:
            task = asyncio.ensure_future(update_fn())
        except Exception:
            _logger.exception("Error during queued update")
            return UpdateOutcome.FAILED
        done, _ = await asyncio.wait({task}, timeout=self.timeout_seconds)
        if not done:
            _logger.error(
                "Queued update timed out after %.1fs; abandoning it",
                self.timeout_seconds,
            )
            self._abandoned.add(task)
            task.add_done_callback(self._forget_abandoned)
            return UpdateOutcome.TIMED_OUT
        if task.cancelled():
            _logger.error("Queued update was cancelled")
            return UpdateOutcome.FAILED
        error = task.exception()
        if error is not None:
            _logger.error("Error during queued update", exc_info=error)
            return UpdateOutcome.FAILED
        return UpdateOutcome.COMPLETED

    def _forget_abandoned(self, task: "asyncio.Future[None]") -> None:
        self._abandoned.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            _logger.error("Abandoned update failed after timing out", exc_info=error)
