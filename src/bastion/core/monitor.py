"""Background polling of error counts with an in-flight guard."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from bastion.core.counter import ErrorCounter
from bastion.core.events import CountsChanged, DiagnosticsChanged, Event, EventBus, Subscription
from bastion.core.models import ErrorCount

logger = logging.getLogger(__name__)


def _same_counts(a: ErrorCount | None, b: ErrorCount) -> bool:
    if a is None:
        return False
    return (
        a.type_check_errors == b.type_check_errors
        and a.type_check_warnings == b.type_check_warnings
        and a.lint_errors == b.lint_errors
        and a.lint_warnings == b.lint_warnings
    )


class DiagnosticsMonitor:
    """Polls the error counter on a timer and when diagnostics change.

    Only one count runs at a time. A request arriving while one is running is
    dropped, not queued; the next tick picks up fresh state.
    """

    def __init__(self, counter: ErrorCounter, bus: EventBus, interval: float = 5.0) -> None:
        self.counter = counter
        self.bus = bus
        self.interval = interval
        self.latest: ErrorCount | None = None
        self.dropped = 0
        self._in_flight = False
        self._loop_task: asyncio.Task[None] | None = None
        self._triggered: set[asyncio.Task[ErrorCount | None]] = set()
        self._subscription: Subscription | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def busy(self) -> bool:
        return self._in_flight

    async def poll_once(self) -> ErrorCount | None:
        """Run one count unless one is already running.

        Returns:
            The new counts, or None if the request was dropped
        """
        if self._in_flight:
            self.dropped += 1
            logger.debug("Count already in flight, dropping request")
            return None

        self._in_flight = True
        try:
            current = await self.counter.count()
        finally:
            self._in_flight = False

        previous = self.latest
        self.latest = current
        if not _same_counts(previous, current):
            logger.info(f"Counts changed: {current.errors} error(s), {current.warnings} warning(s)")
            self.bus.publish(CountsChanged(current=current, previous=previous))
        return current

    def notify_changed(self, event: Event | None = None) -> None:
        """Request a count now. Dropped if one is already running or queued."""
        if self._in_flight or any(not task.done() for task in self._triggered):
            self.dropped += 1
            logger.debug("Change notification coalesced into running count")
            return
        task = asyncio.get_running_loop().create_task(self._poll_logged())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)

    async def start(self) -> None:
        if self.running:
            return
        self._subscription = self.bus.subscribe(self.notify_changed, DiagnosticsChanged)
        self._loop_task = asyncio.create_task(self._run_loop())
        logger.info(f"Monitor started (interval {self.interval}s)")

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        tasks = [t for t in [self._loop_task, *self._triggered] if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._loop_task = None
        self._triggered.clear()
        logger.info("Monitor stopped")

    async def _run_loop(self) -> None:
        while True:
            await self._poll_logged()
            await asyncio.sleep(self.interval)

    async def _poll_logged(self) -> ErrorCount | None:
        try:
            return await self.poll_once()
        except Exception:
            logger.exception("Error count failed")
            return None
