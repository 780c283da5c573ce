"""
Recurring refresh for dashboards that show live aggregate data.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 30.0


class PollingRefresher(Generic[T]):
    """Runs ``fetch`` now and then every ``interval`` seconds until stopped.

    Each tick runs as its own task, so a slow fetch never delays the cadence
    and ticks may overlap. Every tick carries a sequence number; its result
    is handed to ``apply`` only if no later tick has been applied already and
    the refresher is still running.

    Usage::

        refresher = PollingRefresher(fetch, apply, interval=30)
        refresher.start()
        ...
        await refresher.stop()

    or ``async with PollingRefresher(...)`` for guaranteed teardown.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        interval: float = DEFAULT_POLL_INTERVAL,
        on_error: Optional[Callable[[Exception], None]] = None,
        name: str = "refresh",
    ):
        if interval <= 0:
            raise ValueError(f"Polling interval must be positive, got {interval}")
        self.fetch = fetch
        self.apply = apply
        self.interval = interval
        self.on_error = on_error
        self.name = name

        self._loop_task: Optional[asyncio.Task] = None
        self._ticks: Set[asyncio.Task] = set()
        self._issued = 0
        self._applied = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticks_issued(self) -> int:
        return self._issued

    @property
    def last_applied(self) -> int:
        """Sequence number of the newest applied tick (0 if none)."""
        return self._applied

    def start(self) -> asyncio.Task:
        """Start the schedule; the first tick fires immediately.

        Returns:
            The scheduling task. Stop it with stop(), not by dropping it.

        Raises:
            RuntimeError: If already started
        """
        if self._running:
            raise RuntimeError(f"Poller '{self.name}' is already running")
        self._running = True
        self._loop_task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Poller '{self.name}' started (interval {self.interval}s)")
        return self._loop_task

    async def stop(self) -> None:
        """Cancel the schedule and any tick still in flight. Idempotent."""
        if not self._running and self._loop_task is None:
            return
        self._running = False

        pending = [t for t in [self._loop_task, *self._ticks] if t is not None]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        self._loop_task = None
        self._ticks.clear()
        logger.debug(f"Poller '{self.name}' stopped after {self._issued} ticks")

    async def _run(self) -> None:
        while self._running:
            self._issued += 1
            task = asyncio.get_running_loop().create_task(self._tick(self._issued))
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            await asyncio.sleep(self.interval)

    async def _tick(self, sequence: int) -> None:
        try:
            result = await self.fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._report(sequence, e)
            return

        if not self._running or sequence < self._applied:
            logger.debug(f"Poller '{self.name}' dropping stale tick {sequence}")
            return
        self._applied = sequence
        try:
            self.apply(result)
        except Exception as e:
            self._report(sequence, e)

    def _report(self, sequence: int, error: Exception) -> None:
        logger.warning(f"Poller '{self.name}' tick {sequence} failed: {error}")
        if self.on_error is None or not self._running:
            return
        try:
            self.on_error(error)
        except Exception:
            logger.exception(f"Poller '{self.name}' error handler failed")

    async def __aenter__(self) -> "PollingRefresher[T]":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
