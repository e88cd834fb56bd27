import asyncio
import enum
import logging
import threading
from typing import Any, Optional, Tuple

from .formatter import ResultFormatter
from .models.stats import Stats
from .models.summary import Summary
from .probes.base import Ping
from .stats import StatsAggregator

DEFAULT_INTERVAL = 1.0


class PingerState(enum.Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    STOPPING = 'stopping'
    STOPPED = 'stopped'


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Pinger:
    """Runs one probe repeatedly and reports per-probe and summary results.

    The first probe warms up the connection path: it is printed but kept out
    of the statistics and out of the counter. The loop ends when ``stop()``
    is called, when ``counter`` samples have been recorded (``counter <= 0``
    runs until stopped) or when the task running ``run()`` is cancelled.
    A pinger runs once; it cannot be restarted after it stops.
    """

    def __init__(
        self,
        target: Any,
        ping: Ping,
        formatter: Optional[ResultFormatter] = None,
        interval: float = 0.0,
        counter: int = 0,
        aggregator: Optional[StatsAggregator] = None,
    ):
        self.target = str(target)
        self.ping = ping
        self.formatter = formatter or ResultFormatter()
        self.interval = interval if interval and interval > 0 else DEFAULT_INTERVAL
        self.counter = counter
        self.stats = aggregator or StatsAggregator()
        self.summary: Optional[Summary] = None
        self.logger = logging.getLogger(__name__)

        self.state = PingerState.IDLE
        self._state_lock = threading.Lock()
        self._stop_requested = False
        self._stop_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def stopped(self) -> bool:
        return self.state is PingerState.STOPPED

    def stop(self) -> None:
        """Ask the pinger to stop; safe to call repeatedly and from any thread"""
        with self._state_lock:
            if self._stop_requested:
                return
            self._stop_requested = True
            loop, event = self._loop, self._stop_event
            if event is None or self.state is not PingerState.RUNNING:
                return

        self.logger.debug(f"Stop requested for {self.target}")
        if _running_loop() is loop:
            event.set()
            return
        try:
            loop.call_soon_threadsafe(event.set)
        except RuntimeError:
            # loop already closed, run() has finished
            self.logger.debug(f"Event loop closed before stop reached {self.target}")

    def _set_state(self, state: PingerState) -> None:
        with self._state_lock:
            self.logger.debug(f"Pinger {self.target}: {self.state.value} -> {state.value}")
            self.state = state

    async def run(self) -> Summary:
        """Probe until a stop condition is met, then print and return the summary"""
        with self._state_lock:
            if self.state is not PingerState.IDLE:
                raise RuntimeError("Pinger can only be run once")
            self._loop = asyncio.get_running_loop()
            self._stop_event = asyncio.Event()
            if self._stop_requested:
                self._stop_event.set()
            self.state = PingerState.RUNNING

        stop_waiter = asyncio.create_task(self._stop_event.wait())
        discarded_first = False
        delay = 0.0
        try:
            while not self._stop_event.is_set():
                finished, _ = await self._race(asyncio.sleep(delay), stop_waiter)
                if not finished:
                    break
                finished, stats = await self._race(self._probe(), stop_waiter)
                if not finished:
                    break

                limit_reached = False
                if not discarded_first:
                    discarded_first = True
                    self.logger.debug("Discarding warm-up probe from statistics")
                elif self.stats.observe(stats):
                    limit_reached = 0 < self.counter <= self.stats.total

                if not stats.cancelled:
                    self.formatter.print_result(self.target, stats)
                if limit_reached:
                    self.logger.debug(f"Counter limit {self.counter} reached")
                    self.stop()
                    break
                delay = self.interval
        finally:
            self._shutdown(stop_waiter)
            self.summary = self.stats.summarize(self.target)
            self.formatter.print_summary(self.summary)

        return self.summary

    async def _probe(self) -> Stats:
        try:
            return await self.ping.ping()
        except Exception as e:
            self.logger.warning(f"Probe raised instead of reporting: {e}")
            return Stats(connected=False, error=e)

    async def _race(self, awaitable, stop_waiter: asyncio.Task) -> Tuple[bool, Any]:
        """Await ``awaitable`` unless a stop arrives first.

        Returns ``(True, result)`` when it completed and ``(False, None)``
        when the stop won, after cancelling and awaiting the pending work.
        """
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await self._cancel(task)
            raise

        if task in done:
            return True, task.result()

        await self._cancel(task)
        return False, None

    async def _cancel(self, task: asyncio.Task) -> None:
        if task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.debug(f"In-flight probe failed while cancelling: {e}")
        else:
            self.logger.debug("In-flight probe finished despite cancellation, result dropped")

    def _shutdown(self, stop_waiter: asyncio.Task) -> None:
        with self._state_lock:
            self._stop_requested = True
        self._set_state(PingerState.STOPPING)
        stop_waiter.cancel()
        self._set_state(PingerState.STOPPED)
