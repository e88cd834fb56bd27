import asyncio
import threading
from collections import deque
from typing import Deque, List, Optional
from unittest.mock import Mock

import pytest

from .formatter import ResultFormatter
from .models.stats import Stats
from .pinger import DEFAULT_INTERVAL, Pinger, PingerState
from .probes.base import Ping

TARGET = 'tcp://127.0.0.1:80'
INTERVAL = 0.01


class FakePing(Ping):
	"""Returns scripted results; an exhausted script keeps succeeding"""

	def __init__(self, script: Optional[List[Stats]] = None, delay: float = 0.0, on_call=None):
		self.script: Deque[Stats] = deque(script or [])
		self.delay = delay
		self.on_call = on_call
		self.calls = 0
		self.cancelled = 0

	async def ping(self) -> Stats:
		self.calls += 1
		if self.on_call:
			self.on_call(self.calls)
		try:
			if self.delay:
				await asyncio.sleep(self.delay)
		except asyncio.CancelledError:
			self.cancelled += 1
			raise
		if self.script:
			return self.script.popleft()
		return Stats(connected=True, duration=int(self.delay * 1e9), address='127.0.0.1:80')


class BlockingPing(Ping):
	"""Succeeds once, then blocks until cancelled"""

	def __init__(self):
		self.calls = 0
		self.started = asyncio.Event()
		self.cancelled = False

	async def ping(self) -> Stats:
		self.calls += 1
		if self.calls == 1:
			return Stats(connected=True, duration=1_000_000)
		self.started.set()
		try:
			await asyncio.Event().wait()
		except asyncio.CancelledError:
			self.cancelled = True
			raise
		return Stats(connected=True)


def _formatter() -> Mock:
	return Mock(spec=ResultFormatter)


def test_default_interval():
	pinger = Pinger(TARGET, FakePing(), _formatter(), interval=0)
	assert pinger.interval == DEFAULT_INTERVAL
	assert DEFAULT_INTERVAL > 0
	assert Pinger(TARGET, FakePing(), _formatter(), interval=-1).interval == DEFAULT_INTERVAL


@pytest.mark.asyncio
async def test_counter_limit_stops_the_loop():
	"""counter=3 with a 10ms probe records exactly 3 samples"""
	ping = FakePing(delay=0.01)
	formatter = _formatter()
	pinger = Pinger(TARGET, ping, formatter, interval=INTERVAL, counter=3)

	summary = await asyncio.wait_for(pinger.run(), timeout=5)

	assert summary.total == 3
	assert summary.failed == 0
	assert summary.successes == 3
	assert ping.calls == 4  # warm-up + 3 counted
	assert formatter.print_result.call_count == 4
	formatter.print_summary.assert_called_once_with(summary)
	assert pinger.state is PingerState.STOPPED


@pytest.mark.asyncio
async def test_warm_up_is_displayed_but_not_counted():
	warm_up = Stats(connected=False, error=ConnectionResetError(), duration=900_000_000)
	ping = FakePing(script=[warm_up, Stats(connected=True, duration=5_000_000)])
	formatter = _formatter()
	pinger = Pinger(TARGET, ping, formatter, interval=INTERVAL, counter=1)

	summary = await asyncio.wait_for(pinger.run(), timeout=5)

	assert summary.total == 1
	assert summary.failed == 0
	assert summary.max_duration == 5_000_000
	first_printed = formatter.print_result.call_args_list[0].args
	assert first_printed == (TARGET, warm_up)


@pytest.mark.asyncio
async def test_total_excludes_warm_up_after_external_stop():
	n = 6
	holder = {}

	def stop_on_last(call):
		if call == n:
			holder['pinger'].stop()

	ping = FakePing(on_call=stop_on_last)
	formatter = _formatter()
	pinger = Pinger(TARGET, ping, formatter, interval=INTERVAL)
	holder['pinger'] = pinger

	summary = await asyncio.wait_for(pinger.run(), timeout=5)

	assert ping.calls == n
	assert summary.total == n - 1
	assert summary.successes + summary.failed == summary.total


@pytest.mark.asyncio
async def test_failures_do_not_abort_the_loop():
	script = [
		Stats(connected=True, duration=1_000_000),
		Stats(connected=False, error=ConnectionRefusedError(), duration=2_000_000),
		Stats(connected=False, error=asyncio.TimeoutError(), duration=3_000_000),
		Stats(connected=True, duration=4_000_000),
	]
	pinger = Pinger(TARGET, FakePing(script=script), _formatter(), interval=INTERVAL, counter=3)

	summary = await asyncio.wait_for(pinger.run(), timeout=5)

	assert summary.total == 3
	assert summary.failed == 2
	assert summary.successes == 1


@pytest.mark.asyncio
async def test_raising_probe_is_recorded_as_failure():
	class BrokenPing(FakePing):
		async def ping(self) -> Stats:
			self.calls += 1
			raise RuntimeError("probe bug")

	ping = BrokenPing()
	pinger = Pinger(TARGET, ping, _formatter(), interval=INTERVAL, counter=2)

	summary = await asyncio.wait_for(pinger.run(), timeout=5)

	assert ping.calls == 3
	assert summary.total == 2
	assert summary.failed == 2


@pytest.mark.asyncio
async def test_stop_mid_flight_is_not_a_failure():
	ping = BlockingPing()
	formatter = _formatter()
	pinger = Pinger(TARGET, ping, formatter, interval=INTERVAL)

	run = asyncio.create_task(pinger.run())
	await asyncio.wait_for(ping.started.wait(), timeout=5)
	pinger.stop()
	summary = await asyncio.wait_for(run, timeout=5)

	assert ping.cancelled
	assert summary.total == 0
	assert summary.failed == 0
	# only the warm-up line, the cancelled probe is not shown
	assert formatter.print_result.call_count == 1


@pytest.mark.asyncio
async def test_concurrent_stops_shut_down_once():
	ping = BlockingPing()
	formatter = _formatter()
	pinger = Pinger(TARGET, ping, formatter, interval=INTERVAL)

	run = asyncio.create_task(pinger.run())
	await asyncio.wait_for(ping.started.wait(), timeout=5)

	barrier = threading.Barrier(8)

	def stop_from_thread():
		barrier.wait()
		pinger.stop()

	threads = [threading.Thread(target=stop_from_thread) for _ in range(8)]
	for thread in threads:
		thread.start()
	pinger.stop()
	pinger.stop()
	for thread in threads:
		thread.join()

	await asyncio.wait_for(run, timeout=5)
	pinger.stop()

	formatter.print_summary.assert_called_once()
	assert pinger.stopped
	assert ping.cancelled


@pytest.mark.asyncio
async def test_stop_from_another_thread_wakes_the_loop():
	pinger = Pinger(TARGET, FakePing(), _formatter(), interval=60)
	run = asyncio.create_task(pinger.run())
	await asyncio.sleep(0.05)  # first tick done, now waiting on the interval

	await asyncio.get_running_loop().run_in_executor(None, pinger.stop)
	summary = await asyncio.wait_for(run, timeout=5)

	assert summary.total == 0
	assert pinger.stopped


@pytest.mark.asyncio
async def test_stop_before_run_skips_probing():
	ping = FakePing()
	formatter = _formatter()
	pinger = Pinger(TARGET, ping, formatter, interval=INTERVAL)
	pinger.stop()

	summary = await asyncio.wait_for(pinger.run(), timeout=5)

	assert ping.calls == 0
	assert summary.total == 0
	formatter.print_summary.assert_called_once()


@pytest.mark.asyncio
async def test_pinger_cannot_restart():
	pinger = Pinger(TARGET, FakePing(), _formatter(), interval=INTERVAL, counter=1)
	await asyncio.wait_for(pinger.run(), timeout=5)
	with pytest.raises(RuntimeError):
		await pinger.run()


@pytest.mark.asyncio
async def test_external_cancellation_still_summarizes():
	ping = BlockingPing()
	formatter = _formatter()
	pinger = Pinger(TARGET, ping, formatter, interval=INTERVAL)

	run = asyncio.create_task(pinger.run())
	await asyncio.wait_for(ping.started.wait(), timeout=5)
	run.cancel()
	with pytest.raises(asyncio.CancelledError):
		await run

	assert ping.cancelled
	assert pinger.stopped
	formatter.print_summary.assert_called_once()


def test_stop_after_loop_closed():
	"""A stop that loses the race with loop shutdown is dropped quietly"""
	pinger = Pinger(TARGET, FakePing(), _formatter(), interval=INTERVAL)
	loop = asyncio.new_event_loop()
	loop.close()
	pinger._loop = loop
	pinger._stop_event = asyncio.Event()
	pinger.state = PingerState.RUNNING

	pinger.stop()

	assert pinger._stop_requested
	assert not pinger._stop_event.is_set()
