"""Timer primitives for sessions.

Sessions never touch the event loop directly; they receive a Scheduler. The
asyncio implementation drives real scans, the manual one runs on a virtual
clock for replays and tests.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable


class TimerHandle(ABC):
	@abstractmethod
	def cancel(self) -> None:
		"""Prevent any further firing. Safe to call repeatedly."""
		pass

	@property
	@abstractmethod
	def cancelled(self) -> bool:
		pass


class Scheduler(ABC):
	@abstractmethod
	def now(self) -> float:
		"""Monotonic time in seconds."""
		pass

	@abstractmethod
	def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
		"""Run callback once after delay seconds."""
		pass

	@abstractmethod
	def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
		"""Run callback every interval seconds, first run one interval from now."""
		pass


class _AsyncioTimer(TimerHandle):
	def __init__(self) -> None:
		self._handle: asyncio.TimerHandle | None = None
		self._cancelled = False

	@property
	def cancelled(self) -> bool:
		return self._cancelled

	def cancel(self) -> None:
		self._cancelled = True
		if self._handle is not None:
			self._handle.cancel()
			self._handle = None


class AsyncioScheduler(Scheduler):
	"""Scheduler on top of an asyncio loop.

	Without an explicit loop, every call uses the loop running at that moment,
	so one scheduler can outlive the loop it first ran on.
	"""

	def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
		self._loop = loop

	@property
	def loop(self) -> asyncio.AbstractEventLoop:
		return self._loop or asyncio.get_running_loop()

	def now(self) -> float:
		return self.loop.time()

	def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
		timer = _AsyncioTimer()

		def fire() -> None:
			timer._handle = None
			if not timer.cancelled:
				callback()

		timer._handle = self.loop.call_later(delay, fire)
		return timer

	def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
		if interval <= 0:
			raise ValueError(f"interval must be positive, got {interval}")
		timer = _AsyncioTimer()
		loop = self.loop
		# Re-arm against absolute deadlines so callback run time does not accumulate as drift
		next_at = loop.time() + interval

		def fire() -> None:
			nonlocal next_at
			if timer.cancelled:
				return
			next_at += interval
			timer._handle = loop.call_at(next_at, fire)
			callback()

		timer._handle = loop.call_at(next_at, fire)
		return timer


class _ManualTimer(TimerHandle):
	def __init__(self, callback: Callable[[], None], origin: float, interval: float | None) -> None:
		self.callback = callback
		self.origin = origin
		self.interval = interval
		self.fired = 0
		self._cancelled = False

	@property
	def cancelled(self) -> bool:
		return self._cancelled

	def cancel(self) -> None:
		self._cancelled = True


class ManualScheduler(Scheduler):
	"""Virtual-clock scheduler.

	Time only moves in advance(). Due timers fire in deadline order; on equal
	deadlines the timer armed first fires first, and a repeating timer is
	re-armed each time it fires.
	"""

	def __init__(self, start: float = 0.0) -> None:
		self._now = start
		self._queue: list[tuple[float, int, _ManualTimer]] = []
		self._seq = itertools.count()

	def now(self) -> float:
		return self._now

	def _push(self, due: float, timer: _ManualTimer) -> None:
		# Rounded key so 0.1-step accumulation cannot reorder timers due at the same instant
		heapq.heappush(self._queue, (round(due, 9), next(self._seq), timer))

	def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
		timer = _ManualTimer(callback, self._now, None)
		self._push(self._now + max(delay, 0.0), timer)
		return timer

	def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
		if interval <= 0:
			raise ValueError(f"interval must be positive, got {interval}")
		timer = _ManualTimer(callback, self._now, interval)
		self._push(self._now + interval, timer)
		return timer

	@property
	def pending(self) -> int:
		return sum(1 for _, _, t in self._queue if not t.cancelled)

	def advance(self, seconds: float) -> None:
		"""Move the clock forward, firing every timer that comes due."""
		target = round(self._now + seconds, 9)
		while self._queue and self._queue[0][0] <= target:
			due, _, timer = heapq.heappop(self._queue)
			if timer.cancelled:
				continue
			self._now = max(self._now, due)
			if timer.interval is not None:
				timer.fired += 1
				self._push(timer.origin + (timer.fired + 1) * timer.interval, timer)
			timer.callback()
		self._now = max(self._now, target)

	def run_until_idle(self, limit: float = 3600.0) -> None:
		"""Fire timers until none remain or limit seconds pass."""
		end = self._now + limit
		while self.pending and self._now < end:
			next_due = min(due for due, _, t in self._queue if not t.cancelled)
			self.advance(max(next_due - self._now, 0.0))
