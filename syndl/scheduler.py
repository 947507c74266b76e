"""
Repeating timers used by the playback gate.

ThreadingScheduler runs callbacks on a background thread at a fixed interval.
SteppedScheduler fires them only when advance() is called (deterministic tests).
Every timer returns a handle whose cancel() stops further calls.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, List, Protocol

from loguru import logger


class TimerHandle(Protocol):
	def cancel(self) -> None:
		"""Stop the timer; safe to call more than once."""


class Scheduler(Protocol):
	def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
		"""Call `callback` every `interval` seconds until the handle is cancelled."""


class _RepeatingTimer(threading.Thread):
	def __init__(self, interval: float, callback: Callable[[], None]) -> None:
		super().__init__(name='syndl-timer', daemon=True)
		self.interval = interval
		self.callback = callback
		self._cancelled = threading.Event()

	def cancel(self) -> None:
		self._cancelled.set()

	def run(self) -> None:
		while not self._cancelled.wait(self.interval):
			try:
				self.callback()
			except Exception as e:
				logger.exception(f"[Scheduler] Timer callback failed: {e}")
				self._cancelled.set()


class ThreadingScheduler:
	"""Wall-clock timers, one daemon thread each."""

	def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
		if interval <= 0.0:
			raise ValueError("interval must be greater than zero")
		timer = _RepeatingTimer(interval, callback)
		timer.start()
		return timer


@dataclass
class _SteppedTimer:
	interval: float
	callback: Callable[[], None]
	next_due: float
	cancelled: bool = False

	def cancel(self) -> None:
		self.cancelled = True


@dataclass
class SteppedScheduler:
	"""Deterministic scheduler: time moves only through advance()."""

	now: float = 0.0
	_timers: List[_SteppedTimer] = field(default_factory=list)

	def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
		if interval <= 0.0:
			raise ValueError("interval must be greater than zero")
		timer = _SteppedTimer(interval, callback, next_due=self.now + interval)
		self._timers.append(timer)
		return timer

	def advance(self, seconds: float) -> float:
		"""Move time forward, firing due callbacks in order; returns the new time."""
		if seconds < 0.0:
			raise ValueError("seconds must be non-negative")
		target = self.now + seconds
		while True:
			live = [t for t in self._timers if not t.cancelled]
			self._timers = live
			due = [t for t in live if t.next_due <= target]
			if not due:
				break
			timer = min(due, key=lambda t: t.next_due)
			self.now = timer.next_due
			timer.next_due += timer.interval
			timer.callback()
		self.now = target
		return self.now

	@property
	def active_timers(self) -> int:
		return sum(1 for t in self._timers if not t.cancelled)
