"""
Per-viewer gate registry used by the HTTP API.
A browser keeps one gate per (session, movie) for as long as the page is open; the server
keeps them here and tears their timers down explicitly: on `leave`, at shutdown, and when a
gate has not been touched for `gate_idle_minutes`.
"""

import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .models import MovieRecord
from .playback_gate import PlaybackGate, PlayerParams
from .scheduler import Scheduler
from .settings import Settings
from .unlock_grants import UnlockGrantStore

GateKey = Tuple[str, str]


class GateRegistry:
	def __init__(
		self,
		grants: UnlockGrantStore,
		scheduler: Scheduler,
		settings: Settings,
		now: Callable[[], float] = time.monotonic,  # injectable for tests
	):
		self.grants = grants
		self.scheduler = scheduler
		self.settings = settings
		self.now = now
		self.idle_timeout = settings.gate_idle_minutes * 60.0
		self._gates: Dict[GateKey, PlaybackGate] = {}
		self._last_seen: Dict[GateKey, float] = {}
		self._lock = threading.Lock()

	def __len__(self) -> int:
		with self._lock:
			return len(self._gates)

	def open(self, session_id: str, movie: MovieRecord, unlocked: bool = False) -> PlaybackGate:
		"""
		Return the viewer's gate for `movie`, creating and loading it on the first visit.
		A later visit carrying the unlock assertion (the locker's redirect) updates the live gate.
		"""
		self.sweep()
		key = (session_id, movie.id)
		with self._lock:
			gate = self._gates.get(key)
			self._last_seen[key] = self.now()
			if gate is None:
				gate = PlaybackGate(
					movie,
					self.grants,
					self.scheduler,
					params=PlayerParams(movie_id=movie.id, unlocked=unlocked),
					preview_seconds=self.settings.preview_seconds,
					poll_interval=self.settings.poll_interval,
					max_checks=self.settings.poll_max_checks,
				)
				gate.load()
				self._gates[key] = gate
				logger.debug(f"[Gates] Opened gate {key} -> {gate.state.value}")
				return gate
		if unlocked:
			gate.update_params(unlocked=True)
		return gate

	def get(self, session_id: str, movie_id: str) -> Optional[PlaybackGate]:
		key = (session_id, movie_id)
		with self._lock:
			gate = self._gates.get(key)
			if gate is not None:
				self._last_seen[key] = self.now()
			return gate

	def leave(self, session_id: str, movie_id: str) -> bool:
		"""Viewer navigated away: stop the gate's timers and forget it."""
		key = (session_id, movie_id)
		with self._lock:
			gate = self._gates.pop(key, None)
			self._last_seen.pop(key, None)
		if gate is None:
			return False
		gate.close()
		return True

	def sweep(self) -> int:
		"""Close and forget gates idle for longer than the timeout; returns how many went."""
		cutoff = self.now() - self.idle_timeout
		with self._lock:
			stale = [key for key, seen in self._last_seen.items() if seen < cutoff]
			gates: List[PlaybackGate] = []
			for key in stale:
				del self._last_seen[key]
				gate = self._gates.pop(key, None)
				if gate is not None:
					gates.append(gate)
		for gate in gates:
			gate.close()
		if gates:
			logger.info(f"[Gates] Evicted {len(gates)} idle gates")
		return len(gates)

	def close_all(self) -> None:
		with self._lock:
			gates: List[PlaybackGate] = list(self._gates.values())
			self._gates.clear()
			self._last_seen.clear()
		for gate in gates:
			gate.close()
		logger.info(f"[Gates] Closed {len(gates)} gates")
