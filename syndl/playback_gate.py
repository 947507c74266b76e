"""
Playback gate module.
State machine behind the player page: a bounded preview, a lock at the preview threshold,
the external verification ("locker") round trip with a bounded poll, and the unlock grant
that lets later visits skip the preview.

	IDLE -> PREVIEWING -> LOCKED -> AWAITING_VERIFICATION -> UNLOCKED
	                                        |        ^
	                                        v        | retry
	                                   RETRY_OFFERED -> LOCKED (cancel)

A valid grant or an incoming unlock assertion at load time goes straight to UNLOCKED.
"""

import threading  # gate is driven from request handlers and the poll timer
from dataclasses import dataclass  # page parameters
from enum import Enum  # gate states
from typing import Any, Callable, Dict, List, Mapping, Optional  # type hints

from .models import MovieRecord  # the movie being played
from .scheduler import Scheduler, TimerHandle  # cancellable poll timer
from .unlock_grants import UnlockGrantStore  # durable unlock receipts

# Console logging
from loguru import logger  # console logger


PREVIEW_SECONDS = 60.0  # preview length before the lock, whatever the movie's real length
POLL_INTERVAL_SECONDS = 1.0  # spacing of verification checks
POLL_MAX_CHECKS = 60  # checks before offering a retry


class GateState(str, Enum):
	IDLE = 'idle'
	PREVIEWING = 'previewing'
	LOCKED = 'locked'
	AWAITING_VERIFICATION = 'awaiting_verification'
	RETRY_OFFERED = 'retry_offered'
	UNLOCKED = 'unlocked'


class GateTransitionError(RuntimeError):
	"""An action was requested in a state that does not allow it."""


def format_time(seconds: float) -> str:
	"""Render H:MM:SS when there is at least one hour, else M:SS."""
	seconds = max(0, int(seconds))
	hrs, rest = divmod(seconds, 3600)
	mins, secs = divmod(rest, 60)
	if hrs > 0:
		return f"{hrs}:{mins:02d}:{secs:02d}"
	return f"{mins}:{secs:02d}"


@dataclass
class PlayerParams:
	"""Incoming player page parameters: which movie, and whether the locker asserted an unlock."""
	movie_id: Optional[str] = None
	unlocked: bool = False

	@classmethod
	def from_query(cls, query: Mapping[str, str]) -> 'PlayerParams':
		return cls(movie_id=query.get('id') or None, unlocked=query.get('unlocked') == 'true')


class PlaybackGate:
	"""
	One viewer's gate for one movie.
	All transitions run under a lock because the verification poll ticks on a timer thread.
	"""

	def __init__(
		self,
		movie: MovieRecord,  # record being played
		grants: UnlockGrantStore,  # receipts checked at load and written on unlock
		scheduler: Scheduler,  # drives the verification poll
		params: Optional[PlayerParams] = None,  # page parameters, re-read on every poll check
		open_resource: Optional[Callable[[str], None]] = None,  # opens the locker in a new context
		preview_seconds: float = PREVIEW_SECONDS,
		poll_interval: float = POLL_INTERVAL_SECONDS,
		max_checks: int = POLL_MAX_CHECKS,
	):
		self.movie = movie
		self.grants = grants
		self.scheduler = scheduler
		self.params = params or PlayerParams(movie_id=movie.id)
		self.open_resource = open_resource
		self.preview_seconds = float(preview_seconds)
		self.poll_interval = poll_interval
		self.max_checks = max_checks

		self.state = GateState.IDLE
		self.position = 0.0  # preview playback position in seconds
		self.playing = False
		self.checks = 0  # verification checks made by the current poll
		self.opened_urls: List[str] = []  # every verification page opened, in order
		self._poll: Optional[TimerHandle] = None
		self._loaded = False
		self._lock = threading.RLock()

	# ------------------------------------------------------------------
	# Load / preview
	# ------------------------------------------------------------------

	def load(self) -> GateState:
		"""
		Entry check, made once before anything else: an incoming unlock assertion or a
		valid grant skips the preview entirely.
		"""
		with self._lock:
			if self._loaded:
				raise GateTransitionError("load() may only be called once")
			self._loaded = True
			if self.params.unlocked:
				logger.info(f"[Gate] '{self.movie.id}' unlocked by page parameters")
				self._unlock()
			elif self.grants.has_valid_grant(self.movie.id):
				logger.info(f"[Gate] '{self.movie.id}' unlocked by stored grant")
				self.state = GateState.UNLOCKED
			return self.state

	def start(self) -> GateState:
		"""The viewer pressed play."""
		with self._lock:
			if self.state is GateState.IDLE:
				self._set_state(GateState.PREVIEWING)
				self.playing = True
			elif self.state is GateState.PREVIEWING:
				self.playing = True
			elif self.state is not GateState.UNLOCKED:
				raise GateTransitionError(f"cannot start playback in state {self.state.value}")
			return self.state

	def pause(self) -> GateState:
		with self._lock:
			self.playing = False
			return self.state

	def on_position(self, seconds: float) -> GateState:
		"""Playback position sample from the preview player."""
		with self._lock:
			if self.state is not GateState.PREVIEWING:
				return self.state
			self.position = min(max(0.0, float(seconds)), self.preview_seconds)
			if seconds >= self.preview_seconds:
				self._lock_preview('threshold reached')
			return self.state

	def on_preview_ended(self) -> GateState:
		"""The preview resource finished on its own (it may be shorter than the threshold)."""
		with self._lock:
			if self.state is GateState.PREVIEWING:
				self._lock_preview('preview ended')
			return self.state

	def seek(self, seconds: float) -> float:
		"""
		Seek request. Before unlocking, the target is clamped to [0, preview threshold];
		reaching the threshold locks. Once locked the position no longer moves.
		"""
		with self._lock:
			if self.state is GateState.UNLOCKED:
				return max(0.0, float(seconds))
			if self.state not in (GateState.IDLE, GateState.PREVIEWING):
				return self.position
			self.position = min(max(0.0, float(seconds)), self.preview_seconds)
			if self.state is GateState.PREVIEWING and self.position >= self.preview_seconds:
				self._lock_preview('seek reached threshold')
			return self.position

	def _lock_preview(self, reason: str) -> None:
		self.playing = False
		self._set_state(GateState.LOCKED)
		logger.info(f"[Gate] '{self.movie.id}' locked ({reason}) at {format_time(self.position)}")

	# ------------------------------------------------------------------
	# Verification round trip
	# ------------------------------------------------------------------

	def request_unlock(self) -> GateState:
		"""Unlock button on the lock screen: open the locker and start polling."""
		with self._lock:
			if self.state is not GateState.LOCKED:
				raise GateTransitionError(f"cannot request unlock in state {self.state.value}")
			self._begin_verification()
			return self.state

	def retry(self) -> GateState:
		with self._lock:
			if self.state is not GateState.RETRY_OFFERED:
				raise GateTransitionError(f"cannot retry in state {self.state.value}")
			self._begin_verification()
			return self.state

	def cancel(self) -> GateState:
		"""Back to the lock screen without reopening the locker."""
		with self._lock:
			if self.state is not GateState.RETRY_OFFERED:
				raise GateTransitionError(f"cannot cancel in state {self.state.value}")
			self._set_state(GateState.LOCKED)
			return self.state

	def update_params(self, unlocked: bool) -> None:
		"""The locker redirected back; the next poll check sees the new assertion."""
		with self._lock:
			self.params.unlocked = unlocked

	def _begin_verification(self) -> None:
		self._set_state(GateState.AWAITING_VERIFICATION)
		self._open(self.movie.locker_url)
		self._cancel_poll()
		self.checks = 0
		self._poll = self.scheduler.call_every(self.poll_interval, self._poll_tick)

	def _poll_tick(self) -> None:
		with self._lock:
			if self.state is not GateState.AWAITING_VERIFICATION:
				self._cancel_poll()
				return
			self.checks += 1
			if self.params.unlocked:
				logger.info(f"[Gate] '{self.movie.id}' verification confirmed after {self.checks} checks")
				self._unlock()
			elif self.checks >= self.max_checks:
				self._cancel_poll()
				self._set_state(GateState.RETRY_OFFERED)
				logger.info(f"[Gate] '{self.movie.id}' verification not confirmed after {self.checks} checks")

	def _open(self, url: str) -> None:
		self.opened_urls.append(url)
		if self.open_resource is not None:
			self.open_resource(url)

	def _unlock(self) -> None:
		self._cancel_poll()
		self.playing = False
		self.grants.issue_grant(self.movie.id)
		self._set_state(GateState.UNLOCKED)

	def _cancel_poll(self) -> None:
		if self._poll is not None:
			self._poll.cancel()
			self._poll = None

	def _set_state(self, state: GateState) -> None:
		logger.debug(f"[Gate] '{self.movie.id}' {self.state.value} -> {state.value}")
		self.state = state

	def close(self) -> None:
		"""Tear down the poll timer (the viewer left the page)."""
		with self._lock:
			self._cancel_poll()

	# ------------------------------------------------------------------
	# Display helpers
	# ------------------------------------------------------------------

	@property
	def progress_percent(self) -> float:
		"""Preview progress measured against the threshold, never above 100."""
		if self.preview_seconds <= 0:
			return 100.0
		return min(100.0, self.position / self.preview_seconds * 100.0)

	@property
	def media_url(self) -> str:
		"""Preview locator until unlocked, full-content locator afterwards."""
		if self.state is GateState.UNLOCKED:
			return self.movie.full_movie_url
		return self.movie.preview_url

	@property
	def polling(self) -> bool:
		return self._poll is not None

	def view(self) -> Dict[str, Any]:
		"""Snapshot of everything the player page renders."""
		with self._lock:
			return {
				'movie_id': self.movie.id,
				'state': self.state.value,
				'playing': self.playing,
				'position': self.position,
				'progress_percent': round(self.progress_percent, 2),
				'current_time': format_time(self.position),
				'duration': format_time(self.movie.duration_seconds),
				'media_url': self.media_url,
				'full_content': self.state is GateState.UNLOCKED,
				'checks': self.checks,
				'max_checks': self.max_checks,
				'locker_url': self.opened_urls[-1] if self.opened_urls else None,
			}


PLAYER_ACTIONS = ('start', 'pause', 'position', 'seek', 'ended', 'unlock', 'retry', 'cancel')


def apply_action(gate: PlaybackGate, action: str, seconds: Optional[float] = None) -> GateState:
	"""
	Run one named player action against `gate`.
	Raises ValueError for an unknown action or a position/seek without `seconds`,
	and GateTransitionError when the gate's state does not allow the action.
	"""
	if action not in PLAYER_ACTIONS:
		raise ValueError(f"Unknown player action '{action}'")
	if action in ('position', 'seek'):
		if seconds is None:
			raise ValueError(f"'{action}' needs a position in seconds")
		if action == 'position':
			return gate.on_position(seconds)
		gate.seek(seconds)
		return gate.state
	handlers = {
		'start': gate.start,
		'pause': gate.pause,
		'ended': gate.on_preview_ended,
		'unlock': gate.request_unlock,
		'retry': gate.retry,
		'cancel': gate.cancel,
	}
	return handlers[action]()
