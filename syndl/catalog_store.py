"""
Catalog store module.
Owns the in-memory movie list, serves the storefront/admin/player queries,
and writes every mutation through to the remote and local backends.
"""

import dataclasses  # replace() for shallow merges
import threading  # single-writer guard around the list
from datetime import date  # addedDate stamping
from typing import Any, Callable, Dict, List, Optional, Tuple, Union  # type annotations

from .data_loader import DataLoader, slugify  # (de)serialization + id generation
from .default_catalog import default_movies  # compiled-in fallback catalog
from .models import MoviePatch, MovieRecord  # core data classes
from .persistence import BackendUnavailableError, LocalCatalogBackend, PersistenceBackend, Subscription

# Import loguru for console logging
from loguru import logger  # simple structured logger


ChangeListener = Callable[[List[MovieRecord]], None]


class CatalogStore:
	"""
	Authoritative in-memory catalog.
	Consumers read through the query methods (they always get fresh lists) and mutate only
	through add/update/delete; remote pushes replace the whole list and notify listeners.
	"""

	def __init__(
		self,
		local: LocalCatalogBackend,  # durable fallback, always written
		remote: Optional[PersistenceBackend] = None,  # realtime store; None when not configured
		defaults: Callable[[], List[MovieRecord]] = default_movies,  # compiled-in seed catalog
		today: Callable[[], date] = date.today,  # injectable for tests
	):
		self.local = local
		self.remote = remote
		self.defaults = defaults
		self.today = today
		self.loader = DataLoader()

		self._movies: List[MovieRecord] = []  # only touched under self._lock
		self._lock = threading.Lock()
		self._listeners: List[ChangeListener] = []
		self._subscription: Optional[Subscription] = None
		self.source = 'empty'  # which path populated the catalog: remote | seeded | local | defaults

	# ------------------------------------------------------------------
	# Lifecycle
	# ------------------------------------------------------------------

	def initialize(self, on_ready: Optional[Callable[[], None]] = None) -> None:
		"""
		Populate the catalog: remote first (seeding it with the defaults when empty),
		then the local snapshot when the remote is unreachable, then the defaults in memory only.
		`on_ready` runs exactly once, after the catalog is populated.
		"""
		movies = self._load_remote()
		if movies is None:
			movies = self.local.load_snapshot()
			if movies is not None:
				self.source = 'local'
				logger.info(f"[CatalogStore] Remote unavailable; loaded {len(movies)} movies from local store")
			else:
				movies = self.defaults()
				self.source = 'defaults'
				logger.info(f"[CatalogStore] No stored catalog; using {len(movies)} default movies (not persisted)")
			with self._lock:
				self._movies = list(movies)

		if on_ready is not None:
			on_ready()

	def _load_remote(self) -> Optional[List[MovieRecord]]:
		"""Load from the remote store; returns None when it is unavailable or not configured."""
		if self.remote is None:
			logger.info("[CatalogStore] No remote store configured")
			return None
		try:
			snapshot = self.remote.load_snapshot()
		except BackendUnavailableError as e:
			logger.warning(f"[CatalogStore] Remote store unavailable: {e}")
			return None

		if snapshot is None:
			snapshot = self.defaults()
			with self._lock:
				self._movies = list(snapshot)
			self.source = 'seeded'
			logger.info(f"[CatalogStore] Remote store empty; seeding it with {len(snapshot)} default movies")
			self._persist(snapshot)
		else:
			with self._lock:
				self._movies = list(snapshot)
			self.source = 'remote'
			logger.info(f"[CatalogStore] Loaded {len(snapshot)} movies from remote store")

		self._subscription = self.remote.subscribe(self._on_remote_change)
		return snapshot

	def reset(self, on_ready: Optional[Callable[[], None]] = None) -> None:
		"""
		Admin reset: forget the local snapshot and initialize again.
		Only the local copy is discarded. With a reachable remote the catalog is reloaded from it
		(an empty remote is seeded); the defaults come back only when no remote is configured or
		it is unreachable.
		"""
		logger.info("[CatalogStore] Resetting catalog: clearing the local copy and reloading")
		self.close()
		self.local.clear()
		self.initialize(on_ready)
		self._notify()

	def close(self) -> None:
		"""Stop listening for remote changes."""
		if self._subscription is not None:
			self._subscription.close()
			self._subscription = None

	# ------------------------------------------------------------------
	# Change notification
	# ------------------------------------------------------------------

	def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
		"""Register a "catalog changed" listener; returns a function that unregisters it."""
		with self._lock:
			self._listeners.append(listener)

		def unsubscribe() -> None:
			with self._lock:
				if listener in self._listeners:
					self._listeners.remove(listener)

		return unsubscribe

	def _on_remote_change(self, snapshot: List[MovieRecord]) -> None:
		"""Remote push: the pushed snapshot replaces the whole in-memory list."""
		with self._lock:
			self._movies = list(snapshot)
		logger.info(f"[CatalogStore] Catalog replaced by remote push ({len(snapshot)} movies)")
		self._notify()

	def _notify(self) -> None:
		with self._lock:
			listeners = list(self._listeners)
			movies = list(self._movies)
		for listener in listeners:
			try:
				listener(list(movies))
			except Exception as e:
				logger.exception(f"[CatalogStore] Change listener failed: {e}")

	# ------------------------------------------------------------------
	# Queries
	# ------------------------------------------------------------------

	def get_all(self) -> List[MovieRecord]:
		"""All movies, most recently added first."""
		with self._lock:
			return list(self._movies)

	def get_by_id(self, movie_id: str) -> Optional[MovieRecord]:
		with self._lock:
			return next((m for m in self._movies if m.id == movie_id), None)

	def get_featured(self) -> List[MovieRecord]:
		return [m for m in self.get_all() if m.featured]

	def get_new(self) -> List[MovieRecord]:
		return [m for m in self.get_all() if m.is_new]

	def get_by_genre(self, genre: str) -> List[MovieRecord]:
		"""Case-insensitive exact match against any genre tag."""
		wanted = genre.lower()
		return [m for m in self.get_all() if any(g.lower() == wanted for g in m.genre)]

	def search(self, query: str) -> List[MovieRecord]:
		"""
		Case-insensitive substring match on the title or any genre tag.
		No minimum length is applied here; the storefront suppresses very short queries.
		"""
		q = query.lower()
		logger.debug(f"[CatalogStore] search q='{q}'")
		return [
			m for m in self.get_all()
			if q in m.title.lower() or any(q in g.lower() for g in m.genre)
		]

	def get_all_genres(self) -> List[str]:
		return self.loader.get_all_genres(self.get_all())

	def get_related(self, movie_id: str, limit: int = 5) -> List[MovieRecord]:
		"""Other movies shown under the player, in catalog order."""
		return [m for m in self.get_all() if m.id != movie_id][:limit]

	def stats(self) -> Dict[str, int]:
		"""Totals shown on the admin dashboard."""
		movies = self.get_all()
		return {
			'total_movies': len(movies),
			'featured': sum(1 for m in movies if m.featured),
			'new': sum(1 for m in movies if m.is_new),
			'genres': len(self.loader.get_all_genres(movies)),
		}

	# ------------------------------------------------------------------
	# Mutations (write-through)
	# ------------------------------------------------------------------

	def add(self, data: Union[Dict[str, Any], MovieRecord]) -> MovieRecord:
		"""
		Add a movie: the id is the title's slug and addedDate is today.
		The new record goes first. Ids are not checked for collisions.
		"""
		if isinstance(data, MovieRecord):
			data = self.loader.movie_to_dict(data)
		record = self.loader.parse_movie({k: v for k, v in data.items() if k not in ('id', 'addedDate')})
		if not record.title:
			raise ValueError("A movie needs a title")
		record = dataclasses.replace(record, id=slugify(record.title), added_date=self.today().isoformat())

		with self._lock:
			if any(m.id == record.id for m in self._movies):
				logger.warning(f"[CatalogStore] Added movie id '{record.id}' collides with an existing record")
			self._movies.insert(0, record)
			snapshot = list(self._movies)
		logger.info(f"[CatalogStore] Added '{record.title}' ({record.id})")
		self._persist(snapshot)
		return record

	def update(self, movie_id: str, patch: Union[MoviePatch, Dict[str, Any]]) -> Optional[MovieRecord]:
		"""Shallow-merge `patch` over the record; returns None (and writes nothing) when not found."""
		if not isinstance(patch, MoviePatch):
			patch = self.loader.parse_patch(patch)

		with self._lock:
			index = self._index_of(movie_id)
			if index is None:
				logger.info(f"[CatalogStore] Update skipped, no movie '{movie_id}'")
				return None
			merged = dataclasses.replace(self._movies[index], **patch.changes())
			self._movies[index] = merged
			snapshot = list(self._movies)
		logger.info(f"[CatalogStore] Updated '{movie_id}' fields={sorted(patch.changes())}")
		self._persist(snapshot)
		return merged

	def delete(self, movie_id: str) -> bool:
		"""Remove the record if present; returns whether anything was removed."""
		with self._lock:
			index = self._index_of(movie_id)
			if index is None:
				logger.info(f"[CatalogStore] Delete skipped, no movie '{movie_id}'")
				return False
			del self._movies[index]
			snapshot = list(self._movies)
		logger.info(f"[CatalogStore] Deleted '{movie_id}'")
		self._persist(snapshot)
		return True

	def _index_of(self, movie_id: str) -> Optional[int]:
		# First match wins when ids collide
		for i, movie in enumerate(self._movies):
			if movie.id == movie_id:
				return i
		return None

	def _persist(self, snapshot: List[MovieRecord]) -> None:
		"""Best-effort write to both backends; a remote failure never blocks the local write."""
		if self.remote is not None:
			try:
				ok = self.remote.save_snapshot(snapshot)
			except BackendUnavailableError as e:
				ok = False
				logger.warning(f"[CatalogStore] Remote write failed: {e}")
			if not ok:
				logger.warning("[CatalogStore] Remote write did not succeed; local copy remains authoritative")
		if not self.local.save_snapshot(snapshot):
			logger.warning("[CatalogStore] Local write did not succeed")

	# ------------------------------------------------------------------
	# Export
	# ------------------------------------------------------------------

	def export(self) -> Tuple[str, str]:
		"""Return (filename, JSON text) for downloading the full catalog."""
		filename = f"syndl_movies_{self.today().isoformat()}.json"
		return filename, self.loader.dump_movies(self.get_all())
