"""
Persistence module.
Provides the durable local key-value store and the two catalog backends that share one contract:
- LocalCatalogBackend: JSON snapshot kept in the local key-value store
- RemoteCatalogBackend: realtime-database node accessed over its REST API, with a change stream
"""

# Standard libs for JSON, atomic file replacement and background listening
import json  # snapshot encoding
import os  # atomic os.replace
import tempfile  # temp file next to the store for atomic writes
import threading  # listener thread + store lock
from pathlib import Path  # filesystem-safe paths
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

# HTTP client for the remote realtime database
import requests  # REST + event-stream access

from .data_loader import DataLoader  # snapshot (de)serialization
from .models import MovieRecord  # catalog record type

# Console logging
from loguru import logger  # console logger


CATALOG_KEY = 'syndl_movies'  # local key holding the catalog snapshot
PASSWORD_KEY = 'syndl_admin_password'  # local key holding the admin password
GRANT_KEY_PREFIX = 'syndl_unlocked_'  # one local key per unlocked movie

SnapshotCallback = Callable[[List[MovieRecord]], None]


class BackendUnavailableError(Exception):
	"""The backend could not be reached at all (as opposed to being reachable but empty)."""


class Subscription(Protocol):
	def close(self) -> None:
		"""Stop delivering change notifications."""


@runtime_checkable
class PersistenceBackend(Protocol):
	"""Contract shared by the local and remote catalog backends."""

	def load_snapshot(self) -> Optional[List[MovieRecord]]:
		"""Return the last stored snapshot, or None when nothing has been stored yet."""

	def save_snapshot(self, movies: List[MovieRecord]) -> bool:
		"""Replace the stored snapshot with `movies`; return whether the write succeeded."""

	def subscribe(self, on_change: SnapshotCallback) -> Subscription:
		"""Call `on_change` with the new snapshot whenever the stored one changes."""


class KeyValueStore:
	"""
	Durable string key-value store backed by a single JSON file.
	Every write rewrites the file atomically (temp file + rename).
	"""

	def __init__(self, filepath: str):
		self.filepath = Path(filepath)  # e.g. .syndl/storage.json
		self._lock = threading.Lock()  # serialize read-modify-write cycles
		self._data: Dict[str, str] = self._read_file()
		logger.debug(f"[KeyValueStore] Opened {self.filepath} with {len(self._data)} keys")

	def get(self, key: str) -> Optional[str]:
		with self._lock:
			return self._data.get(key)

	def set(self, key: str, value: str) -> None:
		with self._lock:
			self._data[key] = value
			self._write_file()

	def remove(self, key: str) -> None:
		with self._lock:
			if self._data.pop(key, None) is not None:
				self._write_file()

	def keys(self, prefix: str = '') -> List[str]:
		with self._lock:
			return sorted(k for k in self._data if k.startswith(prefix))

	def _read_file(self) -> Dict[str, str]:
		if not self.filepath.exists():
			return {}
		try:
			with open(self.filepath, 'r', encoding='utf-8') as f:
				data = json.load(f)
		except (OSError, json.JSONDecodeError) as e:
			logger.warning(f"[KeyValueStore] Unreadable store {self.filepath}, starting empty: {e}")
			return {}
		if not isinstance(data, dict):
			logger.warning(f"[KeyValueStore] Store {self.filepath} is not an object, starting empty")
			return {}
		return {str(k): str(v) for k, v in data.items()}

	def _write_file(self) -> None:
		self.filepath.parent.mkdir(parents=True, exist_ok=True)
		fd, tmp_path = tempfile.mkstemp(dir=str(self.filepath.parent), prefix='.kv-', suffix='.tmp')
		try:
			with os.fdopen(fd, 'w', encoding='utf-8') as f:
				json.dump(self._data, f, ensure_ascii=False)
			os.replace(tmp_path, self.filepath)
		except OSError:
			if os.path.exists(tmp_path):
				os.unlink(tmp_path)
			raise


class _NoSubscription:
	def close(self) -> None:
		return None


class LocalCatalogBackend:
	"""Catalog snapshot stored under one key of the local key-value store."""

	def __init__(self, store: KeyValueStore, key: str = CATALOG_KEY):
		self.store = store
		self.key = key
		self.loader = DataLoader()

	def load_snapshot(self) -> Optional[List[MovieRecord]]:
		# Malformed JSON is treated exactly like a missing key
		return self.loader.parse_snapshot(self.store.get(self.key))

	def save_snapshot(self, movies: List[MovieRecord]) -> bool:
		try:
			self.store.set(self.key, json.dumps(self.loader.movies_to_list(movies), ensure_ascii=False))
		except OSError as e:
			logger.warning(f"[LocalBackend] Failed to write catalog snapshot: {e}")
			return False
		return True

	def clear(self) -> None:
		"""Drop the stored snapshot (used by the admin reset)."""
		self.store.remove(self.key)

	def subscribe(self, on_change: SnapshotCallback) -> Subscription:
		# Only this process writes the local store, so there is nothing to observe
		return _NoSubscription()


def iter_sse_events(lines: Iterable[str]) -> Iterator[Tuple[str, str]]:
	"""
	Parse a text/event-stream into (event, data) pairs.
	Multi-line data fields are joined with newlines; comments and unknown fields are ignored.
	"""
	event = 'message'
	data: List[str] = []
	for line in lines:
		if isinstance(line, bytes):
			line = line.decode('utf-8')
		if line == '':
			if data:
				yield event, '\n'.join(data)
			event, data = 'message', []
			continue
		if line.startswith(':'):
			continue  # comment / heartbeat
		name, _, value = line.partition(':')
		if value.startswith(' '):
			value = value[1:]
		if name == 'event':
			event = value
		elif name == 'data':
			data.append(value)
	if data:
		yield event, '\n'.join(data)


class RemoteCatalogBackend:
	"""
	Catalog snapshot stored in a single node of a realtime database (Firebase RTDB REST shape):
	GET/PUT {database_url}/{node}.json, change stream via Accept: text/event-stream.
	"""

	def __init__(
		self,
		database_url: str,  # e.g. https://project-default-rtdb.firebaseio.com
		node: str = 'movies',  # collection node holding the catalog array
		timeout: float = 5.0,  # seconds for connect/read on plain requests
		http: Optional[requests.Session] = None,  # injectable session (tests pass a fake)
		reconnect_delay: float = 5.0,  # pause before reopening a dropped change stream
	):
		if not database_url:
			raise ValueError("database_url is required for the remote backend")
		self.url = f"{database_url.rstrip('/')}/{node.strip('/')}.json"
		self.timeout = timeout
		self.http = http or requests.Session()
		self.reconnect_delay = reconnect_delay
		self.loader = DataLoader()
		logger.info(f"[Remote] Using catalog node {self.url}")

	def load_snapshot(self) -> Optional[List[MovieRecord]]:
		"""Point-in-time read. Raises BackendUnavailableError when the node cannot be read."""
		try:
			resp = self.http.get(self.url, timeout=self.timeout)
			resp.raise_for_status()
			payload = resp.json()
		except (requests.RequestException, ValueError) as e:
			raise BackendUnavailableError(f"remote catalog read failed: {e}") from e
		if payload is None:
			return None  # node exists but holds nothing yet
		snapshot = self.loader.parse_snapshot(payload)
		if snapshot is None:
			# Malformed remote data counts as unavailable, never as empty
			raise BackendUnavailableError(f"remote catalog holds malformed data ({type(payload).__name__})")
		return snapshot

	def save_snapshot(self, movies: List[MovieRecord]) -> bool:
		try:
			resp = self.http.put(self.url, json=self.loader.movies_to_list(movies), timeout=self.timeout)
			resp.raise_for_status()
		except requests.RequestException as e:
			logger.warning(f"[Remote] Catalog write failed: {e}")
			return False
		logger.debug(f"[Remote] Wrote snapshot of {len(movies)} movies")
		return True

	def subscribe(self, on_change: SnapshotCallback) -> 'RemoteSubscription':
		subscription = RemoteSubscription(self, on_change)
		subscription.start()
		return subscription


class RemoteSubscription(threading.Thread):
	"""Background listener delivering every remote snapshot change until closed."""

	def __init__(self, backend: RemoteCatalogBackend, on_change: SnapshotCallback):
		super().__init__(name='syndl-remote-listener', daemon=True)
		self.backend = backend
		self.on_change = on_change
		self._stopped = threading.Event()
		self._response = None

	def close(self) -> None:
		self._stopped.set()
		response = self._response
		if response is not None:
			response.close()  # unblocks iter_lines

	def run(self) -> None:
		while not self._stopped.is_set():
			try:
				self._listen_once()
			except (requests.RequestException, ValueError) as e:
				if self._stopped.is_set():
					break
				logger.warning(f"[Remote] Change stream dropped: {e}")
			self._stopped.wait(self.backend.reconnect_delay)
		logger.debug("[Remote] Change stream closed")

	def _listen_once(self) -> None:
		backend = self.backend
		self._response = backend.http.get(
			backend.url,
			headers={'Accept': 'text/event-stream'},
			stream=True,
			timeout=(backend.timeout, None),
		)
		try:
			self._response.raise_for_status()
			for event, data in iter_sse_events(self._response.iter_lines(decode_unicode=True)):
				if self._stopped.is_set():
					return
				try:
					self.handle_event(event, data)
				except (TypeError, AttributeError, ValueError) as e:
					logger.warning(f"[Remote] Skipping unreadable '{event}' event: {e}")
		finally:
			self._response.close()
			self._response = None

	def handle_event(self, event: str, data: str) -> None:
		"""Translate one stream event into a full-snapshot notification."""
		if event == 'keep-alive':
			return
		if event in ('cancel', 'auth_revoked'):
			logger.warning(f"[Remote] Change stream ended by server: {event}")
			self._stopped.set()
			return
		if event not in ('put', 'patch'):
			return

		payload = json.loads(data)
		if not isinstance(payload, dict):
			logger.warning(f"[Remote] Ignoring '{event}' event without a path/data object")
			return
		if event == 'put' and payload.get('path') == '/':
			snapshot = self.backend.loader.parse_snapshot(payload.get('data'))
		else:
			# Partial change below the node; re-read the whole snapshot
			try:
				snapshot = self.backend.load_snapshot()
			except BackendUnavailableError as e:
				logger.warning(f"[Remote] Could not refresh after partial change: {e}")
				return
		if snapshot is None:
			snapshot = []
		logger.info(f"[Remote] Received catalog change ({len(snapshot)} movies)")
		self.on_change(snapshot)
