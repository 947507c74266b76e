"""
Unlock grant store.
Keeps one durable receipt per unlocked movie in the local key-value store; a receipt
bypasses the preview gate while it is younger than the validity window.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from loguru import logger

from .models import UnlockGrant
from .persistence import GRANT_KEY_PREFIX, KeyValueStore


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


class UnlockGrantStore:
	"""
	Expiry is evaluated on every read. Expired receipts stay stored and are simply
	ignored; nothing ever deletes them.
	"""

	def __init__(
		self,
		store: KeyValueStore,
		validity: timedelta = timedelta(hours=24),
		now: Callable[[], datetime] = utc_now,
	):
		self.store = store
		self.validity = validity
		self.now = now

	def _key(self, movie_id: str) -> str:
		return f"{GRANT_KEY_PREFIX}{movie_id}"

	def get_grant(self, movie_id: str) -> Optional[UnlockGrant]:
		"""The stored receipt (valid or not), or None when absent or unreadable."""
		raw = self.store.get(self._key(movie_id))
		if raw is None:
			return None
		try:
			data = json.loads(raw)
			issued_at = datetime.fromisoformat(str(data['timestamp']).replace('Z', '+00:00'))
		except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
			logger.warning(f"[Grants] Ignoring unreadable grant for '{movie_id}': {e}")
			return None
		if issued_at.tzinfo is None:
			issued_at = issued_at.replace(tzinfo=timezone.utc)
		return UnlockGrant(movie_id=str(data.get('movieId') or movie_id), issued_at=issued_at)

	def has_valid_grant(self, movie_id: str) -> bool:
		grant = self.get_grant(movie_id)
		if grant is None:
			return False
		return self.now() - grant.issued_at < self.validity

	def issue_grant(self, movie_id: str) -> UnlockGrant:
		"""Record a fresh grant, replacing any earlier one for the same movie."""
		grant = UnlockGrant(movie_id=movie_id, issued_at=self.now())
		self.store.set(self._key(movie_id), json.dumps({
			'timestamp': grant.issued_at.isoformat(),
			'movieId': movie_id,
		}))
		logger.info(f"[Grants] Issued unlock grant for '{movie_id}'")
		return grant
