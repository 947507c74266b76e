"""
Admin authentication.
Plaintext credential check against the stored password; the logged-in flag lives only in memory,
one entry per session id, and is gone after logout or a restart.
"""

import threading
import uuid
from typing import Optional, Set

from loguru import logger

from .models import CredentialRecord
from .persistence import PASSWORD_KEY, KeyValueStore


MIN_PASSWORD_LENGTH = 6


class PasswordChangeError(ValueError):
	"""Rejected password change; the message is meant for the admin."""


class AdminAuth:
	def __init__(self, store: KeyValueStore):
		self.store = store
		self.credentials = CredentialRecord()
		saved = store.get(PASSWORD_KEY)
		if saved:
			self.credentials.password = saved
		self._sessions: Set[str] = set()
		self._lock = threading.Lock()

	def login(self, username: str, password: str, session_id: Optional[str] = None) -> Optional[str]:
		"""Return the session id on success, None on bad credentials."""
		if username != self.credentials.username or password != self.credentials.password:
			logger.info(f"[AdminAuth] Rejected login for '{username}'")
			return None
		session_id = session_id or uuid.uuid4().hex
		with self._lock:
			self._sessions.add(session_id)
		logger.info("[AdminAuth] Admin logged in")
		return session_id

	def logout(self, session_id: str) -> None:
		with self._lock:
			self._sessions.discard(session_id)

	def is_logged_in(self, session_id: Optional[str]) -> bool:
		if not session_id:
			return False
		with self._lock:
			return session_id in self._sessions

	def change_password(self, new_password: str, confirm_password: str) -> None:
		if new_password != confirm_password:
			raise PasswordChangeError('Passwords do not match!')
		if len(new_password) < MIN_PASSWORD_LENGTH:
			raise PasswordChangeError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters!')
		self.credentials.password = new_password
		self.store.set(PASSWORD_KEY, new_password)
		logger.info("[AdminAuth] Admin password changed")
