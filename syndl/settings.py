"""
Runtime settings read from environment variables (and a .env file when present).
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _get_env_str(key: str, default: str) -> str:
	raw = os.getenv(key)
	return default if raw is None else raw.strip()


def _get_env_int(key: str, default: int) -> int:
	raw = os.getenv(key)
	if raw is None or raw == '':
		return default
	try:
		return int(raw)
	except ValueError as exc:
		raise ValueError(f"Environment variable {key} needs an integer, got {raw!r}") from exc


def _get_env_float(key: str, default: float) -> float:
	raw = os.getenv(key)
	if raw is None or raw == '':
		return default
	try:
		return float(raw)
	except ValueError as exc:
		raise ValueError(f"Environment variable {key} needs a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
	data_dir: Path = Path('.syndl')  # local durable store lives here
	remote_url: str = ''  # realtime database URL; empty runs local-only
	remote_timeout: float = 5.0
	preview_seconds: float = 60.0
	poll_interval: float = 1.0
	poll_max_checks: int = 60
	grant_hours: float = 24.0
	gate_idle_minutes: float = 30.0  # server-side player gates untouched this long are closed

	@property
	def store_path(self) -> Path:
		return self.data_dir / 'storage.json'


def load_settings(env_file: Optional[str] = None) -> Settings:
	load_dotenv(env_file)
	return Settings(
		data_dir=Path(_get_env_str('SYNDL_DATA_DIR', '.syndl')),
		remote_url=_get_env_str('SYNDL_REMOTE_URL', ''),
		remote_timeout=_get_env_float('SYNDL_REMOTE_TIMEOUT', 5.0),
		preview_seconds=_get_env_float('SYNDL_PREVIEW_SECONDS', 60.0),
		poll_interval=_get_env_float('SYNDL_POLL_INTERVAL', 1.0),
		poll_max_checks=_get_env_int('SYNDL_POLL_MAX_CHECKS', 60),
		grant_hours=_get_env_float('SYNDL_GRANT_HOURS', 24.0),
		gate_idle_minutes=_get_env_float('SYNDL_GATE_IDLE_MINUTES', 30.0),
	)
