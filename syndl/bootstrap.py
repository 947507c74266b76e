"""
Composition root: builds the store, auth and grant instances for one application session.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from loguru import logger

from .admin_auth import AdminAuth
from .catalog_store import CatalogStore
from .persistence import KeyValueStore, LocalCatalogBackend, PersistenceBackend, RemoteCatalogBackend
from .settings import Settings
from .unlock_grants import UnlockGrantStore


@dataclass
class Services:
	settings: Settings
	kv: KeyValueStore
	store: CatalogStore
	auth: AdminAuth
	grants: UnlockGrantStore

	def close(self) -> None:
		self.store.close()


def build_services(settings: Settings, remote: Optional[PersistenceBackend] = None) -> Services:
	"""
	Wire everything from settings. `remote` overrides the configured remote backend;
	with neither, the store runs local-only.
	"""
	kv = KeyValueStore(str(settings.store_path))
	if remote is None and settings.remote_url:
		remote = RemoteCatalogBackend(settings.remote_url, timeout=settings.remote_timeout)
	store = CatalogStore(local=LocalCatalogBackend(kv), remote=remote)
	services = Services(
		settings=settings,
		kv=kv,
		store=store,
		auth=AdminAuth(kv),
		grants=UnlockGrantStore(kv, validity=timedelta(hours=settings.grant_hours)),
	)
	logger.info(f"[Bootstrap] Services ready | data_dir={settings.data_dir} | remote={'on' if remote else 'off'}")
	return services
