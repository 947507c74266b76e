"""
Overwrite the remote catalog node with the compiled-in default catalog.

Usage:
    SYNDL_REMOTE_URL=https://<project>-default-rtdb.firebaseio.com python -m scripts.seed_remote
"""

import sys  # exit status

from loguru import logger  # console logging

from syndl.default_catalog import default_movies  # seed records
from syndl.persistence import RemoteCatalogBackend  # realtime database node
from syndl.settings import load_settings  # env-based configuration


def main():
	settings = load_settings()
	if not settings.remote_url:
		logger.error("SYNDL_REMOTE_URL is not set; nothing to seed.")
		return 1

	movies = default_movies()
	backend = RemoteCatalogBackend(settings.remote_url, timeout=settings.remote_timeout)
	if not backend.save_snapshot(movies):
		logger.error("Remote write failed.")
		return 1
	logger.info(f"[OK] Seeded remote catalog with {len(movies)} movies.")
	return 0


if __name__ == '__main__':
	sys.exit(main())
