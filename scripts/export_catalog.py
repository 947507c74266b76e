"""
Export the current catalog to a dated JSON file.

This script:
1) Loads settings (SYNDL_DATA_DIR, SYNDL_REMOTE_URL, ...)
2) Initializes the catalog store (remote, then local, then defaults)
3) Writes syndl_movies_<YYYY-MM-DD>.json into the output directory

Usage:
    python -m scripts.export_catalog [output_dir]
"""

import sys  # optional output directory argument
from pathlib import Path  # filesystem-safe paths

from loguru import logger  # console logging

from syndl.bootstrap import build_services  # catalog wiring
from syndl.settings import load_settings  # env-based configuration


def main(argv=None):
	argv = sys.argv[1:] if argv is None else argv
	out_dir = Path(argv[0]) if argv else Path('.')
	out_dir.mkdir(parents=True, exist_ok=True)

	logger.info("[1/2] Loading catalog...")
	services = build_services(load_settings())
	try:
		services.store.initialize()
		logger.info(f"[OK] {len(services.store.get_all())} movies (source={services.store.source})")

		logger.info("[2/2] Writing export...")
		filename, payload = services.store.export()
		target = out_dir / filename
		target.write_text(payload, encoding='utf-8')
		logger.info(f"[OK] Exported to {target}")
		return target
	finally:
		services.close()


if __name__ == '__main__':
	main()
