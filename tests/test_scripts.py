"""
Tests for the maintenance scripts.
Run: python tests/test_scripts.py
"""

import json
import os
import tempfile
from pathlib import Path

from fakes import ROOT  # noqa: F401

from scripts import export_catalog, seed_remote


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def with_env(**values):
	"""Set environment variables, returning the previous values for restore_env()."""
	previous = {key: os.environ.get(key) for key in values}
	os.environ.update(values)
	return previous


def restore_env(previous):
	for key, value in previous.items():
		if value is None:
			os.environ.pop(key, None)
		else:
			os.environ[key] = value


def test_export_writes_dated_file():
	data_dir = tempfile.mkdtemp(prefix='syndl-data-')
	out_dir = Path(tempfile.mkdtemp(prefix='syndl-out-'))
	previous = with_env(SYNDL_DATA_DIR=data_dir, SYNDL_REMOTE_URL='')
	try:
		target = export_catalog.main([str(out_dir)])
	finally:
		restore_env(previous)
	assert_equal(target.parent, out_dir, "written to the output directory")
	assert_equal(target.name.startswith('syndl_movies_'), True, "dated name")
	movies = json.loads(target.read_text(encoding='utf-8'))
	assert_equal([m['id'] for m in movies], ['avatar-fire-and-ash', 'captain-america-brave-new-world'], "default catalog exported")


def test_seed_without_remote_fails():
	previous = with_env(SYNDL_REMOTE_URL='')
	try:
		assert_equal(seed_remote.main(), 1, "nothing to seed")
	finally:
		restore_env(previous)


def main():
	print("Running script tests...")
	test_export_writes_dated_file()
	test_seed_without_remote_fails()
	print("All script tests passed!")


if __name__ == '__main__':
	main()
