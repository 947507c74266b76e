"""
Unit tests for DataLoader: slug ids, field parsing defaults, snapshot (de)serialization.
Run: python tests/test_data_loader.py
"""

import json

from fakes import ROOT  # noqa: F401  (puts the project root on sys.path)

from syndl.data_loader import DataLoader, slugify
from syndl.default_catalog import DEFAULT_MOVIES, default_movies
from syndl.models import CastMember


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def assert_true(cond, msg):
	if not cond:
		raise AssertionError(msg)


def test_slugify():
	assert_equal(slugify("Test: Movie!"), "test-movie", "punctuation collapses")
	assert_equal(slugify("Test: Movie!"), slugify("Test: Movie!"), "same title, same id")
	assert_equal(slugify("  --Avatar: Fire & Ash--  "), "avatar-fire-ash", "no leading/trailing separator")
	# Titles that normalize identically collide (documented behavior)
	assert_equal(slugify("A: B"), slugify("a-b"), "case/punctuation-only differences collide")
	assert_equal(slugify("A: B"), "a-b", "collision id")


def test_parse_movie_defaults():
	loader = DataLoader()
	movie = loader.parse_movie({'title': 'Dune', 'rating': 'not a number', 'genre': 'Sci-Fi, Drama ,'})
	assert_equal(movie.id, 'dune', "id derived from title when missing")
	assert_equal(movie.rating, 8.0, "unparsable rating falls back to 8.0")
	assert_equal(movie.genre, ('Sci-Fi', 'Drama'), "comma separated genres")
	assert_equal(movie.cast, (), "empty cast")

	movie = loader.parse_movie({'title': 'X', 'rating': 0, 'durationSeconds': '-5', 'isNew': 'true'})
	assert_equal(movie.rating, 8.0, "zero rating (empty form field) falls back to 8.0")
	assert_equal(movie.duration_seconds, 0, "duration seconds never negative")
	assert_true(movie.is_new, "string booleans")


def test_parse_cast_drops_nameless_rows():
	movie = DataLoader().parse_movie({
		'title': 'X',
		'cast': [{'name': 'Zoe Saldana', 'role': 'Neytiri'}, {'name': '  ', 'role': 'nobody'}, {'name': 'Solo'}],
	})
	assert_equal(movie.cast, (CastMember('Zoe Saldana', 'Neytiri'), CastMember('Solo', '')), "cast rows")


def test_snapshot_round_shape():
	loader = DataLoader()
	movies = default_movies()
	data = loader.movies_to_list(movies)
	assert_equal(data[0]['durationSeconds'], 11820, "camelCase keys on output")
	assert_equal(data[0]['cast'][0], {'name': 'Sam Worthington', 'role': 'Jake Sully'}, "cast objects")
	assert_equal(data, DEFAULT_MOVIES, "default catalog serializes to its source shape")


def test_parse_snapshot_malformed_is_absent():
	loader = DataLoader()
	assert_equal(loader.parse_snapshot(None), None, "missing")
	assert_equal(loader.parse_snapshot('{not json'), None, "malformed JSON")
	assert_equal(loader.parse_snapshot('"a string"'), None, "wrong type")
	movies = loader.parse_snapshot(json.dumps([{'id': 'a', 'title': 'A'}, 42, {'id': 'b', 'title': 'B'}]))
	assert_equal([m.id for m in movies], ['a', 'b'], "non-object entries skipped")
	movies = loader.parse_snapshot({'1': {'id': 'b', 'title': 'B'}, '0': {'id': 'a', 'title': 'A'}})
	assert_equal([m.id for m in movies], ['a', 'b'], "index-keyed objects read in order")
	movies = loader.parse_snapshot({'-Nb': {'id': 'c', 'title': 'C'}, '10': {'id': 'b', 'title': 'B'}, '2': {'id': 'a', 'title': 'A'}})
	assert_equal([m.id for m in movies], ['a', 'b', 'c'], "numeric keys by index, pushed keys last")


def test_parse_patch_is_partial():
	patch = DataLoader().parse_patch({'rating': 9.0, 'id': 'hijack', 'addedDate': '1999-01-01'})
	assert_equal(patch.changes(), {'rating': 9.0}, "only provided fields, never id/addedDate")


def test_get_all_genres():
	genres = DataLoader().get_all_genres(default_movies())
	assert_equal(genres, ['Action', 'Adventure', 'Sci-Fi', 'Superhero', 'Thriller'], "dedup + sorted")


def main():
	print("Running DataLoader tests...")
	test_slugify()
	test_parse_movie_defaults()
	test_parse_cast_drops_nameless_rows()
	test_snapshot_round_shape()
	test_parse_snapshot_malformed_is_absent()
	test_parse_patch_is_partial()
	test_get_all_genres()
	print("All DataLoader tests passed!")


if __name__ == '__main__':
	main()
