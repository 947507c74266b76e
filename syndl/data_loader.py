"""
Data loading and serialization module.
Converts raw catalog dictionaries (stored JSON, admin form input) into MovieRecord objects and back.
"""

# Standard libs for JSON parsing, regex, typing, and paths
import json  # read/write JSON documents
import re  # slug generation
from typing import Any, Dict, Iterable, List, Optional  # type hints
from pathlib import Path  # filesystem-safe paths

# Import our data classes used across the project
from .models import CastMember, MoviePatch, MovieRecord, DEFAULT_RATING  # structured records

# Console logging
from loguru import logger  # console logger


# Matches any run of characters that cannot appear in a slug
_NON_SLUG = re.compile(r'[^a-z0-9]+')


def slugify(title: str) -> str:
	"""
	Derive a catalog id from a title: lowercase, collapse non-alphanumeric runs to '-',
	strip leading/trailing '-'. Titles that normalize identically produce the same id.
	"""
	return _NON_SLUG.sub('-', (title or '').lower()).strip('-')


class DataLoader:
	"""
	Handles parsing and serializing movie records.
	The stored JSON uses the storefront's camelCase keys; records use snake_case attributes.
	"""

	# JSON key → MovieRecord attribute, for keys whose names differ
	FIELD_ALIASES = {
		'durationSeconds': 'duration_seconds',
		'previewUrl': 'preview_url',
		'fullMovieUrl': 'full_movie_url',
		'lockerUrl': 'locker_url',
		'isNew': 'is_new',
		'addedDate': 'added_date',
	}
	# Reverse mapping used when writing JSON
	JSON_KEYS = {v: k for k, v in FIELD_ALIASES.items()}

	def load_movies_from_json(self, filepath: str) -> List[MovieRecord]:
		"""
		Load a catalog snapshot from a JSON file holding an array of movie objects.
		Raises FileNotFoundError when the file is missing.
		"""
		filepath = Path(filepath)  # normalize path
		if not filepath.exists():
			raise FileNotFoundError(f"Catalog file not found: {filepath}")

		logger.info(f"[DataLoader] Loading catalog from {filepath}...")
		with open(filepath, 'r', encoding='utf-8') as f:
			movies = self.parse_snapshot(f.read())
		if movies is None:
			raise ValueError(f"Catalog file is not a JSON array of movies: {filepath}")
		logger.info(f"[DataLoader] Successfully loaded {len(movies)} movies.")
		return movies

	def parse_snapshot(self, raw: Any) -> Optional[List[MovieRecord]]:
		"""
		Turn a stored snapshot (JSON text or already-decoded list) into records.
		Returns None for anything that is not a list so callers can treat it as "absent".
		Individual entries that fail to parse are skipped with a warning.
		"""
		if raw is None:
			return None
		if isinstance(raw, (str, bytes)):
			try:
				raw = json.loads(raw)
			except json.JSONDecodeError as e:
				logger.warning(f"[DataLoader] Ignoring malformed catalog snapshot: {e}")
				return None
		if isinstance(raw, dict):
			# Some remote stores hand back sparse arrays as index-keyed objects
			# Numeric keys first in index order, then pushed keys in key order
			raw = [raw[k] for k in sorted(raw, key=lambda k: (0, int(k), '') if str(k).isdigit() else (1, 0, str(k)))]
		if not isinstance(raw, list):
			logger.warning(f"[DataLoader] Ignoring catalog snapshot of type {type(raw).__name__}")
			return None

		movies = []
		for position, item in enumerate(raw):
			if not isinstance(item, dict):
				logger.warning(f"[DataLoader] Skipping non-object entry at position {position}")
				continue
			try:
				movies.append(self.parse_movie(item))
			except (TypeError, ValueError) as e:
				logger.warning(f"[DataLoader] Error parsing movie at position {position}: {e}")
		return movies

	def parse_movie(self, data: Dict[str, Any]) -> MovieRecord:
		"""
		Convert a raw dictionary into a MovieRecord.
		A missing id is derived from the title; numbers fall back to safe defaults.
		"""
		values = self._normalize_fields(data)
		title = str(values.get('title') or '')
		return MovieRecord(
			id=str(values.get('id') or slugify(title)),
			title=title,
			year=values.get('year', 0),
			duration=values.get('duration', ''),
			duration_seconds=values.get('duration_seconds', 0),
			rating=values.get('rating', DEFAULT_RATING),
			quality=values.get('quality', '1080p'),
			genre=values.get('genre', ()),
			synopsis=values.get('synopsis', ''),
			thumbnail=values.get('thumbnail', ''),
			preview_url=values.get('preview_url', ''),
			full_movie_url=values.get('full_movie_url', ''),
			locker_url=values.get('locker_url', ''),
			cast=values.get('cast', ()),
			featured=values.get('featured', False),
			is_new=values.get('is_new', False),
			added_date=str(values.get('added_date') or ''),
		)

	def parse_patch(self, data: Dict[str, Any]) -> MoviePatch:
		"""
		Build a MoviePatch from a raw dictionary holding only the fields to change.
		`id` and `addedDate` are ignored: they are fixed once a record exists.
		"""
		values = self._normalize_fields(data)
		values.pop('id', None)
		values.pop('added_date', None)
		return MoviePatch(**values)

	def movie_to_dict(self, movie: MovieRecord) -> Dict[str, Any]:
		"""Serialize a record to the camelCase JSON shape used in storage and exports."""
		return {
			'id': movie.id,
			'title': movie.title,
			'year': movie.year,
			'duration': movie.duration,
			'durationSeconds': movie.duration_seconds,
			'rating': movie.rating,
			'genre': list(movie.genre),
			'synopsis': movie.synopsis,
			'thumbnail': movie.thumbnail,
			'previewUrl': movie.preview_url,
			'fullMovieUrl': movie.full_movie_url,
			'lockerUrl': movie.locker_url,
			'quality': movie.quality,
			'featured': movie.featured,
			'isNew': movie.is_new,
			'cast': [{'name': c.name, 'role': c.role} for c in movie.cast],
			'addedDate': movie.added_date,
		}

	def movies_to_list(self, movies: Iterable[MovieRecord]) -> List[Dict[str, Any]]:
		"""Serialize a whole catalog snapshot."""
		return [self.movie_to_dict(m) for m in movies]

	def dump_movies(self, movies: Iterable[MovieRecord]) -> str:
		"""Pretty-printed JSON document (2-space indent) used for exports."""
		return json.dumps(self.movies_to_list(movies), indent=2, ensure_ascii=False)

	def _normalize_fields(self, data: Dict[str, Any]) -> Dict[str, Any]:
		"""
		Map JSON keys to attribute names and coerce each provided value to its field type.
		Only keys present in `data` appear in the result, so patches stay partial.
		"""
		values: Dict[str, Any] = {}
		for key, value in data.items():
			name = self.FIELD_ALIASES.get(key, key)
			if value is None:
				continue  # null never overrides anything
			if name in ('year', 'duration_seconds'):
				values[name] = max(0, self._parse_int(value))
			elif name == 'rating':
				values[name] = self._parse_rating(value)
			elif name == 'genre':
				values[name] = tuple(self._parse_comma_separated(value))
			elif name == 'cast':
				values[name] = self._parse_cast(value)
			elif name in ('featured', 'is_new'):
				values[name] = self._parse_bool(value)
			elif name in ('id', 'title', 'duration', 'quality', 'synopsis', 'thumbnail',
						  'preview_url', 'full_movie_url', 'locker_url', 'added_date'):
				values[name] = str(value).strip()
			# unknown keys are dropped
		return values

	def _parse_comma_separated(self, value) -> List[str]:
		"""
		Normalize a value that may be None, a list, or a comma-separated string
		into a list of clean strings.
		"""
		if value is None:  # missing field
			return []  # treat as empty list
		if isinstance(value, (list, tuple)):  # already a sequence
			return [str(item).strip() for item in value if item and str(item).strip()]  # clean each
		if isinstance(value, str):  # comma-separated string, as typed in the admin form
			return [item.strip() for item in value.split(',') if item.strip()]  # split/trim
		return []  # any other type becomes empty

	def _parse_cast(self, value) -> tuple:
		"""Accept a list of {name, role} objects (or CastMember); rows without a name are dropped."""
		if not isinstance(value, (list, tuple)):
			return ()
		cast = []
		for person in value:
			if isinstance(person, CastMember):
				cast.append(person)
			elif isinstance(person, dict):
				name = str(person.get('name') or '').strip()
				if name:
					cast.append(CastMember(name=name, role=str(person.get('role') or '').strip()))
		return tuple(cast)

	def _parse_rating(self, value) -> float:
		"""Parse a rating; anything unparsable (or zero, as the form sends) falls back to 8.0."""
		try:
			rating = float(value)
		except (TypeError, ValueError):
			return DEFAULT_RATING
		return rating if rating else DEFAULT_RATING

	def _parse_int(self, value) -> int:
		try:
			return int(float(value))
		except (TypeError, ValueError):
			return 0

	def _parse_bool(self, value) -> bool:
		if isinstance(value, str):
			return value.strip().lower() in {'1', 'true', 'yes', 'on'}
		return bool(value)

	def get_all_genres(self, movies: Iterable[MovieRecord]) -> List[str]:
		"""Return a sorted list of all unique genre tags in the catalog."""
		genres = set()  # unique genres
		for movie in movies:  # iterate
			genres.update(movie.genre)
		return sorted(genres)  # sorted output
