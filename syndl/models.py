"""
Data models for the SYNDL catalog.
Defines the records shared by the catalog store, the unlock grants and the admin console.
"""

# Import dataclass helpers to define simple "record-like" classes without boilerplate
from dataclasses import dataclass, field, fields  # auto-generates __init__, __repr__, etc.
# Import datetime for grant timestamps
from datetime import datetime  # timezone-aware issue times
# Import typing helpers for precise and self-documenting types
from typing import Any, Dict, Optional, Tuple  # tuples keep records immutable


DEFAULT_RATING = 8.0  # rating used when the admin form value cannot be parsed
DEFAULT_USERNAME = 'admin'  # fixed admin username
DEFAULT_PASSWORD = 'syndl2025'  # seeded admin password


@dataclass(frozen=True)
class CastMember:
	"""One credited person: the actor's name and the role they play."""
	name: str  # actor name as displayed
	role: str = ''  # character name, may be empty


@dataclass(frozen=True)
class MovieRecord:
	"""
	Represents a single catalog entry and everything the storefront and player need.
	Records are immutable; the catalog store replaces them when a patch is applied.
	"""
	id: str  # slug derived from the title at creation time, never changed afterwards
	title: str  # display title
	year: int = 0  # release year
	duration: str = ''  # human readable length, e.g. "1h 52min"
	duration_seconds: int = 0  # full length in seconds (>= 0)
	rating: float = DEFAULT_RATING  # 0..10 score shown on cards
	quality: str = '1080p'  # resolution tier label
	genre: Tuple[str, ...] = ()  # ordered tags; cards show the first two
	synopsis: str = ''  # short description
	thumbnail: str = ''  # poster image locator
	preview_url: str = ''  # locator of the freely playable preview
	full_movie_url: str = ''  # locator of the gated full content
	locker_url: str = ''  # external verification ("locker") page
	cast: Tuple[CastMember, ...] = ()  # ordered cast list
	featured: bool = False  # shown in the hero slot
	is_new: bool = False  # shown in "new releases"
	added_date: str = ''  # ISO date set when the record was added


@dataclass(frozen=True)
class MoviePatch:
	"""
	Partial update for a MovieRecord.
	Every field is optional; None means "not provided" and keeps the current value.
	`id` and `added_date` are deliberately absent so a patch can never change them.
	"""
	title: Optional[str] = None
	year: Optional[int] = None
	duration: Optional[str] = None
	duration_seconds: Optional[int] = None
	rating: Optional[float] = None
	quality: Optional[str] = None
	genre: Optional[Tuple[str, ...]] = None
	synopsis: Optional[str] = None
	thumbnail: Optional[str] = None
	preview_url: Optional[str] = None
	full_movie_url: Optional[str] = None
	locker_url: Optional[str] = None
	cast: Optional[Tuple[CastMember, ...]] = None
	featured: Optional[bool] = None
	is_new: Optional[bool] = None

	def changes(self) -> Dict[str, Any]:
		"""Return only the fields that were provided, keyed by MovieRecord attribute name."""
		return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class UnlockGrant:
	"""Receipt allowing a viewer to skip the preview gate for one movie."""
	movie_id: str  # catalog id the grant applies to (not checked against the catalog)
	issued_at: datetime  # aware UTC timestamp of the successful verification


@dataclass
class CredentialRecord:
	"""Admin credentials; only the password can change."""
	username: str = DEFAULT_USERNAME  # fixed login name
	password: str = field(default=DEFAULT_PASSWORD, repr=False)  # single active password
