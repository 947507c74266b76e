"""
Compiled-in default catalog.
Used to seed an empty remote store and as the last fallback when no snapshot exists anywhere.
"""

from typing import List

from .data_loader import DataLoader
from .models import MovieRecord


DEFAULT_MOVIES = [
	{
		'id': 'avatar-fire-and-ash',
		'title': 'Avatar: Fire and Ash',
		'year': 2025,
		'duration': '3h 17min',
		'durationSeconds': 11820,
		'rating': 8.9,
		'genre': ['Action', 'Sci-Fi', 'Adventure'],
		'synopsis': (
			'Jake Sully and Neytiri have formed a family and are doing everything to stay together. '
			'However, they must leave their home and explore the regions of Pandora when an ancient '
			'threat resurfaces.'
		),
		'thumbnail': 'assets/thumbnails/avatar.jpg',
		'previewUrl': 'https://dl.dropboxusercontent.com/scl/fi/8tmqk55d2fio12zd37gyi/start.mp4?rlkey=c0p9cxfbha3l2qkefqv4lxl6p',
		'fullMovieUrl': 'https://drive.google.com/file/d/1OmdI_pBnO-SB-8cyxJXGEsONLPYPTXtq/preview',
		'lockerUrl': 'https://appverification.site/cl/i/krr4k8',
		'quality': '1080p',
		'featured': True,
		'isNew': True,
		'cast': [
			{'name': 'Sam Worthington', 'role': 'Jake Sully'},
			{'name': 'Zoe Saldana', 'role': 'Neytiri'},
			{'name': 'Sigourney Weaver', 'role': 'Kiri'},
			{'name': 'Stephen Lang', 'role': 'Quaritch'},
		],
		'addedDate': '2025-01-15',
	},
	{
		'id': 'captain-america-brave-new-world',
		'title': 'Captain America: Brave New World',
		'year': 2025,
		'duration': '1h 52min',
		'durationSeconds': 6742,
		'rating': 8.4,
		'genre': ['Action', 'Superhero', 'Thriller'],
		'synopsis': (
			'Sam Wilson, bearing the mantle of Captain America, finds himself in the middle of an '
			'international incident. He must discover the reason behind a nefarious global plot '
			'before the true mastermind has the entire world seeing red.'
		),
		'thumbnail': 'assets/thumbnails/captain-america.jpg',
		'previewUrl': 'https://dl.dropboxusercontent.com/scl/fi/petdvzpto51w5a6ze50xl/start-captain-america.mp4?rlkey=092xizc8e9uhmcowt6q8yr7x9',
		'fullMovieUrl': 'https://drive.google.com/file/d/1Bf-EtSTH3-gzau5hbVa3pmBK8JXtTuLq/preview',
		'lockerUrl': 'https://appverification.site/cl/i/NEW_LOCKER_ID',
		'quality': '1080p',
		'featured': False,
		'isNew': True,
		'cast': [
			{'name': 'Anthony Mackie', 'role': 'Sam Wilson'},
			{'name': 'Harrison Ford', 'role': 'Thaddeus Ross'},
			{'name': 'Danny Ramirez', 'role': 'Joaquín Torres'},
			{'name': 'Shira Haas', 'role': 'Sabra'},
		],
		'addedDate': '2025-02-01',
	},
]


def default_movies() -> List[MovieRecord]:
	"""Fresh list of the default records (callers may mutate the list freely)."""
	return [DataLoader().parse_movie(m) for m in DEFAULT_MOVIES]
