"""
Streamlit storefront for the SYNDL catalog.
Calls the local FastAPI server at http://localhost:8000, or runs the catalog store and the
player gate in-process (local JSON store, remote from SYNDL_REMOTE_URL) when the API is unreachable.

Run API (optional):   uvicorn api:app --reload
Run UI:                streamlit run streamlit_app.py
"""

# Standard libs for decorative counters and ids
import random  # live viewer / waiting counts are decorative
import uuid  # player session id
from typing import Any, Dict, List, Optional  # type hints

# HTTP client to call the API when running in API mode
import requests  # make web requests to the FastAPI server
# Streamlit framework to build a simple interactive UI
import streamlit as st  # UI primitives

# Local imports for fallback/local mode (when the API isn't used)
from syndl.bootstrap import Services, build_services  # catalog + grants wiring
from syndl.data_loader import DataLoader  # record -> JSON shape
from syndl.gate_registry import GateRegistry  # per-viewer gates
from syndl.playback_gate import GateTransitionError, apply_action  # named player actions
from syndl.scheduler import ThreadingScheduler  # verification poll timers
from syndl.settings import load_settings  # env-based configuration

# Default URL where the FastAPI server is expected to run locally
DEFAULT_API_URL = "http://localhost:8000"
MIN_QUERY_LENGTH = 2  # shorter queries are not searched

st.set_page_config(page_title="SYNDL", layout="wide")
st.title("🎬 SYNDL – Movies")


# Cache the local services so the catalog loads once per process
@st.cache_resource(show_spinner=True)
def init_local() -> Optional[Dict[str, Any]]:
	"""Build in-process services and a gate registry; None if initialization fails."""
	try:
		services: Services = build_services(load_settings())
		services.store.initialize()
		gates = GateRegistry(services.grants, ThreadingScheduler(), services.settings)
		return {'services': services, 'gates': gates}
	except Exception as e:
		st.error(f"Failed to initialize local catalog: {e}")
		return None


def local_player_view(local: Dict[str, Any], session_id: str, movie_id: str, action: Optional[str] = None,
					  seconds: Optional[float] = None, unlocked: bool = False) -> Optional[Dict[str, Any]]:
	"""Same shape as the API's PlayerView, computed in-process."""
	services: Services = local['services']
	gates: GateRegistry = local['gates']
	movie = services.store.get_by_id(movie_id)
	if movie is None:
		return None
	gate = gates.open(session_id, movie, unlocked=unlocked)
	if action is not None:
		try:
			apply_action(gate, action, seconds)
		except GateTransitionError as e:
			# Stale button from a previous rerun; show the current state instead
			st.warning(f"That action is no longer available: {e}")
	loader = DataLoader()
	view = gate.view()
	view.update({
		'session_id': session_id,
		'movie': loader.movie_to_dict(movie),
		'related': [loader.movie_to_dict(m) for m in services.store.get_related(movie_id)],
	})
	return view


# Sidebar contains configuration controls
with st.sidebar:
	st.header("Settings")
	api_url = st.text_input("API URL", DEFAULT_API_URL)
	use_local = st.toggle("Use local catalog", value=False, help="If enabled or the API is unreachable, the app runs fully locally.")
	st.metric("Watching now", f"{12000 + random.randint(0, 1499):,}")

api_available = False
if not use_local:
	try:
		h = requests.get(f"{api_url}/health", timeout=3)
		api_available = h.ok
	except requests.RequestException:
		api_available = False
		st.sidebar.info("API not reachable; will use local catalog.")

local: Optional[Dict[str, Any]] = None
if use_local or not api_available:
	with st.spinner("Loading local catalog..."):
		local = init_local()

if 'player_session' not in st.session_state:
	st.session_state['player_session'] = uuid.uuid4().hex


def fetch(path: str, params: Optional[Dict[str, Any]] = None) -> Any:
	resp = requests.get(f"{api_url}{path}", params=params, timeout=10)
	resp.raise_for_status()
	return resp.json()


def load_movies(genre: str) -> List[Dict[str, Any]]:
	if local is not None:
		store = local['services'].store
		movies = store.get_by_genre(genre) if genre != 'all' else store.get_all()
		return DataLoader().movies_to_list(movies)
	return fetch("/movies", {"genre": genre} if genre != 'all' else None)


def search_movies(query: str) -> List[Dict[str, Any]]:
	if local is not None:
		return DataLoader().movies_to_list(local['services'].store.search(query))
	return fetch("/search", {"q": query})['results']


def load_genres() -> List[str]:
	if local is not None:
		return local['services'].store.get_all_genres()
	return fetch("/genres")


def player(movie_id: str, action: Optional[str] = None, seconds: Optional[float] = None) -> Optional[Dict[str, Any]]:
	session_id = st.session_state['player_session']
	if local is not None:
		return local_player_view(local, session_id, movie_id, action, seconds)
	if action is None:
		resp = requests.get(f"{api_url}/player/{movie_id}", params={"session": session_id}, timeout=10, allow_redirects=False)
		if resp.status_code in (302, 307):
			return None
	else:
		body = {"seconds": seconds} if seconds is not None else None
		resp = requests.post(f"{api_url}/player/{movie_id}/{action}", params={"session": session_id}, json=body, timeout=10)
		if resp.status_code == 409:
			st.warning(f"That action is no longer available: {resp.json().get('detail')}")
			return player(movie_id)
	resp.raise_for_status()
	return resp.json()


def render_card(movie: Dict[str, Any]) -> None:
	if movie.get('thumbnail', '').startswith('http'):
		st.image(movie['thumbnail'], width='stretch')
	st.subheader(movie['title'])
	st.caption(f"⭐ {movie['rating']} • {movie['year']} • {movie['quality']}")
	st.write(" ".join(f"`{g}`" for g in movie['genre'][:2]))
	if st.button("Watch", key=f"watch-{movie['id']}"):
		st.session_state['selected_movie'] = movie['id']


storefront, player_tab = st.tabs(["Browse", "Player"])

with storefront:
	try:
		query = st.text_input("Search movies", placeholder="e.g., avatar or sci-fi")
		genre = st.selectbox("Genre", ['all'] + load_genres())
		if len(query.strip()) >= MIN_QUERY_LENGTH:
			movies = search_movies(query.strip())
			st.caption(f"{len(movies)} results")
		else:
			movies = load_movies(genre)
			st.caption(f"{len(movies)} movies")
		columns = st.columns(4)
		for i, movie in enumerate(movies):
			with columns[i % 4]:
				render_card(movie)
	except requests.RequestException as e:
		st.error(f"API request failed: {e}")

with player_tab:
	movie_id = st.session_state.get('selected_movie')
	if not movie_id:
		st.info("Pick a movie in the Browse tab.")
	else:
		try:
			view = player(movie_id)
			if view is None:
				st.warning("That movie is no longer in the catalog.")
				st.session_state.pop('selected_movie', None)
			else:
				movie = view['movie']
				st.header(f"{movie['title']} ({movie['year']})")
				if view['full_content']:
					st.success("Unlocked – enjoy the full movie.")
					st.markdown(f"[Open full movie]({view['media_url']})")
				else:
					st.video(view['media_url'])
					st.progress(view['progress_percent'] / 100.0, text=f"{view['current_time']} / {view['duration']}")
					state = view['state']
					c1, c2, c3 = st.columns(3)
					if state == 'idle' and c1.button("▶ Play preview"):
						view = player(movie_id, 'start')
					elif state == 'previewing':
						seek_to = c1.slider("Seek", 0, 60, int(view['position']))
						if c2.button("Seek"):
							view = player(movie_id, 'seek', float(seek_to))
						if c3.button("Preview ended"):
							view = player(movie_id, 'ended')
					elif state == 'locked':
						st.warning(f"Preview over. {800 + random.randint(0, 199)} people are waiting to unlock.")
						if c1.button("🔓 Unlock full movie"):
							view = player(movie_id, 'unlock')
					elif state == 'awaiting_verification':
						st.info(f"Complete the offer in the opened page… check {view['checks']}/{view['max_checks']}")
						if view.get('locker_url'):
							st.markdown(f"[Open verification page]({view['locker_url']})")
					elif state == 'retry_offered':
						st.error("We could not confirm the unlock.")
						if c1.button("Try again"):
							view = player(movie_id, 'retry')
						if c2.button("Cancel"):
							view = player(movie_id, 'cancel')
				st.write(movie['synopsis'])
				st.write(", ".join(f"{c['name']} as {c['role']}" for c in movie['cast']))
				if view.get('related'):
					st.subheader("More movies")
					st.write(" • ".join(m['title'] for m in view['related']))
		except requests.RequestException as e:
			st.error(f"API request failed: {e}")

st.sidebar.markdown("---")
if local is not None:
	st.sidebar.caption("Mode: Local catalog")
else:
	st.sidebar.caption("Mode: API client (ensure uvicorn api:app --reload is running)")
