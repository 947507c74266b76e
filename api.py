"""
FastAPI server exposing the SYNDL catalog, admin console and player gate.
Endpoints:
- GET /health: basic health check (includes a catalog version bumped on remote pushes)
- GET /movies, /movies/featured, /movies/new, /movies/{id}, /genres, /search?q=...: storefront reads
- /admin/...: login/logout, stats, add/update/delete, password change, export, reset
- /player/{id}?session=...&unlocked=true and POST /player/{id}/<action>: preview gate

Startup builds one CatalogStore (remote first, local and defaults as fallbacks),
one AdminAuth, one UnlockGrantStore and the per-viewer gate registry; shutdown tears them down.
"""

# Import standard libraries for timing and typing
import time  # measure startup latency
import uuid  # anonymous player session ids
from typing import Any, Dict, List, Optional, Union  # precise typing for clarity

# Import FastAPI for building the web API and Pydantic for request/response models
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response  # FastAPI primitives
from fastapi.responses import RedirectResponse  # player redirect for unknown movies
from pydantic import BaseModel, Field  # schema definitions

# Import our internal modules
from syndl.admin_auth import PasswordChangeError  # rejected password changes
from syndl.bootstrap import Services, build_services  # composition root
from syndl.data_loader import DataLoader  # record <-> JSON shape
from syndl.gate_registry import GateRegistry  # per-viewer gates
from syndl.models import MovieRecord  # catalog record
from syndl.persistence import PersistenceBackend  # optional remote override
from syndl.playback_gate import PLAYER_ACTIONS, GateTransitionError, PlaybackGate, apply_action  # gate state machine
from syndl.scheduler import Scheduler, ThreadingScheduler  # poll timers
from syndl.settings import Settings, load_settings  # env-based configuration

# Import loguru for simple, structured console logging
from loguru import logger  # convenient console logger


MIN_QUERY_LENGTH = 2  # storefront ignores shorter search queries


# Pydantic model that describes one cast entry
class CastOut(BaseModel):
	name: str
	role: str = ''


# Pydantic model for a movie, in the same camelCase shape the catalog is stored in
class MovieOut(BaseModel):
	id: str  # slug id
	title: str  # display title
	year: int  # release year
	duration: str  # human readable length
	durationSeconds: int  # length in seconds
	rating: float  # 0..10
	quality: str  # resolution label
	genre: List[str]  # ordered tags
	synopsis: str  # description
	thumbnail: str  # poster locator
	previewUrl: str  # preview locator
	fullMovieUrl: str  # gated content locator
	lockerUrl: str  # verification page
	cast: List[CastOut]  # ordered cast
	featured: bool  # hero flag
	isNew: bool  # "new releases" flag
	addedDate: str  # ISO date


# Admin form payload; every field optional so the same model serves add and update
class MovieIn(BaseModel):
	title: Optional[str] = None
	year: Optional[int] = None
	duration: Optional[str] = None
	durationSeconds: Optional[int] = None
	rating: Optional[Union[float, str]] = None  # unparsable values fall back to 8.0
	quality: Optional[str] = None
	genre: Optional[Union[List[str], str]] = None  # list or "Action, Sci-Fi"
	synopsis: Optional[str] = None
	thumbnail: Optional[str] = None
	previewUrl: Optional[str] = None
	fullMovieUrl: Optional[str] = None
	lockerUrl: Optional[str] = None
	cast: Optional[List[CastOut]] = None
	featured: Optional[bool] = None
	isNew: Optional[bool] = None


class SearchResponse(BaseModel):
	query: str  # original query string
	count: int  # number of matches
	results: List[MovieOut]  # matches in catalog order


class LoginIn(BaseModel):
	username: str
	password: str


class PasswordIn(BaseModel):
	new_password: str
	confirm_password: str


class PositionIn(BaseModel):
	seconds: float = Field(..., ge=0)


class PlayerView(BaseModel):
	session_id: str  # pass back on every player call
	movie: MovieOut
	state: str  # gate state
	playing: bool
	position: float
	progress_percent: float  # against the preview threshold, max 100
	current_time: str
	duration: str
	media_url: str  # preview until unlocked, then the full movie
	full_content: bool
	checks: int  # verification checks so far
	max_checks: int
	locker_url: Optional[str] = None  # last verification page opened
	related: List[MovieOut] = []


def movie_out(movie: MovieRecord) -> MovieOut:
	return MovieOut(**DataLoader().movie_to_dict(movie))


def create_app(
	settings: Optional[Settings] = None,
	remote: Optional[PersistenceBackend] = None,
	scheduler: Optional[Scheduler] = None,
) -> FastAPI:
	"""Build the API; arguments override the environment-driven defaults (tests inject fakes)."""
	app = FastAPI(title="SYNDL Catalog API", version="1.0.0")
	state: Dict[str, Any] = {'services': None, 'gates': None, 'catalog_version': 0, 'startup_seconds': 0.0}

	@app.on_event("startup")
	async def startup_event():
		"""Build services, load the catalog and prepare the gate registry."""
		start = time.time()
		logger.info("[API] Startup: building services and loading the catalog...")
		services = build_services(settings or load_settings(), remote=remote)
		services.store.initialize(on_ready=lambda: logger.info(
			f"[API] Catalog ready with {len(services.store.get_all())} movies (source={services.store.source})"
		))
		services.store.subscribe(lambda movies: state.__setitem__('catalog_version', state['catalog_version'] + 1))
		state['services'] = services
		state['gates'] = GateRegistry(services.grants, scheduler or ThreadingScheduler(), services.settings)
		state['startup_seconds'] = time.time() - start
		logger.info(f"[API] Startup complete in {state['startup_seconds']:.2f}s.")

	@app.on_event("shutdown")
	async def shutdown_event():
		if state['gates'] is not None:
			state['gates'].close_all()
		if state['services'] is not None:
			state['services'].close()
		logger.info("[API] Shutdown complete.")

	def get_services() -> Services:
		if state['services'] is None:
			raise HTTPException(status_code=503, detail="Catalog not initialized")
		return state['services']

	def get_gates() -> GateRegistry:
		if state['gates'] is None:
			raise HTTPException(status_code=503, detail="Player not initialized")
		return state['gates']

	def require_admin(
		x_session_id: Optional[str] = Header(None),
		services: Services = Depends(get_services),
	) -> str:
		if not services.auth.is_logged_in(x_session_id):
			raise HTTPException(status_code=401, detail="Admin login required")
		return x_session_id

	# ------------------------------------------------------------------
	# Health / storefront
	# ------------------------------------------------------------------

	@app.get("/health")
	async def health():
		"""Return minimal health info for liveness/readiness probes."""
		services = state['services']
		return {
			"status": "ok",
			"catalog_ready": services is not None,
			"catalog_source": services.store.source if services else None,
			"catalog_version": state['catalog_version'],
			"startup_seconds": round(state['startup_seconds'], 2),
		}

	@app.get("/")
	async def home(services: Services = Depends(get_services)):
		store = services.store
		return {
			"featured": [movie_out(m) for m in store.get_featured()[:1]],
			"new_releases": [movie_out(m) for m in store.get_new()],
			"movie_count": len(store.get_all()),
			"genres": store.get_all_genres(),
		}

	@app.get("/movies", response_model=List[MovieOut])
	async def list_movies(genre: Optional[str] = None, services: Services = Depends(get_services)):
		store = services.store
		movies = store.get_by_genre(genre) if genre and genre != 'all' else store.get_all()
		return [movie_out(m) for m in movies]

	@app.get("/movies/featured", response_model=List[MovieOut])
	async def featured_movies(services: Services = Depends(get_services)):
		return [movie_out(m) for m in services.store.get_featured()]

	@app.get("/movies/new", response_model=List[MovieOut])
	async def new_movies(services: Services = Depends(get_services)):
		return [movie_out(m) for m in services.store.get_new()]

	@app.get("/movies/{movie_id}", response_model=MovieOut)
	async def get_movie(movie_id: str, services: Services = Depends(get_services)):
		movie = services.store.get_by_id(movie_id)
		if movie is None:
			raise HTTPException(status_code=404, detail=f"No movie '{movie_id}'")
		return movie_out(movie)

	@app.get("/genres", response_model=List[str])
	async def genres(services: Services = Depends(get_services)):
		return services.store.get_all_genres()

	@app.get("/search", response_model=SearchResponse)
	async def search(q: str = Query(..., description="Title or genre fragment"), services: Services = Depends(get_services)):
		"""Substring search on titles and genres; queries under two characters return nothing."""
		query = q.strip()
		if len(query) < MIN_QUERY_LENGTH:
			return SearchResponse(query=q, count=0, results=[])
		results = services.store.search(query)
		logger.debug(f"[API] /search q='{query}' -> {len(results)} results")
		return SearchResponse(query=q, count=len(results), results=[movie_out(m) for m in results])

	# ------------------------------------------------------------------
	# Admin
	# ------------------------------------------------------------------

	@app.post("/admin/login")
	async def admin_login(body: LoginIn, services: Services = Depends(get_services)):
		session_id = services.auth.login(body.username, body.password)
		if session_id is None:
			raise HTTPException(status_code=401, detail="Invalid credentials")
		return {"session_id": session_id}

	@app.post("/admin/logout")
	async def admin_logout(session_id: str = Depends(require_admin), services: Services = Depends(get_services)):
		services.auth.logout(session_id)
		return {"logged_out": True}

	@app.get("/admin/stats")
	async def admin_stats(_: str = Depends(require_admin), services: Services = Depends(get_services)):
		return services.store.stats()

	@app.post("/admin/movies", response_model=MovieOut, status_code=201)
	def admin_add_movie(body: MovieIn, _: str = Depends(require_admin), services: Services = Depends(get_services)):
		try:
			movie = services.store.add(body.model_dump(exclude_unset=True))
		except ValueError as e:
			raise HTTPException(status_code=400, detail=str(e))
		return movie_out(movie)

	@app.put("/admin/movies/{movie_id}", response_model=MovieOut)
	def admin_update_movie(
		movie_id: str, body: MovieIn, _: str = Depends(require_admin), services: Services = Depends(get_services)
	):
		movie = services.store.update(movie_id, body.model_dump(exclude_unset=True))
		if movie is None:
			raise HTTPException(status_code=404, detail=f"No movie '{movie_id}'")
		return movie_out(movie)

	@app.delete("/admin/movies/{movie_id}")
	def admin_delete_movie(movie_id: str, _: str = Depends(require_admin), services: Services = Depends(get_services)):
		if not services.store.delete(movie_id):
			raise HTTPException(status_code=404, detail=f"No movie '{movie_id}'")
		return {"deleted": movie_id}

	@app.post("/admin/password")
	async def admin_change_password(body: PasswordIn, _: str = Depends(require_admin), services: Services = Depends(get_services)):
		try:
			services.auth.change_password(body.new_password, body.confirm_password)
		except PasswordChangeError as e:
			raise HTTPException(status_code=400, detail=str(e))
		return {"changed": True}

	@app.get("/admin/export")
	async def admin_export(_: str = Depends(require_admin), services: Services = Depends(get_services)):
		filename, payload = services.store.export()
		return Response(
			content=payload,
			media_type="application/json",
			headers={"Content-Disposition": f'attachment; filename="{filename}"'},
		)

	@app.post("/admin/reset")
	def admin_reset(_: str = Depends(require_admin), services: Services = Depends(get_services)):
		services.store.reset()
		return {"reset": True, "movie_count": len(services.store.get_all())}

	# ------------------------------------------------------------------
	# Player
	# ------------------------------------------------------------------

	def player_view(session_id: str, gate: PlaybackGate, services: Services) -> PlayerView:
		related = services.store.get_related(gate.movie.id)
		return PlayerView(
			session_id=session_id,
			movie=movie_out(gate.movie),
			related=[movie_out(m) for m in related],
			**{k: v for k, v in gate.view().items() if k != 'movie_id'},
		)

	def find_gate(movie_id: str, session: str, gates: GateRegistry) -> PlaybackGate:
		gate = gates.get(session, movie_id)
		if gate is None:
			raise HTTPException(status_code=404, detail="Player not open for this session")
		return gate

	@app.get("/player")
	async def player_without_id():
		return RedirectResponse(url="/", status_code=307)

	@app.get("/player/{movie_id}", response_model=PlayerView)
	async def open_player(
		movie_id: str,
		session: Optional[str] = None,
		unlocked: Optional[str] = None,
		services: Services = Depends(get_services),
		gates: GateRegistry = Depends(get_gates),
	):
		"""Open (or revisit) the player; `unlocked=true` is the locker's redirect back."""
		movie = services.store.get_by_id(movie_id)
		if movie is None:
			return RedirectResponse(url="/", status_code=307)
		session_id = session or uuid.uuid4().hex
		gate = gates.open(session_id, movie, unlocked=(unlocked == 'true'))
		return player_view(session_id, gate, services)

	@app.post("/player/{movie_id}/{action}", response_model=PlayerView)
	async def player_action(
		movie_id: str,
		action: str,
		session: str,
		body: Optional[PositionIn] = None,
		services: Services = Depends(get_services),
		gates: GateRegistry = Depends(get_gates),
	):
		"""Drive the gate: start, pause, position, seek, ended, unlock, retry, cancel, leave."""
		gate = find_gate(movie_id, session, gates)
		if action == 'leave':
			gates.leave(session, movie_id)
		elif action not in PLAYER_ACTIONS:
			raise HTTPException(status_code=404, detail=f"Unknown player action '{action}'")
		else:
			try:
				apply_action(gate, action, body.seconds if body is not None else None)
			except GateTransitionError as e:
				raise HTTPException(status_code=409, detail=str(e))
			except ValueError as e:
				raise HTTPException(status_code=422, detail=str(e))
		return player_view(session, gate, services)

	return app


# Module-level application for `uvicorn api:app`
app = create_app()
