"""HTTP service for photo-stories.

Owns the PhotoScanner, StoryGenerator and StoryCache and exposes them as a
JSON API. Photo payloads never include server filesystem paths.

    uv run python service.py

Startup order:
    1. Start uvicorn  -- HTTP is up immediately
    2. Background thread: scan the corpus, then generate the first story batch
    Handlers return {"loading": true} until the first scan is done.
"""

import asyncio
import contextlib
import logging
import threading
from datetime import date

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from config import SERVICE_HOST, SERVICE_PORT
from models import Album, Photo, Story, to_json
from scanner import PhotoScanner
from stories import StoryGenerator
from story_cache import StoryCache

logger = logging.getLogger(__name__)


def _loading() -> JSONResponse:
    return JSONResponse({"loading": True}, status_code=503)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _photo_payload(photo: Photo) -> dict:
    data = to_json(photo)
    data.pop("path", None)
    data["hasThumbnail"] = data.pop("thumbnail", None) is not None
    return data


def _album_payload(album: Album) -> dict:
    data = to_json(album)
    data.pop("path", None)
    return data


def _story_payload(story: Story | None) -> dict | None:
    if story is None:
        return None
    data = to_json(story)
    data["photos"] = [_photo_payload(p) for p in story.photos]
    return data


def _ready(request: Request) -> bool:
    return request.app.state.ready.is_set()


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def health(request: Request) -> JSONResponse:
    return JSONResponse({"ok": True, "ready": _ready(request)})


async def list_photos(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    photos = [_photo_payload(p) for p in request.app.state.scanner.get_all_photos()]
    return JSONResponse({"photos": photos, "total": len(photos)})


async def get_photo(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    photo = request.app.state.scanner.get_photo(request.path_params["id"])
    if photo is None:
        return _error("Photo not found", 404)
    return JSONResponse(_photo_payload(photo))


async def list_albums(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    albums = request.app.state.scanner.get_all_albums()
    return JSONResponse({"albums": [_album_payload(a) for a in albums]})


async def album_photos(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    scanner: PhotoScanner = request.app.state.scanner
    album = scanner.get_album(request.path_params["id"])
    if album is None:
        return _error("Album not found", 404)
    photos = scanner.get_album_photos(album.name)
    return JSONResponse({
        "album": _album_payload(album),
        "photos": [_photo_payload(p) for p in photos],
    })


async def list_people(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    return JSONResponse({"people": to_json(request.app.state.scanner.get_all_people())})


async def person_photos(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    name = request.path_params["name"]
    photos = request.app.state.scanner.get_person_photos(name)
    return JSONResponse({"person": name, "photos": [_photo_payload(p) for p in photos]})


async def list_locations(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    return JSONResponse({"locations": to_json(request.app.state.scanner.get_all_locations())})


async def location_photos(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    name = request.path_params["name"]
    photos = request.app.state.scanner.get_location_photos(name)
    return JSONResponse({"location": name, "photos": [_photo_payload(p) for p in photos]})


async def list_stories(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    cache: StoryCache = request.app.state.stories
    generated_at = cache.generated_at
    return JSONResponse({
        "stories": [_story_payload(s) for s in cache.stories],
        "generatedAt": generated_at.isoformat() if generated_at else None,
    })


async def random_story(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    story = request.app.state.generator.generate_random_story()
    if story is None:
        return _error("No stories available", 404)
    return JSONResponse({"story": _story_payload(story)})


async def refresh_stories(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    stories = await asyncio.to_thread(request.app.state.stories.refresh)
    return JSONResponse({"stories": [_story_payload(s) for s in stories]})


async def today_story(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    story = request.app.state.generator.generate_years_ago_story()
    if story is None:
        return JSONResponse({"story": None, "message": "No memories from this day"})
    return JSONResponse({"story": _story_payload(story)})


async def date_story(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    try:
        target = date.fromisoformat(request.path_params["date"])
    except ValueError:
        return _error("Invalid date format", 400)
    story = request.app.state.generator.generate_years_ago_story(target)
    return JSONResponse({"story": _story_payload(story)})


async def stats(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    data = request.app.state.scanner.stats()
    return JSONResponse({
        "totalPhotos": data["total_photos"],
        "totalAlbums": data["total_albums"],
        "totalPeople": data["total_people"],
        "totalLocations": data["total_locations"],
        "yearRange": data["year_range"],
        "storiesCount": len(request.app.state.stories.stories),
    })


async def rescan(request: Request) -> JSONResponse:
    if not _ready(request):
        return _loading()
    scanner: PhotoScanner = request.app.state.scanner
    await asyncio.to_thread(scanner.scan)
    await asyncio.to_thread(request.app.state.stories.refresh)
    return JSONResponse({
        "message": "Rescan complete",
        "stats": {
            "photos": len(scanner.get_all_photos()),
            "albums": len(scanner.get_all_albums()),
            "scan": scanner.scan_stats,
        },
    })


routes = [
    Route("/health", health, methods=["GET"]),
    Route("/api/photos", list_photos, methods=["GET"]),
    Route("/api/photos/{id}", get_photo, methods=["GET"]),
    Route("/api/albums", list_albums, methods=["GET"]),
    Route("/api/albums/{id}/photos", album_photos, methods=["GET"]),
    Route("/api/people", list_people, methods=["GET"]),
    Route("/api/people/{name}/photos", person_photos, methods=["GET"]),
    Route("/api/locations", list_locations, methods=["GET"]),
    Route("/api/locations/{name}/photos", location_photos, methods=["GET"]),
    Route("/api/stories", list_stories, methods=["GET"]),
    Route("/api/stories/random", random_story, methods=["GET"]),
    Route("/api/stories/refresh", refresh_stories, methods=["GET", "POST"]),
    Route("/api/stories/today", today_story, methods=["GET"]),
    Route("/api/stories/date/{date}", date_story, methods=["GET"]),
    Route("/api/stats", stats, methods=["GET"]),
    Route("/api/rescan", rescan, methods=["POST"]),
]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def _background_startup(app: Starlette) -> None:
    """Scan and build the first story batch without blocking the event loop.

    Uvicorn is already listening. Handlers return 503 until ready is set.
    """
    def _load():
        try:
            app.state.scanner.scan()
            app.state.stories.start()
        except Exception:
            logger.warning("Background startup failed", exc_info=True)
        finally:
            app.state.ready.set()

    threading.Thread(target=_load, name="background-startup", daemon=True).start()


def create_app(
    scanner: PhotoScanner,
    generator: StoryGenerator,
    stories: StoryCache,
    background_startup: bool = True,
) -> Starlette:
    """Build the app. Without background_startup the caller scans and it is ready at once."""

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        if background_startup:
            _background_startup(app)
        yield
        stories.stop()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.scanner = scanner
    app.state.generator = generator
    app.state.stories = stories
    app.state.ready = threading.Event()
    if not background_startup:
        app.state.ready.set()
    return app


def build_app() -> Starlette:
    scanner = PhotoScanner()
    generator = StoryGenerator(scanner)
    return create_app(scanner, generator, StoryCache(generator))


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = build_app()
    logger.info("Starting photo-stories service on %s:%d", SERVICE_HOST, SERVICE_PORT)
    logger.info("Photos directory: %s", app.state.scanner.photos_root)
    uvicorn.run(app, host=SERVICE_HOST, port=SERVICE_PORT, log_level="warning")
