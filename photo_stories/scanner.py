"""Scan engine: walks the corpus root and builds a CorpusIndex.

Every scan builds a brand-new index and swaps it in when the walk is
complete, so readers see either the previous index or the finished one.
Files whose modification time matches the persisted snapshot reuse the
cached record instead of being re-read.

    /photos                 (root, not an album)
    /photos/2023            album "2023"
    /photos/2023/Trip       album "2023/Trip"
    /photos/2023/@eaDir     sidecars, never walked
"""

import logging
import os
import threading
from datetime import date, datetime
from pathlib import Path

from cache import ScanCache
from config import (
    CACHE_FILE,
    CACHE_FILENAME,
    HIDDEN_PREFIX,
    PHOTO_EXTENSIONS,
    PHOTOS_DIR,
    REVERSE_GEOCODE,
    SIDECAR_DIR_NAME,
    VIDEO_EXTENSIONS,
)
from indexer import CorpusIndex
from metadata import extract_exif, register_heif, resolve_place_name
from models import Album, Location, Person, Photo, make_id
from sidecar import SidecarResolver, extract_sidecar

logger = logging.getLogger(__name__)


def classify(name: str) -> str | None:
    """'photo', 'video' or None for a file name."""
    ext = os.path.splitext(name)[1].lower()
    if ext in PHOTO_EXTENSIONS:
        return "photo"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    return None


def build_photo(
    path: Path,
    photo_id: str,
    album: str | None,
    resolvers: list[SidecarResolver] | None = None,
    geocode: bool = False,
) -> Photo:
    """Run both extractors for one file. EXIF capture time wins over the sidecar's."""
    photo = Photo(id=photo_id, path=str(path), filename=path.name, album=album)
    try:
        fields = extract_exif(path)
        sidecar_fields = extract_sidecar(path, resolvers)
        if "taken_at" in fields:
            sidecar_fields.pop("taken_at", None)
        fields.update(sidecar_fields)

        if (
            geocode
            and not fields.get("location_name")
            and fields.get("latitude") is not None
            and fields.get("longitude") is not None
        ):
            place = resolve_place_name(fields["latitude"], fields["longitude"])
            if place:
                fields["location_name"] = place
    except Exception:
        logger.warning("Failed to read metadata for %s", path, exc_info=True)
        return photo

    for name, value in fields.items():
        setattr(photo, name, value)
    return photo


class _ScanPass:
    """State for one walk over the corpus."""

    def __init__(
        self,
        root: Path,
        prior_photos: dict[str, Photo],
        prior_mtimes: dict[str, float],
        resolvers: list[SidecarResolver] | None,
        geocode: bool,
    ):
        self.root = root
        self.prior_photos = prior_photos
        self.prior_mtimes = prior_mtimes
        self.resolvers = resolvers
        self.geocode = geocode
        self.index = CorpusIndex()
        self.mtimes: dict[str, float] = {}
        self.stats = {"total": 0, "cached": 0, "scanned": 0, "videos": 0, "errors": 0}

    def walk(self, directory: Path, album: str | None = None) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            logger.warning("Error scanning directory %s, skipping it", directory, exc_info=True)
            self.stats["errors"] += 1
            return

        for entry in entries:
            if entry.name == SIDECAR_DIR_NAME or entry.name.startswith(HIDDEN_PREFIX):
                continue
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file(follow_symlinks=False)
            except OSError:
                logger.debug("Cannot stat %s", entry.path, exc_info=True)
                continue

            if is_dir:
                child_album = f"{album}/{entry.name}" if album else entry.name
                self.walk(Path(entry.path), child_album)
            elif is_file:
                kind = classify(entry.name)
                if kind == "photo":
                    self.process(Path(entry.path), album)
                elif kind == "video":
                    self.stats["videos"] += 1

        if album:
            self.index.finalize_album(album, str(directory))

    def process(self, path: Path, album: str | None) -> None:
        photo_id = make_id(path.relative_to(self.root).as_posix())
        key = str(path)
        self.stats["total"] += 1

        try:
            mtime = path.stat().st_mtime
        except OSError:
            logger.debug("Cannot stat %s", path, exc_info=True)
            self.index.add_photo(Photo(id=photo_id, path=key, filename=path.name, album=album))
            return

        cached = self.prior_photos.get(photo_id)
        if cached is not None and self.prior_mtimes.get(key) == mtime:
            self.stats["cached"] += 1
            self.mtimes[key] = mtime
            self.index.add_photo(cached)
            return

        self.stats["scanned"] += 1
        self.index.add_photo(build_photo(path, photo_id, album, self.resolvers, self.geocode))
        self.mtimes[key] = mtime


class PhotoScanner:
    """Owns the current CorpusIndex and rebuilds it on scan().

    Query methods read whatever index is current; they never block on a
    running scan.
    """

    def __init__(
        self,
        photos_root: Path | str | None = None,
        cache_file: Path | str | None = None,
        resolvers: list[SidecarResolver] | None = None,
        geocode: bool | None = None,
    ):
        self.photos_root = Path(photos_root).resolve() if photos_root else PHOTOS_DIR
        if cache_file is None:
            cache_file = CACHE_FILE if photos_root is None else self.photos_root / CACHE_FILENAME
        self._cache = ScanCache(Path(cache_file), self.photos_root)
        self._resolvers = resolvers
        self._geocode = REVERSE_GEOCODE if geocode is None else geocode

        self._index = CorpusIndex()
        self._mtimes: dict[str, float] = {}
        self._indexed = False
        self._scan_lock = threading.Lock()
        self.scan_stats = {"total": 0, "cached": 0, "scanned": 0, "videos": 0, "errors": 0}

    @property
    def index(self) -> CorpusIndex:
        """The current index. Hold on to the returned object for a consistent read."""
        return self._index

    def is_indexed(self) -> bool:
        return self._indexed

    def scan(self) -> None:
        """Rebuild the index from disk. Concurrent calls run one after another."""
        with self._scan_lock:
            logger.info("Scanning photos from: %s", self.photos_root)
            register_heif()

            prior_photos, prior_mtimes = self._cache.load()
            if not prior_photos and self._index.photos:
                # Snapshot unusable; the in-memory index is just as good
                prior_photos, prior_mtimes = dict(self._index.photos), dict(self._mtimes)

            scan_pass = _ScanPass(
                self.photos_root, prior_photos, prior_mtimes, self._resolvers, self._geocode,
            )
            scan_pass.walk(self.photos_root)

            index = scan_pass.index
            self._index = index
            self._mtimes = scan_pass.mtimes
            self.scan_stats = scan_pass.stats
            self._indexed = True

            self._cache.save(index.all_photos(), self._mtimes)

        logger.info("Found %d photos in %d albums", len(index.photos), len(index.albums))
        logger.info("Found %d people and %d locations", len(index.people), len(index.locations))
        logger.info(
            "Scan stats: %d cached, %d scanned, %d total, %d videos skipped, %d directory errors",
            self.scan_stats["cached"], self.scan_stats["scanned"], self.scan_stats["total"],
            self.scan_stats["videos"], self.scan_stats["errors"],
        )

    # -- queries --

    def get_all_photos(self) -> list[Photo]:
        return self._index.all_photos()

    def get_photo(self, photo_id: str) -> Photo | None:
        return self._index.get_photo(photo_id)

    def get_all_albums(self) -> list[Album]:
        return self._index.all_albums()

    def get_album(self, album_id: str) -> Album | None:
        return self._index.get_album(album_id)

    def get_album_photos(self, name: str) -> list[Photo]:
        return self._index.album_photos(name)

    def get_all_people(self) -> list[Person]:
        return self._index.all_people()

    def get_person_photos(self, name: str) -> list[Photo]:
        return self._index.person_photos(name)

    def get_all_locations(self) -> list[Location]:
        return self._index.all_locations()

    def get_location_photos(self, name: str) -> list[Photo]:
        return self._index.location_photos(name)

    def get_photos_by_date(self, day: date | datetime) -> list[Photo]:
        return self._index.photos_by_date(day)

    def get_photos_by_year(self, year: int) -> list[Photo]:
        return self._index.photos_by_year(year)

    def get_photos_with_people(self, names: list[str]) -> list[Photo]:
        return self._index.photos_with_people(names)

    def stats(self) -> dict:
        return self._index.stats()
