"""Persisted scan snapshot used to skip re-extraction of unchanged files.

Layout::

    {
      "version": 1,
      "photosRoot": "/volume1/photo",
      "lastScan": "2024-06-01T12:00:00",
      "photos": {"<id>": {"path": ..., "takenAt": "...", ..., "mtime": 1717236000.5}}
    }

A snapshot whose version or root differs from the running configuration is
ignored as a whole. Read and write failures are logged and never raised.
"""

import json
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from config import CACHE_VERSION
from models import Photo, to_json

logger = logging.getLogger(__name__)


class ScanCache:
    def __init__(self, cache_file: Path, photos_root: Path, version: int = CACHE_VERSION):
        self.cache_file = Path(cache_file)
        self.photos_root = str(photos_root)
        self.version = version
        self.last_scan: str | None = None

    def load(self) -> tuple[dict[str, Photo], dict[str, float]]:
        """Return (photos by id, mtime by path), both empty when there is no usable snapshot."""
        if not self.cache_file.exists():
            logger.info("No cache file at %s, all photos will be scanned", self.cache_file)
            return {}, {}

        try:
            data = json.loads(self.cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Failed to read cache %s, ignoring it", self.cache_file, exc_info=True)
            return {}, {}

        if not isinstance(data, dict):
            logger.warning("Corrupt cache %s, ignoring it", self.cache_file)
            return {}, {}
        if data.get("version") != self.version or data.get("photosRoot") != self.photos_root:
            logger.info("Cache version or root mismatch, will rescan")
            return {}, {}

        photos: dict[str, Photo] = {}
        mtimes: dict[str, float] = {}
        try:
            for photo_id, raw in data.get("photos", {}).items():
                photo = Photo.from_json({**raw, "id": photo_id})
                photos[photo_id] = photo
                mtime = raw.get("mtime")
                if isinstance(mtime, bool) or not isinstance(mtime, (int, float, type(None))):
                    raise ValueError(f"Invalid mtime for {photo_id}: {mtime!r}")
                if mtime:
                    mtimes[photo.path] = mtime
        except (AttributeError, KeyError, TypeError, ValueError):
            logger.warning("Corrupt cache entries in %s, ignoring it", self.cache_file, exc_info=True)
            return {}, {}

        self.last_scan = data.get("lastScan")
        logger.info("Loaded %d photos from cache (%s)", len(photos), self.last_scan)
        return photos, mtimes

    def save(self, photos: Iterable[Photo], mtimes: dict[str, float]) -> bool:
        """Overwrite the snapshot. Returns False if it could not be written.

        A cache file inside a photos root that does not exist is not written,
        so a mistyped root is never created as a side effect.
        """
        root = Path(self.photos_root)
        if self.cache_file.is_relative_to(root) and not root.is_dir():
            logger.warning("Photos root %s does not exist, not saving cache", root)
            return False

        entries = {}
        for photo in photos:
            entry = to_json(photo)
            entry["mtime"] = mtimes.get(photo.path, 0)
            entries[photo.id] = entry

        self.last_scan = datetime.now().isoformat()
        data = {
            "version": self.version,
            "photosRoot": self.photos_root,
            "lastScan": self.last_scan,
            "photos": entries,
        }
        try:
            self._atomic_write_text(self.cache_file, json.dumps(data, indent=2))
        except (OSError, TypeError, ValueError):
            logger.warning("Failed to save cache %s", self.cache_file, exc_info=True)
            return False

        logger.info("Saved cache with %d photos", len(entries))
        return True

    @staticmethod
    def _atomic_write_text(path: Path, data: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(data, encoding="utf-8")
        tmp.replace(path)
