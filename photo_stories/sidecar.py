"""Read annotations written by Synology Photos into per-file @eaDir sidecars.

For ``/photos/2023/Trip/IMG_1.jpg`` the sidecar directory is
``/photos/2023/Trip/@eaDir/IMG_1.jpg/``. It may hold a JSON document with
faces, geocoding, tags, capture time and thumbnail names, plus the
thumbnails themselves.

Candidate JSON files are tried in order by a list of resolvers; the first
one that exists and parses is used and the rest are ignored.
"""

import json
import logging
from datetime import datetime
from pathlib import Path

from config import SIDECAR_DIR_NAME, SIDECAR_METADATA_FILES
from thumbnails import find_thumbnail, thumbnail_from_metadata

logger = logging.getLogger(__name__)


def sidecar_dir_for(path: Path) -> Path:
    return path.parent / SIDECAR_DIR_NAME / path.name


class SidecarResolver:
    """One candidate metadata file inside a sidecar directory."""

    def __init__(self, filename: str):
        self.filename = filename

    def resolve(self, sidecar_dir: Path) -> dict | None:
        """Return the parsed document on a hit, None on a miss."""
        path = sidecar_dir / self.filename
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.debug("Unreadable sidecar metadata %s", path, exc_info=True)
            return None
        if not isinstance(data, dict):
            logger.debug("Sidecar metadata %s is not an object", path)
            return None
        return data

    def __repr__(self) -> str:
        return f"SidecarResolver({self.filename!r})"


def default_resolvers() -> list[SidecarResolver]:
    return [SidecarResolver(name) for name in SIDECAR_METADATA_FILES]


def read_sidecar(
    sidecar_dir: Path, resolvers: list[SidecarResolver] | None = None,
) -> dict | None:
    """First hit across the resolvers, in order."""
    for resolver in resolvers if resolvers is not None else default_resolvers():
        metadata = resolver.resolve(sidecar_dir)
        if metadata is not None:
            return metadata
    return None


def _parse_taken_at(value) -> datetime | None:
    """Sidecar capture time: ISO string or epoch milliseconds. Returns naive local time."""
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, str):
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        elif isinstance(value, (int, float)):
            dt = datetime.fromtimestamp(value / 1000)
        else:
            return None
    except (ValueError, OverflowError, OSError):
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def _fields_from_metadata(sidecar_dir: Path, metadata: dict) -> dict:
    fields: dict = {}

    faces = metadata.get("face")
    if isinstance(faces, list):
        names = [f["name"] for f in faces if isinstance(f, dict) and f.get("name")]
        if names:
            fields["people"] = names

    geo = metadata.get("geocoding")
    if isinstance(geo, dict):
        parts = [p for p in (geo.get("city"), geo.get("country")) if p]
        if parts:
            fields["location_name"] = ", ".join(parts)
        lat, lon = geo.get("latitude"), geo.get("longitude")
        if lat is not None and lon is not None:
            try:
                fields["latitude"], fields["longitude"] = float(lat), float(lon)
            except (TypeError, ValueError):
                logger.debug("Bad sidecar coordinates in %s: %r, %r", sidecar_dir, lat, lon)

    if "takenAt" in metadata:
        taken_at = _parse_taken_at(metadata["takenAt"])
        if taken_at is not None:
            fields["taken_at"] = taken_at

    tags = metadata.get("tags")
    if isinstance(tags, list) and tags:
        fields["tags"] = [str(t) for t in tags]

    thumb = thumbnail_from_metadata(sidecar_dir, metadata)
    if thumb is not None:
        fields["thumbnail"] = str(thumb)

    return fields


def extract_sidecar(
    path: Path, resolvers: list[SidecarResolver] | None = None,
) -> dict:
    """Photo fields from the sidecar of ``path``.

    Returns a dict of Photo field names (people, location_name, latitude,
    longitude, taken_at, tags, thumbnail) holding only what the sidecar
    provides. The caller decides precedence against EXIF fields. The
    conventional thumbnail probe runs whether or not a JSON document was
    found and overrides a thumbnail named by the document.
    """
    sidecar_dir = sidecar_dir_for(path)
    fields: dict = {}

    metadata = read_sidecar(sidecar_dir, resolvers)
    if metadata is not None:
        fields.update(_fields_from_metadata(sidecar_dir, metadata))

    thumb = find_thumbnail(sidecar_dir)
    if thumb is not None:
        fields["thumbnail"] = str(thumb)

    return fields
