"""Locate thumbnails rendered by Synology Photos. Nothing here generates images."""

from pathlib import Path

from config import SIDECAR_THUMBNAILS

# Size keys in the sidecar JSON "thumbnail" object, largest first
_METADATA_SIZES = ("xl", "m")


def thumbnail_from_metadata(sidecar_dir: Path, metadata: dict) -> Path | None:
    """Thumbnail referenced by a sidecar JSON document, if any."""
    thumb = metadata.get("thumbnail")
    if not isinstance(thumb, dict):
        return None
    for size in _METADATA_SIZES:
        name = thumb.get(size)
        if name:
            return sidecar_dir / name
    return None


def find_thumbnail(sidecar_dir: Path) -> Path | None:
    """First conventionally named thumbnail that exists in the sidecar directory."""
    for name in SIDECAR_THUMBNAILS:
        candidate = sidecar_dir / name
        if candidate.is_file():
            return candidate
    return None
