"""Domain records for the photo corpus and the stories built from it.

All records are plain dataclasses. ``to_json`` turns any of them into a
JSON-ready dict with camelCase keys, ISO-8601 timestamps and unset fields
omitted; ``Photo.from_json`` reverses it for the persisted cache.
"""

import base64
import dataclasses
import re
from dataclasses import dataclass, field
from datetime import datetime


def make_id(text: str) -> str:
    """Stable URL-safe id for a relative path or name (unpadded base64url)."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@dataclass
class Photo:
    id: str
    path: str
    filename: str
    thumbnail: str | None = None
    taken_at: datetime | None = None
    width: int | None = None
    height: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    location_name: str | None = None
    camera: str | None = None
    lens: str | None = None
    people: list[str] | None = None
    tags: list[str] | None = None
    album: str | None = None

    def has_location(self) -> bool:
        """Whether the photo qualifies for the location index."""
        return bool(self.location_name) and self.latitude is not None and self.longitude is not None

    @classmethod
    def from_json(cls, data: dict) -> "Photo":
        """Inverse of to_json. Raises ValueError for a field of the wrong type."""
        kwargs = {}
        for key, value in data.items():
            name = _snake(key)
            if name not in _PHOTO_CHECKS or value is None:
                continue
            if not _PHOTO_CHECKS[name](value):
                raise ValueError(f"Invalid {key} in photo record: {value!r}")
            kwargs[name] = value
        if "taken_at" in kwargs:
            taken_at = datetime.fromisoformat(kwargs["taken_at"])
            # Capture times are naive local time everywhere else
            if taken_at.tzinfo is not None:
                taken_at = taken_at.astimezone().replace(tzinfo=None)
            kwargs["taken_at"] = taken_at
        return cls(**kwargs)


def _is_str(value) -> bool:
    return isinstance(value, str)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_real(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_str_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


# Accepted JSON type per Photo field
_PHOTO_CHECKS = {
    "id": _is_str,
    "path": _is_str,
    "filename": _is_str,
    "thumbnail": _is_str,
    "taken_at": _is_str,
    "width": _is_int,
    "height": _is_int,
    "latitude": _is_real,
    "longitude": _is_real,
    "location_name": _is_str,
    "camera": _is_str,
    "lens": _is_str,
    "people": _is_str_list,
    "tags": _is_str_list,
    "album": _is_str,
}


@dataclass
class DateRange:
    start: datetime
    end: datetime


@dataclass
class Album:
    id: str
    name: str
    path: str
    photo_count: int
    cover_photo: str | None = None
    date_range: DateRange | None = None


@dataclass
class Person:
    id: str
    name: str
    photo_count: int = 0
    cover_photo: str | None = None


@dataclass
class Location:
    name: str
    latitude: float
    longitude: float
    photo_count: int = 0
    photos: list[str] = field(default_factory=list)


@dataclass
class StoryMetadata:
    years_ago: int | None = None
    people: list[str] | None = None
    location: str | None = None
    date_range: DateRange | None = None


@dataclass
class Story:
    id: str
    type: str
    title: str
    photos: list[Photo]
    created_at: datetime
    subtitle: str | None = None
    description: str | None = None
    metadata: StoryMetadata | None = None


# ---------------------------------------------------------------------------
# JSON conversion
# ---------------------------------------------------------------------------

_CAMEL_RE = re.compile(r"_([a-z])")
_SNAKE_RE = re.compile(r"([A-Z])")


def _camel(name: str) -> str:
    return _CAMEL_RE.sub(lambda m: m.group(1).upper(), name)


def _snake(name: str) -> str:
    return _SNAKE_RE.sub(lambda m: "_" + m.group(1).lower(), name)


def to_json(value):
    """Recursively convert records to JSON-compatible values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        out = {}
        for f in dataclasses.fields(value):
            item = getattr(value, f.name)
            if item is None:
                continue
            out[_camel(f.name)] = to_json(item)
        return out
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    return value
