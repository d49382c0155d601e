"""Tests for record ids and JSON conversion."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from models import Album, DateRange, Photo, make_id, to_json


def test_make_id_is_url_safe_and_unpadded():
    pid = make_id("2023/Trip/IMG_0001.jpg")
    assert "=" not in pid
    assert "/" not in pid and "+" not in pid
    assert pid == make_id("2023/Trip/IMG_0001.jpg")
    assert pid != make_id("2023/Trip/IMG_0002.jpg")


def test_make_id_unicode():
    assert make_id("Straße/Ünïcode.jpg") == make_id("Straße/Ünïcode.jpg")


def test_to_json_camel_case_and_omits_unset():
    photo = Photo(
        id="x", path="/p/x.jpg", filename="x.jpg",
        taken_at=datetime(2022, 3, 4, 5, 6, 7), location_name="Oslo, Norway",
    )
    assert to_json(photo) == {
        "id": "x",
        "path": "/p/x.jpg",
        "filename": "x.jpg",
        "takenAt": "2022-03-04T05:06:07",
        "locationName": "Oslo, Norway",
    }


def test_to_json_nested():
    album = Album(
        id="a", name="2022", path="/p/2022", photo_count=2,
        date_range=DateRange(start=datetime(2022, 1, 1), end=datetime(2022, 2, 1)),
    )
    assert to_json(album)["dateRange"] == {"start": "2022-01-01T00:00:00", "end": "2022-02-01T00:00:00"}
    assert to_json(album)["photoCount"] == 2


def test_photo_from_json_ignores_unknown_keys():
    photo = Photo.from_json({
        "id": "x", "path": "/p/x.jpg", "filename": "x.jpg",
        "takenAt": "2022-03-04T05:06:07", "mtime": 12.5, "people": ["Alice"],
    })
    assert photo.taken_at == datetime(2022, 3, 4, 5, 6, 7)
    assert photo.people == ["Alice"]


def test_photo_from_json_rejects_wrong_types():
    base = {"id": "x", "path": "/p/x.jpg", "filename": "x.jpg"}
    for bad in (
        {"people": "Alice"},
        {"tags": ["ok", None]},
        {"takenAt": 1700000000000},
        {"height": 1.5},
        {"longitude": "10.7"},
        {"filename": ["x.jpg"]},
    ):
        with pytest.raises(ValueError):
            Photo.from_json({**base, **bad})


def test_photo_from_json_missing_identity():
    with pytest.raises(TypeError):
        Photo.from_json({"id": "x", "filename": "x.jpg"})


def test_photo_from_json_accepts_integral_coordinates():
    photo = Photo.from_json({"id": "x", "path": "/p", "filename": "x", "latitude": 0, "longitude": 10.5})
    assert (photo.latitude, photo.longitude) == (0, 10.5)


def test_photo_from_json_normalizes_aware_taken_at():
    photo = Photo.from_json({"id": "x", "path": "/p", "filename": "x", "takenAt": "2022-03-04T05:06:07+00:00"})
    assert photo.taken_at.tzinfo is None
    assert photo.taken_at == datetime(2022, 3, 4, 5, 6, 7, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
