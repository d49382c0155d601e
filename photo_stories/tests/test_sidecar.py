"""Tests for Synology sidecar metadata and thumbnail lookup."""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sidecar import (
    SidecarResolver,
    _parse_taken_at,
    default_resolvers,
    extract_sidecar,
    read_sidecar,
    sidecar_dir_for,
)


def _sidecar(tmp_path: Path, filename: str = "IMG_1.jpg") -> tuple[Path, Path]:
    photo = tmp_path / filename
    photo.write_bytes(b"")
    sdir = tmp_path / "@eaDir" / filename
    sdir.mkdir(parents=True)
    return photo, sdir


def _write(path: Path, data) -> None:
    path.write_text(data if isinstance(data, str) else json.dumps(data))


def test_sidecar_dir_for():
    assert sidecar_dir_for(Path("/photos/2023/Trip/IMG_1.jpg")) == Path(
        "/photos/2023/Trip/@eaDir/IMG_1.jpg"
    )


# -- resolvers --

def test_default_resolvers_order():
    names = [r.filename for r in default_resolvers()]
    assert names == ["SYNOPHOTO_METADATA.json", "SYNO_PHOTO_METADATA.json"]


def test_resolver_miss_when_absent(tmp_path):
    assert SidecarResolver("missing.json").resolve(tmp_path) is None


def test_resolver_miss_when_unparseable(tmp_path):
    _write(tmp_path / "bad.json", "{not json")
    assert SidecarResolver("bad.json").resolve(tmp_path) is None


def test_resolver_miss_when_not_object(tmp_path):
    _write(tmp_path / "list.json", [1, 2, 3])
    assert SidecarResolver("list.json").resolve(tmp_path) is None


def test_first_hit_wins_without_merge(tmp_path):
    _, sdir = _sidecar(tmp_path)
    _write(sdir / "SYNOPHOTO_METADATA.json", {"tags": ["first"]})
    _write(sdir / "SYNO_PHOTO_METADATA.json", {"tags": ["second"], "face": [{"name": "Ann"}]})
    assert read_sidecar(sdir) == {"tags": ["first"]}


def test_unparseable_first_candidate_falls_through(tmp_path):
    _, sdir = _sidecar(tmp_path)
    _write(sdir / "SYNOPHOTO_METADATA.json", "garbage")
    _write(sdir / "SYNO_PHOTO_METADATA.json", {"tags": ["second"]})
    assert read_sidecar(sdir) == {"tags": ["second"]}


def test_custom_resolver_order(tmp_path):
    _, sdir = _sidecar(tmp_path)
    _write(sdir / "a.json", {"tags": ["a"]})
    _write(sdir / "b.json", {"tags": ["b"]})
    resolvers = [SidecarResolver("b.json"), SidecarResolver("a.json")]
    assert read_sidecar(sdir, resolvers) == {"tags": ["b"]}


# -- _parse_taken_at --

def test_parse_taken_at_naive_iso():
    assert _parse_taken_at("2020-05-01T10:00:00") == datetime(2020, 5, 1, 10, 0, 0)


def test_parse_taken_at_utc_iso_becomes_local():
    expected = datetime(2020, 5, 1, 10, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert _parse_taken_at("2020-05-01T10:00:00Z") == expected


def test_parse_taken_at_epoch_millis():
    assert _parse_taken_at(1588327200000) == datetime.fromtimestamp(1588327200)


def test_parse_taken_at_rejects_junk():
    assert _parse_taken_at("yesterday") is None
    assert _parse_taken_at(True) is None
    assert _parse_taken_at(None) is None


# -- extract_sidecar --

def test_extract_full_document(tmp_path):
    photo, sdir = _sidecar(tmp_path)
    _write(sdir / "SYNOPHOTO_METADATA.json", {
        "face": [
            {"id": "1", "name": "Alice", "x": 0, "y": 0, "w": 1, "h": 1},
            {"id": "2", "x": 0, "y": 0, "w": 1, "h": 1},
            {"id": "3", "name": "", "x": 0, "y": 0, "w": 1, "h": 1},
            {"id": "4", "name": "Bob", "x": 0, "y": 0, "w": 1, "h": 1},
        ],
        "geocoding": {"city": "Paris", "country": "France", "latitude": 48.85, "longitude": 2.35},
        "takenAt": "2019-06-01T09:30:00",
        "tags": ["holiday", "food"],
        "thumbnail": {"m": "thumb_m.jpg", "xl": "thumb_xl.jpg"},
    })

    fields = extract_sidecar(photo)
    assert fields["people"] == ["Alice", "Bob"]
    assert fields["location_name"] == "Paris, France"
    assert fields["latitude"] == 48.85
    assert fields["longitude"] == 2.35
    assert fields["taken_at"] == datetime(2019, 6, 1, 9, 30)
    assert fields["tags"] == ["holiday", "food"]
    assert fields["thumbnail"] == str(sdir / "thumb_xl.jpg")


def test_extract_country_only_location_without_coordinates(tmp_path):
    photo, sdir = _sidecar(tmp_path)
    _write(sdir / "SYNOPHOTO_METADATA.json", {"geocoding": {"country": "Japan"}})
    fields = extract_sidecar(photo)
    assert fields == {"location_name": "Japan"}


def test_extract_faces_without_names_leave_people_unset(tmp_path):
    photo, sdir = _sidecar(tmp_path)
    _write(sdir / "SYNOPHOTO_METADATA.json", {"face": [{"id": "1"}]})
    assert "people" not in extract_sidecar(photo)


def test_thumbnail_probe_overrides_document(tmp_path):
    photo, sdir = _sidecar(tmp_path)
    _write(sdir / "SYNOPHOTO_METADATA.json", {"thumbnail": {"xl": "custom.jpg"}})
    (sdir / "SYNOPHOTO_THUMB_M.jpg").write_bytes(b"thumb")
    assert extract_sidecar(photo)["thumbnail"] == str(sdir / "SYNOPHOTO_THUMB_M.jpg")


def test_thumbnail_probe_order(tmp_path):
    photo, sdir = _sidecar(tmp_path)
    for name in ("SYNOPHOTO_THUMB_SM.jpg", "SYNOPHOTO_THUMB_XL.jpg"):
        (sdir / name).write_bytes(b"thumb")
    assert extract_sidecar(photo)["thumbnail"] == str(sdir / "SYNOPHOTO_THUMB_XL.jpg")


def test_thumbnail_probe_without_document(tmp_path):
    photo, sdir = _sidecar(tmp_path)
    (sdir / "SYNOPHOTO_THUMB_SM.jpg").write_bytes(b"thumb")
    assert extract_sidecar(photo) == {"thumbnail": str(sdir / "SYNOPHOTO_THUMB_SM.jpg")}


def test_no_sidecar_at_all(tmp_path):
    photo = tmp_path / "lonely.jpg"
    photo.write_bytes(b"")
    assert extract_sidecar(photo) == {}
