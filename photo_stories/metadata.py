"""Primary format metadata: capture time, dimensions, GPS and camera from EXIF.

Never raises. A file Pillow cannot read yields only its filesystem
modification time as the capture time.
"""

import logging
import os
import re
from datetime import datetime
from pathlib import Path

import reverse_geocode
from PIL import Image
from PIL.ExifTags import GPS, IFD, Base as ExifBase

logger = logging.getLogger(__name__)

# "2024:01:15 14:30:00" -> "2024-01-15 14:30:00"
_EXIF_DATE_RE = re.compile(r"^(\d{4}):(\d{2}):(\d{2})")

_SOUTH_WEST = {"S", "W"}

_heif_registered = False


def register_heif() -> None:
    """Let Pillow open HEIC/HEIF files. Cheap to call before every scan."""
    global _heif_registered
    if _heif_registered:
        return
    try:
        from pillow_heif import register_heif_opener
    except ImportError:
        logger.warning("pillow-heif not installed; HEIC files will only get their mtime")
        return
    register_heif_opener()
    _heif_registered = True
    logger.info("HEIF opener registered with Pillow")


def _parse_exif_date(date_str: str) -> datetime | None:
    """Naive datetime from an EXIF date string, or None for zeroed/garbled values."""
    cleaned = _EXIF_DATE_RE.sub(r"\1-\2-\3", date_str.strip().strip("\x00"))
    try:
        return datetime.fromisoformat(cleaned)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# GPS
# ---------------------------------------------------------------------------


def _dms_to_decimal(dms, ref) -> float:
    """Signed decimal degrees from (degrees, minutes, seconds) and a hemisphere ref."""
    degrees, minutes, seconds = (float(part) for part in dms[:3])
    value = degrees + minutes / 60 + seconds / 3600
    return -value if _text(ref).upper() in _SOUTH_WEST else value


def _parse_gps_ifd(gps_ifd) -> tuple[float, float] | None:
    """(lat, lon) from a GPS IFD; None when incomplete, out of range or (0, 0)."""
    try:
        lat = _dms_to_decimal(gps_ifd[GPS.GPSLatitude], gps_ifd[GPS.GPSLatitudeRef])
        lon = _dms_to_decimal(gps_ifd[GPS.GPSLongitude], gps_ifd[GPS.GPSLongitudeRef])
    except (KeyError, TypeError, ValueError, ZeroDivisionError):
        return None

    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None
    # Null Island: cameras without a fix write (0, 0)
    if lat == 0 and lon == 0:
        return None
    return lat, lon


def resolve_place_name(lat: float, lon: float) -> str:
    """Offline "City, Country" for a coordinate pair, or "" if it cannot be resolved."""
    try:
        place = reverse_geocode.get((lat, lon))
    except Exception:
        logger.debug("Reverse geocoding failed for (%s, %s)", lat, lon, exc_info=True)
        return ""
    return ", ".join(part for part in (place.get("city"), place.get("country")) if part)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def _text(value) -> str:
    """EXIF ASCII values often carry trailing NULs."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    return str(value).strip("\x00 \t\r\n")


def _read_exif(img: Image.Image) -> dict:
    fields: dict = {}
    exif = img.getexif()
    if not exif:
        return fields

    exif_ifd = exif.get_ifd(IFD.Exif)

    date_val = exif_ifd.get(ExifBase.DateTimeOriginal) or exif.get(ExifBase.DateTime)
    if date_val:
        taken_at = _parse_exif_date(_text(date_val))
        if taken_at is not None:
            fields["taken_at"] = taken_at

    gps_ifd = exif.get_ifd(IFD.GPSInfo)
    if gps_ifd:
        coords = _parse_gps_ifd(gps_ifd)
        if coords:
            fields["latitude"], fields["longitude"] = coords

    make = _text(exif.get(ExifBase.Make))
    model = _text(exif.get(ExifBase.Model))
    if make and model:
        fields["camera"] = f"{make} {model}"

    lens = _text(exif_ifd.get(ExifBase.LensModel))
    if lens:
        fields["lens"] = lens

    return fields


def extract_exif(path: Path) -> dict:
    """Read embedded metadata from an image file.

    Returns a dict of Photo field names to values (taken_at, width, height,
    latitude, longitude, camera, lens). Only fields actually present are set.
    On read failure the dict holds just taken_at from the file's mtime.
    """
    try:
        with Image.open(path) as img:
            fields = {"width": img.size[0], "height": img.size[1]}
            fields.update(_read_exif(img))
            return fields
    except Exception:
        logger.debug("EXIF extraction failed for %s", path, exc_info=True)

    try:
        return {"taken_at": datetime.fromtimestamp(os.path.getmtime(path))}
    except OSError:
        return {}
