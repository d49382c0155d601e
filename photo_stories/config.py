import os
from pathlib import Path

PHOTOS_DIR = Path(os.environ.get("PHOTOS_DIR", "./photos")).resolve()

CACHE_FILENAME = ".photos-cache.json"
CACHE_FILE = Path(
    os.environ.get("PHOTO_CACHE_FILE", PHOTOS_DIR / CACHE_FILENAME)
).resolve()
CACHE_VERSION = 1

PHOTO_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".heic", ".heif", ".webp", ".gif", ".bmp", ".tiff",
}
# Recognized but not indexed
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".webm"}

# -- Synology Photos sidecar layout --

SIDECAR_DIR_NAME = "@eaDir"
HIDDEN_PREFIX = "."

# Tried in order; the first file that exists and parses wins
SIDECAR_METADATA_FILES = [
    "SYNOPHOTO_METADATA.json",
    "SYNO_PHOTO_METADATA.json",
]
SIDECAR_THUMBNAILS = [
    "SYNOPHOTO_THUMB_XL.jpg",
    "SYNOPHOTO_THUMB_M.jpg",
    "SYNOPHOTO_THUMB_SM.jpg",
]

# Resolve "City, Country" offline for photos whose sidecar has no place name.
REVERSE_GEOCODE = os.environ.get("PHOTO_REVERSE_GEOCODE", "").lower() in ("1", "true", "yes")

# -- stories --

STORY_LIMITS = {
    "years_ago": 20,
    "nearby_days": 20,
    "people_together": 30,
    "location": 30,
    "season": 25,
    "random": 20,
}
NEARBY_DAYS = 7
LOCATION_MAX_TICKETS = 10  # cap per location so one big place can't dominate
PEOPLE_PER_STORY = 3

STORY_BATCH_SIZE = int(os.environ.get("STORY_BATCH_SIZE", "10"))
STORY_REFRESH_SECONDS = float(os.environ.get("STORY_REFRESH_SECONDS", "3600"))

# -- service --

SERVICE_HOST = "127.0.0.1"
SERVICE_PORT = int(os.environ.get("PHOTO_STORIES_PORT", "3000"))
