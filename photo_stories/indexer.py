from datetime import date, datetime

from models import Album, DateRange, Location, Person, Photo, make_id


class CorpusIndex:
    """In-memory photo index with album, person and location maps.

    A fresh CorpusIndex is built by every scan, so relationship counts are
    derived from exactly one add_photo() per photo. Re-adding an id first
    unlinks the previous record, which keeps counts equal to membership.
    """

    def __init__(self):
        self.photos: dict[str, Photo] = {}
        self.albums: dict[str, Album] = {}  # album id -> Album
        self.people: dict[str, Person] = {}  # name -> Person
        self.locations: dict[str, Location] = {}  # name -> Location
        self._album_members: dict[str, list[str]] = {}  # album name -> photo ids

    def __len__(self) -> int:
        return len(self.photos)

    # -- mutation (scan engine only) --

    def add_photo(self, photo: Photo) -> None:
        previous = self.photos.get(photo.id)
        if previous is not None:
            self._unlink(previous)

        self.photos[photo.id] = photo
        if photo.album:
            self._album_members.setdefault(photo.album, []).append(photo.id)
        for name in dict.fromkeys(photo.people or ()):
            self._add_person(name, photo)
        if photo.has_location():
            self._add_location(photo)

    def _add_person(self, name: str, photo: Photo) -> None:
        person = self.people.get(name)
        if person is None:
            self.people[name] = Person(
                id=make_id(name), name=name, photo_count=1, cover_photo=photo.id,
            )
        else:
            person.photo_count += 1

    def _add_location(self, photo: Photo) -> None:
        location = self.locations.get(photo.location_name)
        if location is None:
            self.locations[photo.location_name] = Location(
                name=photo.location_name,
                latitude=photo.latitude,
                longitude=photo.longitude,
                photo_count=1,
                photos=[photo.id],
            )
        else:
            location.photo_count += 1
            location.photos.append(photo.id)

    def _unlink(self, photo: Photo) -> None:
        if photo.album in self._album_members:
            members = self._album_members[photo.album]
            if photo.id in members:
                members.remove(photo.id)
        for name in dict.fromkeys(photo.people or ()):
            person = self.people.get(name)
            if person is None:
                continue
            person.photo_count -= 1
            if person.photo_count <= 0:
                del self.people[name]
        if photo.has_location():
            location = self.locations.get(photo.location_name)
            if location is not None and photo.id in location.photos:
                location.photos.remove(photo.id)
                location.photo_count -= 1
                if location.photo_count <= 0:
                    del self.locations[photo.location_name]

    def finalize_album(self, name: str, path: str) -> Album | None:
        """Recompute an album summary from its direct members."""
        member_ids = self._album_members.get(name, [])
        if not member_ids:
            return None

        dates = sorted(
            self.photos[pid].taken_at
            for pid in member_ids
            if self.photos[pid].taken_at is not None
        )
        album = Album(
            id=make_id(name),
            name=name,
            path=path,
            photo_count=len(member_ids),
            cover_photo=member_ids[0],
            date_range=DateRange(start=dates[0], end=dates[-1]) if dates else None,
        )
        self.albums[album.id] = album
        return album

    # -- queries --

    def all_photos(self) -> list[Photo]:
        return list(self.photos.values())

    def get_photo(self, photo_id: str) -> Photo | None:
        return self.photos.get(photo_id)

    def all_albums(self) -> list[Album]:
        return list(self.albums.values())

    def get_album(self, album_id: str) -> Album | None:
        return self.albums.get(album_id)

    def album_photos(self, name: str) -> list[Photo]:
        return [self.photos[pid] for pid in self._album_members.get(name, [])]

    def all_people(self) -> list[Person]:
        """People sorted by photo count, most photographed first."""
        return sorted(self.people.values(), key=lambda p: p.photo_count, reverse=True)

    def person_photos(self, name: str) -> list[Photo]:
        return [p for p in self.photos.values() if p.people and name in p.people]

    def all_locations(self) -> list[Location]:
        """Locations sorted by photo count, most photographed first."""
        return sorted(self.locations.values(), key=lambda loc: loc.photo_count, reverse=True)

    def location_photos(self, name: str) -> list[Photo]:
        location = self.locations.get(name)
        if location is None:
            return []
        return [self.photos[pid] for pid in location.photos]

    def photos_by_date(self, day: date | datetime) -> list[Photo]:
        """Photos taken on the same month and day, in any year."""
        return [
            p for p in self.photos.values()
            if p.taken_at is not None
            and p.taken_at.month == day.month
            and p.taken_at.day == day.day
        ]

    def photos_by_year(self, year: int) -> list[Photo]:
        return [
            p for p in self.photos.values()
            if p.taken_at is not None and p.taken_at.year == year
        ]

    def photos_with_people(self, names: list[str]) -> list[Photo]:
        """Photos whose people include every name. An empty list matches all."""
        wanted = set(names)
        return [p for p in self.photos.values() if wanted <= set(p.people or ())]

    def stats(self) -> dict:
        years = sorted({p.taken_at.year for p in self.photos.values() if p.taken_at is not None})
        return {
            "total_photos": len(self.photos),
            "total_albums": len(self.albums),
            "total_people": len(self.people),
            "total_locations": len(self.locations),
            "year_range": {"start": years[0], "end": years[-1]} if years else None,
        }
