"""Memory stories assembled by sampling the corpus index.

Every generator returns a Story or None when the corpus cannot support
that kind of story right now. Photos inside a story are in random order.
The clock and random source are injectable so tests can pin both.
"""

import calendar
import logging
import random
from collections.abc import Callable
from datetime import date, datetime

from config import (
    LOCATION_MAX_TICKETS,
    NEARBY_DAYS,
    PEOPLE_PER_STORY,
    STORY_BATCH_SIZE,
    STORY_LIMITS,
)
from indexer import CorpusIndex
from models import DateRange, Photo, Story, StoryMetadata

logger = logging.getLogger(__name__)

STORY_KINDS = ("years_ago", "people_together", "location", "season", "random")

# Three-month seasons; winter spans the year boundary
SEASONS = (
    ("spring", (3, 4, 5)),
    ("summer", (6, 7, 8)),
    ("autumn", (9, 10, 11)),
    ("winter", (12, 1, 2)),
)


def season_for_month(month: int) -> tuple[str, tuple[int, int, int]]:
    for name, months in SEASONS:
        if month in months:
            return name, months
    raise ValueError(f"Invalid month: {month}")


def _join(items: list[str]) -> str:
    """'A', 'A and B', 'A, B and C'."""
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


def _unique(values) -> list:
    return list(dict.fromkeys(v for v in values if v))


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


class StoryGenerator:
    def __init__(
        self,
        scanner,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._scanner = scanner
        self._rng = rng or random.Random()
        self._clock = clock or datetime.now

    @property
    def _index(self) -> CorpusIndex:
        return self._scanner.index

    def _shuffle_and_limit(self, photos: list[Photo], limit: int) -> list[Photo]:
        return self._rng.sample(photos, min(limit, len(photos)))

    def _stamp(self, now: datetime) -> int:
        return int(now.timestamp() * 1000)

    # -- dispatch --

    def generate(self, kind: str) -> Story | None:
        generators = {
            "years_ago": self.generate_years_ago_story,
            "people_together": self.generate_people_together_story,
            "location": self.generate_location_story,
            "season": self.generate_season_story,
            "random": self.generate_random_photos_story,
        }
        if kind not in generators:
            raise ValueError(f"Unknown story kind: {kind}")
        return generators[kind]()

    def generate_random_story(self, exclude: tuple[str, ...] = ()) -> Story | None:
        """A story of a randomly chosen kind."""
        kinds = [k for k in STORY_KINDS if k not in exclude]
        if not kinds:
            return None
        return self.generate(self._rng.choice(kinds))

    # -- years ago --

    def generate_years_ago_story(self, target: date | datetime | None = None) -> Story | None:
        """Photos from this month and day in an earlier year.

        Falls back to photos within NEARBY_DAYS of the date in earlier
        years when no year has an exact match.
        """
        today = target or self._clock()
        index = self._index

        by_year: dict[int, list[Photo]] = {}
        for photo in index.photos_by_date(today):
            by_year.setdefault(photo.taken_at.year, []).append(photo)

        if not by_year:
            return self._nearby_days_story(index, today)

        year = self._rng.choice(sorted(by_year))
        years_ago = today.year - year
        if years_ago <= 0:
            return None
        photos = by_year[year]

        locations = _unique(p.location_name for p in photos)
        people = _unique(name for p in photos for name in (p.people or ()))

        subtitle_parts = []
        if locations:
            subtitle_parts.append(f"In {_join(locations[:2])}")
        if people:
            subtitle_parts.append(f"with {_join(people[:3])}")

        now = self._clock()
        return Story(
            id=f"years-ago-{year}-{today.month}-{today.day}",
            type="years_ago",
            title=f"{_plural(years_ago, 'year')} ago today",
            subtitle=", ".join(subtitle_parts) or None,
            description=f"Memories from {calendar.month_name[today.month]} {today.day}, {year}",
            photos=self._shuffle_and_limit(photos, STORY_LIMITS["years_ago"]),
            created_at=now,
            metadata=StoryMetadata(
                years_ago=years_ago,
                people=people or None,
                location=locations[0] if locations else None,
            ),
        )

    def _nearby_days_story(self, index: CorpusIndex, today: date | datetime) -> Story | None:
        target = date(today.year, today.month, today.day)
        nearby = []
        for photo in index.photos.values():
            if photo.taken_at is None or photo.taken_at.year >= target.year:
                continue
            taken = photo.taken_at
            try:
                same_year = date(target.year, taken.month, taken.day)
            except ValueError:
                # Feb 29 in a non-leap target year
                same_year = date(target.year, taken.month, 28)
            if abs((target - same_year).days) <= NEARBY_DAYS:
                nearby.append(photo)

        if not nearby:
            return None

        now = self._clock()
        return Story(
            id=f"nearby-days-{self._stamp(now)}",
            type="years_ago",
            title="This week in past years",
            subtitle="Around this time in years gone by...",
            photos=self._shuffle_and_limit(nearby, STORY_LIMITS["nearby_days"]),
            created_at=now,
        )

    # -- people --

    def generate_people_together_story(self) -> Story | None:
        """Photos in which two or three randomly chosen people all appear."""
        index = self._index
        people = index.all_people()
        if len(people) < 2:
            return None

        selected = self._rng.sample(people, min(PEOPLE_PER_STORY, len(people)))
        names = [p.name for p in selected]

        photos = index.photos_with_people(names)
        if photos:
            return self._people_story(names, photos)

        if len(names) > 2:
            names = names[:2]
            photos = index.photos_with_people(names)
            if photos:
                return self._people_story(names, photos)
        return None

    def _people_story(self, names: list[str], photos: list[Photo]) -> Story:
        locations = _unique(p.location_name for p in photos)
        years = sorted({p.taken_at.year for p in photos if p.taken_at is not None})

        description = ""
        if len(years) > 1:
            description = f"Together from {years[0]} to {years[-1]}"
        elif years:
            description = f"Memories from {years[0]}"
        if locations:
            where = _join(locations[:3])
            description = f"{description}, across {where}" if description else f"Stories from {where}"

        now = self._clock()
        return Story(
            id=f"people-{'-'.join(names)}-{self._stamp(now)}",
            type="people_together",
            title=" & ".join(names),
            subtitle=f"{_plural(len(photos), 'photo')} together",
            description=description or None,
            photos=self._shuffle_and_limit(photos, STORY_LIMITS["people_together"]),
            created_at=now,
            metadata=StoryMetadata(people=list(names)),
        )

    # -- location --

    def generate_location_story(self) -> Story | None:
        """All photos of one place, chosen with weight min(photo count, LOCATION_MAX_TICKETS)."""
        index = self._index
        tickets = [
            loc
            for loc in index.all_locations()
            for _ in range(min(loc.photo_count, LOCATION_MAX_TICKETS))
        ]
        if not tickets:
            return None

        location = self._rng.choice(tickets)
        photos = index.location_photos(location.name)
        if not photos:
            return None

        people = _unique(name for p in photos for name in (p.people or ()))
        years = sorted({p.taken_at.year for p in photos if p.taken_at is not None})

        description = ""
        if len(years) > 1:
            description = f"Memories from {years[0]} to {years[-1]}"
        elif years:
            description = f"A story from {years[0]}"
        if people:
            who = _join(people[:4])
            description = f"{description}, with {who}" if description else f"Time with {who}"

        now = self._clock()
        return Story(
            id=f"location-{location.name}-{self._stamp(now)}",
            type="location",
            title=f"Stories from {location.name}",
            subtitle=f"{_plural(len(photos), 'photo')} of memories",
            description=description or None,
            photos=self._shuffle_and_limit(photos, STORY_LIMITS["location"]),
            created_at=now,
            metadata=StoryMetadata(location=location.name, people=people or None),
        )

    # -- season --

    def generate_season_story(self) -> Story | None:
        """The current season in one randomly chosen earlier year."""
        now = self._clock()
        season, months = season_for_month(now.month)

        by_year: dict[int, list[Photo]] = {}
        for photo in self._index.photos.values():
            taken = photo.taken_at
            if taken is None or taken.month not in months or taken.year >= now.year:
                continue
            by_year.setdefault(taken.year, []).append(photo)

        if not by_year:
            return None

        year = self._rng.choice(sorted(by_year))
        photos = by_year[year]
        locations = _unique(p.location_name for p in photos)
        dates = sorted(p.taken_at for p in photos)

        return Story(
            id=f"season-{season}-{year}",
            type="season",
            title=f"{season.capitalize()} of {year}",
            subtitle=f"In {_join(locations[:2])}" if locations else None,
            photos=self._shuffle_and_limit(photos, STORY_LIMITS["season"]),
            created_at=now,
            metadata=StoryMetadata(date_range=DateRange(start=dates[0], end=dates[-1])),
        )

    # -- random --

    def generate_random_photos_story(self) -> Story | None:
        photos = self._index.all_photos()
        if not photos:
            return None

        now = self._clock()
        return Story(
            id=f"random-{self._stamp(now)}",
            type="random",
            title="Random memories",
            subtitle=f"Picked from {_plural(len(photos), 'photo')}",
            photos=self._shuffle_and_limit(photos, STORY_LIMITS["random"]),
            created_at=now,
        )

    # -- batches --

    def generate_multiple_stories(self, count: int = STORY_BATCH_SIZE) -> list[Story]:
        """Up to ``count`` stories, led by today's years-ago story when there is one.

        Other kinds appear at most once each in random order. Any shortfall
        is topped up with randomly chosen kinds (never years-ago), stopping
        after two consecutive empty draws.
        """
        if count <= 0:
            return []

        stories: list[Story] = []
        seen: set[str] = set()

        story = self.generate_years_ago_story()
        if story is not None:
            stories.append(story)
            seen.add(story.type)

        others = [k for k in STORY_KINDS if k != "years_ago"]
        for kind in self._rng.sample(others, len(others)):
            if len(stories) >= count:
                break
            story = self.generate(kind)
            if story is not None and story.type not in seen:
                stories.append(story)
                seen.add(story.type)

        misses = 0
        while len(stories) < count and misses < 2:
            story = self.generate_random_story(exclude=("years_ago",))
            if story is None:
                misses += 1
                continue
            misses = 0
            stories.append(story)

        logger.debug("Generated %d stories: %s", len(stories), [s.type for s in stories])
        return stories
