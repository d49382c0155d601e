"""Latest batch of generated stories, replaced wholesale on a timer or on demand."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from config import STORY_BATCH_SIZE, STORY_REFRESH_SECONDS
from models import Story
from stories import StoryGenerator

logger = logging.getLogger(__name__)


class StoryCache:
    """Readers get an immutable tuple; refresh() builds a new batch before swapping it in."""

    def __init__(
        self,
        generator: StoryGenerator,
        count: int = STORY_BATCH_SIZE,
        interval: float = STORY_REFRESH_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        self._generator = generator
        self._count = count
        self._interval = interval
        self._clock = clock or datetime.now
        self._stories: tuple[Story, ...] = ()
        self._generated_at: datetime | None = None
        self._refresh_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def stories(self) -> tuple[Story, ...]:
        return self._stories

    @property
    def generated_at(self) -> datetime | None:
        return self._generated_at

    def refresh(self) -> tuple[Story, ...]:
        with self._refresh_lock:
            batch = tuple(self._generator.generate_multiple_stories(self._count))
            self._stories = batch
            self._generated_at = self._clock()
        logger.info("Generated %d stories", len(batch))
        return batch

    # -- periodic refresh --

    def start(self) -> None:
        """Refresh now and then every ``interval`` seconds on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self.refresh()
        self._thread = threading.Thread(target=self._run, name="story-refresh", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.refresh()
            except Exception:
                logger.warning("Story refresh failed, keeping previous batch", exc_info=True)
