"""
Pre-rendering and incremental regeneration of post pages.

Pages listed for eager build are rendered once at startup. Any other slug
is fetched and rendered on its first request. Cached pages older than the
revalidation window are still served while a background task re-renders
them. Slugs the content source does not know are remembered as missing for
a short while.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, Optional

from app.exceptions import ContentSourceError, NotFoundError, RenderFailure
from app.schemas.blog import RenderedPost

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

DEFAULT_REVALIDATE_SECONDS = 60 * 30
DEFAULT_MISSING_TTL_SECONDS = 60


class PageState(str, Enum):
    UNBUILT = "unbuilt"
    BUILDING = "building"
    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


class ServeStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    PENDING = "pending"


@dataclass
class CacheEntry:
    stored_at: float
    rendered: Optional[RenderedPost] = None

    @property
    def missing(self) -> bool:
        return self.rendered is None


@dataclass
class ServeResult:
    status: ServeStatus
    state: PageState
    post: Optional[RenderedPost] = None
    error: Optional[Exception] = None


class PageCache:
    """Slug-keyed store of rendered pages, timed by an injectable clock."""

    def __init__(self, clock: Clock = time.monotonic):
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, slug: str) -> Optional[CacheEntry]:
        return self._entries.get(slug)

    def age(self, entry: CacheEntry) -> float:
        return self.clock() - entry.stored_at

    def put(self, slug: str, rendered: RenderedPost) -> None:
        self._entries[slug] = CacheEntry(stored_at=self.clock(), rendered=rendered)

    def mark_missing(self, slug: str) -> None:
        self._entries[slug] = CacheEntry(stored_at=self.clock())

    def forget(self, slug: str) -> None:
        self._entries.pop(slug, None)

    def slugs(self):
        return [slug for slug, entry in self._entries.items() if not entry.missing]

    def __contains__(self, slug: str) -> bool:
        return slug in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class StaticGenerator:
    def __init__(
        self,
        service,
        cache: Optional[PageCache] = None,
        *,
        revalidate_seconds: float = DEFAULT_REVALIDATE_SECONDS,
        missing_ttl_seconds: float = DEFAULT_MISSING_TTL_SECONDS,
    ):
        self.service = service
        self.cache = cache if cache is not None else PageCache()
        self.revalidate_seconds = revalidate_seconds
        self.missing_ttl_seconds = missing_ttl_seconds
        self._in_flight: Dict[str, asyncio.Task] = {}

    def state(self, slug: str) -> PageState:
        task = self._in_flight.get(slug)
        if task is not None and not task.done():
            return PageState.BUILDING
        return self._cached_state(slug)

    def _cached_state(self, slug: str) -> PageState:
        entry = self.cache.get(slug)
        if entry is None:
            return PageState.UNBUILT
        if entry.missing:
            return PageState.MISSING
        if self.cache.age(entry) < self.revalidate_seconds:
            return PageState.FRESH
        return PageState.STALE

    async def build(self, slugs: Iterable[str]) -> Dict[str, PageState]:
        """Eagerly render the given slugs, one at a time."""
        outcome: Dict[str, PageState] = {}
        for slug in dict.fromkeys(slugs):
            result = await self._ensure_task(slug)
            outcome[slug] = result.state
        built = sum(1 for state in outcome.values() if state == PageState.FRESH)
        logger.info(f"Pre-rendered {built} of {len(outcome)} eager pages")
        return outcome

    async def serve(self, slug: str, wait: bool = True) -> ServeResult:
        entry = self.cache.get(slug)

        if entry is not None and entry.missing:
            if self.cache.age(entry) < self.missing_ttl_seconds:
                return ServeResult(ServeStatus.NOT_FOUND, PageState.MISSING)
            logger.info(f"Missing marker for {slug} expired, looking it up again")
            self.cache.forget(slug)
            entry = None

        if entry is None:
            task = self._ensure_task(slug)
            if not wait:
                return ServeResult(ServeStatus.PENDING, PageState.BUILDING)
            # the build keeps going even if this request is abandoned
            return await asyncio.shield(task)

        if self.cache.age(entry) < self.revalidate_seconds:
            return ServeResult(ServeStatus.FOUND, PageState.FRESH, entry.rendered)

        self._ensure_task(slug)
        return ServeResult(ServeStatus.FOUND, PageState.STALE, entry.rendered)

    def retry(self, slug: str) -> bool:
        """Drop a missing marker so the next request asks the content source again."""
        entry = self.cache.get(slug)
        if entry is None or not entry.missing:
            return False
        self.cache.forget(slug)
        logger.info(f"Cleared missing marker for {slug}")
        return True

    async def wait_idle(self) -> None:
        while True:
            pending = [task for task in self._in_flight.values() if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    def _ensure_task(self, slug: str) -> "asyncio.Task[ServeResult]":
        task = self._in_flight.get(slug)
        if task is not None and not task.done():
            return task

        task = asyncio.create_task(self._rebuild(slug), name=f"render:{slug}")
        self._in_flight[slug] = task

        def _release(done: asyncio.Task) -> None:
            if self._in_flight.get(slug) is done:
                del self._in_flight[slug]

        task.add_done_callback(_release)
        return task

    async def _rebuild(self, slug: str) -> ServeResult:
        try:
            rendered = await self.service.get_post(slug)
        except NotFoundError:
            logger.info(f"Post {slug} does not exist, marking as missing")
            self.cache.mark_missing(slug)
            return ServeResult(ServeStatus.NOT_FOUND, PageState.MISSING)
        except ContentSourceError as e:
            logger.warning(f"Fetching {slug} failed, keeping any cached page: {e}")
            return ServeResult(ServeStatus.FAILED, self._cached_state(slug), error=e)
        except Exception as e:
            failure = RenderFailure(slug, e)
            logger.error(str(failure), exc_info=True)
            return ServeResult(
                ServeStatus.FAILED, self._cached_state(slug), error=failure
            )

        self.cache.put(slug, rendered)
        logger.debug(f"Rendered {slug} ({rendered.readingTimeMinutes} min read)")
        return ServeResult(ServeStatus.FOUND, PageState.FRESH, rendered)
