import logging
from typing import Awaitable, Callable, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from app.schemas.blog import PostPage, PostSummary

logger = logging.getLogger(__name__)

FetchNext = Callable[[str], Awaitable[PostPage]]


class AccumulatorState(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: Tuple[PostSummary, ...] = ()
    cursor: Optional[str] = None


def _merge(
    existing: Tuple[PostSummary, ...], incoming: Iterable[PostSummary]
) -> Tuple[PostSummary, ...]:
    seen = {post.uid for post in existing}
    merged = list(existing)
    for post in incoming:
        if post.uid in seen:
            continue
        seen.add(post.uid)
        merged.append(post)
    return tuple(merged)


def initialize(first_page: PostPage) -> AccumulatorState:
    return AccumulatorState(
        results=_merge((), first_page.results), cursor=first_page.nextCursor
    )


def has_more(state: AccumulatorState) -> bool:
    return state.cursor is not None


async def load_more(state: AccumulatorState, fetch_next: FetchNext) -> AccumulatorState:
    """Fetch the page behind the stored cursor and append the unseen posts."""
    if state.cursor is None:
        return state

    page = await fetch_next(state.cursor)
    return AccumulatorState(
        results=_merge(state.results, page.results), cursor=page.nextCursor
    )


class PostsAccumulator:
    """
    Holds the listing state for one page view.

    Only one load_more runs at a time; a call made while another is in
    flight is ignored. Once closed, results that arrive late are dropped.
    """

    def __init__(self, first_page: PostPage):
        self.state = initialize(first_page)
        self._loading = False
        self._closed = False

    @property
    def results(self) -> Tuple[PostSummary, ...]:
        return self.state.results

    @property
    def has_more(self) -> bool:
        return has_more(self.state)

    @property
    def loading(self) -> bool:
        return self._loading

    async def load_more(self, fetch_next: FetchNext) -> bool:
        """Returns True when the state was replaced."""
        if self._closed:
            logger.debug("Ignoring load_more on a closed accumulator")
            return False
        if self._loading:
            logger.debug("Ignoring load_more while another is in flight")
            return False

        self._loading = True
        try:
            new_state = await load_more(self.state, fetch_next)
        finally:
            self._loading = False

        if self._closed:
            logger.info("Discarding page that arrived after the listing was closed")
            return False
        if new_state is self.state:
            return False
        self.state = new_state
        return True

    def close(self) -> None:
        self._closed = True
