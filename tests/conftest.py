import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional

from app.exceptions import NotFoundError
from app.schemas.blog import FullPost, PostContentBlock, PostPage, PostSummary
from app.schemas.rich_text import Paragraph


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePostsRepo:
    """
    In-memory content source.
    `pages` maps a cursor (None for the first page) to the PostPage behind it.
    `errors` maps a slug to an exception raised on its next lookup.
    Set `gate` to an asyncio.Event to hold lookups until it is set.
    """

    def __init__(
        self,
        posts: Optional[List[FullPost]] = None,
        pages: Optional[Dict[Optional[str], PostPage]] = None,
    ):
        self.posts = {post.uid: post for post in posts or []}
        self.pages = pages or {None: PostPage()}
        self.errors: Dict[str, Exception] = {}
        self.gate: Optional[asyncio.Event] = None
        self.calls = []

    async def list_posts(self, page_size: int, cursor: Optional[str] = None):
        self.calls.append(("list", cursor))
        return self.pages[cursor]

    async def get_post_by_slug(self, slug: str) -> FullPost:
        self.calls.append(("get", slug))
        if self.gate is not None:
            await self.gate.wait()
        error = self.errors.pop(slug, None)
        if error is not None:
            raise error
        if slug not in self.posts:
            raise NotFoundError(slug)
        return self.posts[slug]

    def fetches(self, slug: str) -> int:
        return self.calls.count(("get", slug))


def make_summary(uid: str, title: Optional[str] = None) -> PostSummary:
    return PostSummary(
        uid=uid,
        firstPublicationDate=datetime(2021, 3, 15, 19, 25, tzinfo=timezone.utc),
        title=title or uid.replace("-", " ").title(),
        subtitle=f"About {uid}",
        author="Ada Lovelace",
    )


def make_post(uid: str, body: str = "Hello there world", title: Optional[str] = None):
    summary = make_summary(uid, title)
    return FullPost(
        **summary.model_dump(),
        bannerUrl=f"https://images.example.com/{uid}.png",
        content=[
            PostContentBlock(heading="Intro", body=[Paragraph(text=body)]),
        ],
    )
