import asyncio
import logging

import pytest

from app.exceptions import NotFoundError
from app.schemas.blog import FullPost, PostContentBlock, PostPage, RenderedPost
from app.schemas.rich_text import ListItem, Paragraph
from app.services import posts_service as posts_service_module
from app.services.posts_service import PostsService
from tests.conftest import FakePostsRepo, make_post, make_summary


def test_list_posts_forwards_page_size_and_cursor():
    page = PostPage(results=[make_summary("a")], nextCursor=None)
    repo = FakePostsRepo(pages={"c1": page})
    received = {}

    async def list_posts(page_size, cursor=None):
        received.update(page_size=page_size, cursor=cursor)
        return await FakePostsRepo.list_posts(repo, page_size, cursor)

    repo.list_posts = list_posts
    service = PostsService(repo, page_size=5)

    result = asyncio.run(service.list_posts("c1"))

    assert result is page
    assert received == {"page_size": 5, "cursor": "c1"}


def test_get_post_renders_every_block_in_order():
    post = FullPost(
        uid="hello",
        title="Hello",
        content=[
            PostContentBlock(heading="One", body=[Paragraph(text="first")]),
            PostContentBlock(heading="Two", body=[ListItem(text="a"), ListItem(text="b")]),
        ],
    )
    service = PostsService(FakePostsRepo(posts=[post]))

    rendered = asyncio.run(service.get_post("hello"))

    assert isinstance(rendered, RenderedPost)
    assert rendered.post is post
    assert rendered.bodyHtml == {
        0: "<p>first</p>",
        1: "<ul><li>a</li><li>b</li></ul>",
    }
    assert rendered.readingTimeMinutes == 1


def test_get_post_uses_configured_reading_speed():
    post = make_post("long", body=" ".join(["word"] * 30))
    service = PostsService(FakePostsRepo(posts=[post]), words_per_minute=10)

    rendered = asyncio.run(service.get_post("long"))

    # 30 body words + "Intro"
    assert rendered.readingTimeMinutes == 4


def test_get_post_propagates_not_found():
    service = PostsService(FakePostsRepo())

    with pytest.raises(NotFoundError):
        asyncio.run(service.get_post("missing"))


def test_render_post_degrades_when_a_block_fails(monkeypatch, caplog):
    post = FullPost(
        uid="broken",
        content=[
            PostContentBlock(heading="ok", body=[Paragraph(text="fine")]),
            PostContentBlock(heading="bad", body=[Paragraph(text="boom")]),
        ],
    )
    real_render = posts_service_module.rich_text.render

    def flaky_render(doc):
        if doc and doc[0].text == "boom":
            raise RuntimeError("renderer exploded")
        return real_render(doc)

    monkeypatch.setattr(posts_service_module.rich_text, "render", flaky_render)

    def failing_estimate(content, words_per_minute):
        raise RuntimeError("estimator exploded")

    monkeypatch.setattr(posts_service_module.reading_time, "estimate", failing_estimate)

    with caplog.at_level(logging.WARNING):
        rendered = PostsService(FakePostsRepo()).render_post(post)

    assert rendered.bodyHtml == {0: "<p>fine</p>", 1: ""}
    assert rendered.readingTimeMinutes == 1
    assert "block 1 of broken" in caplog.text
