import asyncio

from app.exceptions import RenderFailure, TransientFetchError
from app.services.posts_service import PostsService
from app.services.static_generator import (
    PageCache,
    PageState,
    ServeStatus,
    StaticGenerator,
)
from tests.conftest import FakeClock, FakePostsRepo, make_post


def make_generator(posts=(), clock=None, **kwargs):
    repo = FakePostsRepo(posts=list(posts))
    clock = clock or FakeClock()
    generator = StaticGenerator(
        PostsService(repo),
        PageCache(clock),
        revalidate_seconds=kwargs.pop("revalidate_seconds", 1800),
        missing_ttl_seconds=kwargs.pop("missing_ttl_seconds", 60),
    )
    return generator, repo, clock


def test_build_phase_renders_only_the_allow_list():
    generator, repo, _ = make_generator([make_post("a"), make_post("b"), make_post("c")])

    async def scenario():
        built = await generator.build(["a", "b", "a"])
        served = await generator.serve("c")
        missing = await generator.serve("d")
        return built, served, missing

    built, served_c, served_d = asyncio.run(scenario())

    assert built == {"a": PageState.FRESH, "b": PageState.FRESH}
    assert repo.fetches("a") == 1
    assert served_c.status == ServeStatus.FOUND
    assert served_c.post.post.uid == "c"
    assert served_d.status == ServeStatus.NOT_FOUND
    assert generator.state("d") == PageState.MISSING
    assert sorted(generator.cache.slugs()) == ["a", "b", "c"]


def test_build_phase_continues_past_failures():
    generator, repo, _ = make_generator([make_post("a"), make_post("b")])
    repo.errors["a"] = TransientFetchError("timeout")

    built = asyncio.run(generator.build(["a", "b", "ghost"]))

    assert built == {
        "a": PageState.UNBUILT,
        "b": PageState.FRESH,
        "ghost": PageState.MISSING,
    }


def test_fresh_page_is_served_from_cache():
    generator, repo, clock = make_generator([make_post("a")])

    async def scenario():
        first = await generator.serve("a")
        clock.advance(60)
        second = await generator.serve("a")
        third = await generator.serve("a")
        return first, second, third

    first, second, third = asyncio.run(scenario())

    assert repo.fetches("a") == 1
    assert first.state == PageState.FRESH
    assert second.state == third.state == PageState.FRESH
    assert second.post is first.post


def test_concurrent_misses_share_one_fetch():
    generator, repo, _ = make_generator([make_post("a")])

    async def scenario():
        repo.gate = asyncio.Event()
        first = asyncio.create_task(generator.serve("a"))
        second = asyncio.create_task(generator.serve("a"))
        await asyncio.sleep(0)
        assert generator.state("a") == PageState.BUILDING
        repo.gate.set()
        return await asyncio.gather(first, second)

    first, second = asyncio.run(scenario())

    assert repo.fetches("a") == 1
    assert first.post is second.post


def test_stale_page_is_served_then_revalidated():
    generator, repo, clock = make_generator([make_post("a", title="Old")])

    async def scenario():
        await generator.build(["a"])
        clock.advance(1801)
        assert generator.state("a") == PageState.STALE

        repo.posts["a"] = make_post("a", title="New")
        repo.gate = asyncio.Event()
        stale = await generator.serve("a")
        again = await generator.serve("a")
        assert generator.state("a") == PageState.BUILDING
        repo.gate.set()
        await generator.wait_idle()
        fresh = await generator.serve("a")
        return stale, again, fresh

    stale, again, fresh = asyncio.run(scenario())

    assert stale.status == ServeStatus.FOUND
    assert stale.state == PageState.STALE
    assert stale.post.post.title == "Old"
    assert again.post.post.title == "Old"
    assert repo.fetches("a") == 2  # build + one revalidation
    assert fresh.state == PageState.FRESH
    assert fresh.post.post.title == "New"


def test_failed_revalidation_keeps_stale_page():
    generator, repo, clock = make_generator([make_post("a", title="Old")])

    async def scenario():
        await generator.build(["a"])
        clock.advance(2000)
        repo.errors["a"] = TransientFetchError("502 from cms")
        served = await generator.serve("a")
        await generator.wait_idle()
        return served

    served = asyncio.run(scenario())

    assert served.status == ServeStatus.FOUND
    assert served.post.post.title == "Old"
    assert generator.state("a") == PageState.STALE
    assert generator.cache.get("a").rendered.post.title == "Old"


def test_blocking_miss_reports_fetch_failure_without_caching():
    generator, repo, _ = make_generator([make_post("a")])
    repo.errors["a"] = TransientFetchError("timeout")

    result = asyncio.run(generator.serve("a"))

    assert result.status == ServeStatus.FAILED
    assert isinstance(result.error, TransientFetchError)
    assert generator.state("a") == PageState.UNBUILT
    assert "a" not in generator.cache


def test_unexpected_error_becomes_render_failure():
    generator, repo, _ = make_generator([make_post("a")])
    repo.errors["a"] = KeyError("data")

    result = asyncio.run(generator.serve("a"))

    assert result.status == ServeStatus.FAILED
    assert isinstance(result.error, RenderFailure)
    assert result.error.slug == "a"


def test_missing_marker_expires_and_can_be_retried():
    generator, repo, clock = make_generator(missing_ttl_seconds=60)

    async def scenario():
        first = await generator.serve("later")
        second = await generator.serve("later")
        calls_while_cached = repo.fetches("later")

        repo.posts["later"] = make_post("later")
        assert generator.retry("later") is True
        assert generator.state("later") == PageState.UNBUILT
        retried = await generator.serve("later")
        return first, second, calls_while_cached, retried

    first, second, calls_while_cached, retried = asyncio.run(scenario())

    assert first.status == second.status == ServeStatus.NOT_FOUND
    assert calls_while_cached == 1
    assert retried.status == ServeStatus.FOUND


def test_missing_marker_is_rechecked_after_ttl():
    generator, repo, clock = make_generator(missing_ttl_seconds=60)

    async def scenario():
        await generator.serve("later")
        clock.advance(61)
        return await generator.serve("later")

    result = asyncio.run(scenario())

    assert result.status == ServeStatus.NOT_FOUND
    assert repo.fetches("later") == 2


def test_retry_ignores_built_pages():
    generator, _, _ = make_generator([make_post("a")])

    asyncio.run(generator.build(["a"]))

    assert generator.retry("a") is False
    assert generator.retry("never-seen") is False
    assert generator.state("a") == PageState.FRESH


def test_non_blocking_miss_returns_pending_then_page():
    generator, repo, _ = make_generator([make_post("a")])

    async def scenario():
        pending = await generator.serve("a", wait=False)
        await generator.wait_idle()
        ready = await generator.serve("a", wait=False)
        return pending, ready

    pending, ready = asyncio.run(scenario())

    assert pending.status == ServeStatus.PENDING
    assert pending.state == PageState.BUILDING
    assert ready.status == ServeStatus.FOUND
    assert repo.fetches("a") == 1


def test_abandoned_request_does_not_cancel_build():
    generator, repo, _ = make_generator([make_post("a")])

    async def scenario():
        repo.gate = asyncio.Event()
        request = asyncio.create_task(generator.serve("a"))
        await asyncio.sleep(0)
        request.cancel()
        await asyncio.sleep(0)
        repo.gate.set()
        await generator.wait_idle()
        return request.cancelled()

    assert asyncio.run(scenario()) is True
    assert generator.state("a") == PageState.FRESH
