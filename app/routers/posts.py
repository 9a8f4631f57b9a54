import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse

from app import dependencies as deps
from app import pages
from app.exceptions import InvalidCursorError, TransientFetchError
from app.schemas.blog import PostPage
from app.services.pagination import PostsAccumulator
from app.services.posts_service import PostsService
from app.services.static_generator import ServeStatus, StaticGenerator
from app.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=HTMLResponse)
async def listing_page(
    pages_requested: int = Query(1, alias="pages", ge=1),
    service: PostsService = Depends(deps.get_posts_service),
    current_settings: Settings = Depends(deps.get_settings),
):
    """Post listing; ?pages=N shows the first N pages of posts."""
    page_count = min(pages_requested, current_settings.MAX_LISTING_PAGES)
    try:
        accumulator = PostsAccumulator(await service.list_posts())
        for _ in range(page_count - 1):
            if not accumulator.has_more:
                break
            await accumulator.load_more(service.list_posts)
        html = pages.render_listing_page(
            accumulator.results,
            has_more=accumulator.has_more,
            load_more_href=f"/?pages={page_count + 1}",
        )
    except HTTPException:
        raise
    except TransientFetchError as e:
        logger.warning(f"Content source unavailable while listing posts: {e}")
        return HTMLResponse(pages.render_error_page(), status_code=503)
    except Exception as e:
        logger.error(f"Unexpected error listing posts: {e}")
        return HTMLResponse(pages.render_error_page(), status_code=500)
    return HTMLResponse(html)


@router.get("/posts", response_model=PostPage)
async def list_posts(
    cursor: Optional[str] = None,
    service: PostsService = Depends(deps.get_posts_service),
):
    """One page of post summaries; pass nextCursor back to get the following page."""
    try:
        return await service.list_posts(cursor)
    except HTTPException:
        raise
    except InvalidCursorError as e:
        logger.warning(f"Rejected cursor {cursor!r}: {e}")
        raise HTTPException(status_code=400, detail="Invalid cursor")
    except TransientFetchError as e:
        logger.warning(f"Content source unavailable while listing posts: {e}")
        raise HTTPException(status_code=503, detail="Content source unavailable")
    except Exception as e:
        logger.error(f"Unexpected error listing posts: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve posts")


@router.get("/post/{slug}", response_class=HTMLResponse)
async def post_page(
    slug: str,
    generator: StaticGenerator = Depends(deps.get_static_generator),
    current_settings: Settings = Depends(deps.get_settings),
):
    try:
        result = await generator.serve(slug, wait=current_settings.FALLBACK_BLOCKING)
        headers = {"X-Page-State": result.state.value}

        if result.status == ServeStatus.FOUND:
            return HTMLResponse(pages.render_post_page(result.post), headers=headers)
        if result.status == ServeStatus.NOT_FOUND:
            return HTMLResponse(
                pages.render_not_found_page(slug), status_code=404, headers=headers
            )
        if result.status == ServeStatus.PENDING:
            return HTMLResponse(
                pages.render_loading_page(), status_code=202, headers=headers
            )
        return HTMLResponse(
            pages.render_error_page(), status_code=503, headers=headers
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error serving post {slug}: {e}")
        return HTMLResponse(pages.render_error_page(), status_code=500)


@router.post("/post/{slug}/retry")
async def retry_post(
    slug: str,
    generator: StaticGenerator = Depends(deps.get_static_generator),
):
    """Forget that a slug was missing, e.g. right after publishing it."""
    cleared = generator.retry(slug)
    return {"slug": slug, "cleared": cleared, "state": generator.state(slug).value}
