import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.repos.posts_repo import PrismicPostsRepo
from app.routers import posts
from app.services.posts_service import PostsService
from app.services.static_generator import StaticGenerator
from app.settings import Settings, settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper()),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_posts_repo(client: httpx.AsyncClient, settings_obj: Settings):
    return PrismicPostsRepo(
        client,
        api_url=settings_obj.PRISMIC_API_URL,
        access_token=settings_obj.PRISMIC_ACCESS_TOKEN,
        document_type=settings_obj.PRISMIC_DOCUMENT_TYPE,
    )


def create_generator(repo, settings_obj: Settings) -> StaticGenerator:
    service = PostsService(
        repo,
        page_size=settings_obj.LISTING_PAGE_SIZE,
        words_per_minute=settings_obj.READING_WORDS_PER_MINUTE,
    )
    return StaticGenerator(
        service,
        revalidate_seconds=settings_obj.REVALIDATE_SECONDS,
        missing_ttl_seconds=settings_obj.MISSING_TTL_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = httpx.AsyncClient(timeout=settings.PRISMIC_TIMEOUT_SECONDS)
    generator = create_generator(create_posts_repo(client, settings), settings)
    app.state.posts_service = generator.service
    app.state.static_generator = generator

    built = await generator.build(settings.EAGER_BUILD_SLUGS)
    logger.info(f"Eager build finished: {sorted(built)}")

    try:
        yield
    finally:
        await generator.wait_idle()
        await client.aclose()
        logger.info("Content source client closed")


app = FastAPI(title="spacetraveling", description="Blog pages rendered from Prismic")
app.router.lifespan_context = lifespan

app.include_router(posts.router)
