import argparse
import asyncio
import logging
from pathlib import Path

import httpx

from app import pages
from app.main import create_generator, create_posts_repo
from app.services.pagination import PostsAccumulator
from app.services.static_generator import PageState
from app.settings import settings

logger = logging.getLogger(__name__)


async def export_site(out_dir: Path, slugs, settings_obj=settings, repo=None) -> int:
    """Pre-render the listing and the given posts into out_dir. Returns posts written."""
    async with httpx.AsyncClient(timeout=settings_obj.PRISMIC_TIMEOUT_SECONDS) as client:
        generator = create_generator(
            repo or create_posts_repo(client, settings_obj), settings_obj
        )

        accumulator = PostsAccumulator(await generator.service.list_posts())
        (out_dir / "post").mkdir(parents=True, exist_ok=True)
        (out_dir / "index.html").write_text(
            pages.render_listing_page(
                accumulator.results,
                has_more=accumulator.has_more,
                load_more_href="/?pages=2",
            ),
            encoding="utf-8",
        )

        written = 0
        for slug, state in (await generator.build(slugs)).items():
            if state != PageState.FRESH:
                logger.warning(f"Skipping {slug}: {state.value}")
                continue
            entry = generator.cache.get(slug)
            (out_dir / "post" / f"{slug}.html").write_text(
                pages.render_post_page(entry.rendered), encoding="utf-8"
            )
            written += 1
        return written


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Export pre-rendered blog pages")
    parser.add_argument("out_dir", type=Path, nargs="?", default=Path("out"))
    args = parser.parse_args()

    try:
        count = asyncio.run(export_site(args.out_dir, settings.EAGER_BUILD_SLUGS))
        logger.info(f"Exported {count} posts to {args.out_dir}")
    except Exception as e:
        logger.error(f"Export failed: {e}", exc_info=True)
        raise SystemExit(1)
