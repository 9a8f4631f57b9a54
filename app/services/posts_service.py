import logging
from typing import Dict, Optional

from app.schemas.blog import FullPost, PostPage, RenderedPost
from app.services import reading_time, rich_text

logger = logging.getLogger(__name__)


class PostsService:
    def __init__(
        self,
        repo,
        page_size: int = 100,
        words_per_minute: int = reading_time.WORDS_PER_MINUTE,
    ):
        self.repo = repo
        self.page_size = page_size
        self.words_per_minute = words_per_minute

    async def list_posts(self, cursor: Optional[str] = None) -> PostPage:
        return await self.repo.list_posts(page_size=self.page_size, cursor=cursor)

    async def get_post(self, slug: str) -> RenderedPost:
        """Fetch and render a post. NotFoundError and fetch errors propagate."""
        post = await self.repo.get_post_by_slug(slug)
        return self.render_post(post)

    def render_post(self, post: FullPost) -> RenderedPost:
        body_html: Dict[int, str] = {}
        for index, block in enumerate(post.content):
            try:
                body_html[index] = rich_text.render(block.body)
            except Exception as e:
                logger.warning(f"Failed to render block {index} of {post.uid}: {e}")
                body_html[index] = ""

        try:
            minutes = reading_time.estimate(post.content, self.words_per_minute)
        except Exception as e:
            logger.warning(f"Failed to estimate reading time for {post.uid}: {e}")
            minutes = 1

        return RenderedPost(post=post, bodyHtml=body_html, readingTimeMinutes=minutes)
