import math
from typing import Iterable

from app.schemas.blog import PostContentBlock
from app.services.rich_text import to_plain_text

WORDS_PER_MINUTE = 200


def count_words(text: str) -> int:
    return len(text.split())


def estimate(
    content: Iterable[PostContentBlock], words_per_minute: int = WORDS_PER_MINUTE
) -> int:
    """Minutes needed to read every heading and body. Never less than one."""
    words = sum(
        count_words(block.heading) + count_words(to_plain_text(block.body))
        for block in content
    )
    return max(1, math.ceil(words / words_per_minute))
