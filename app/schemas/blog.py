from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.rich_text import RichTextDocument


class PostSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    uid: str
    firstPublicationDate: Optional[datetime] = None
    title: str = ""
    subtitle: str = ""
    author: str = ""


class PostPage(BaseModel):
    results: List[PostSummary] = Field(default_factory=list)
    nextCursor: Optional[str] = None


class PostContentBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    heading: str = ""
    body: RichTextDocument = Field(default_factory=list)


class FullPost(PostSummary):
    bannerUrl: Optional[str] = None
    content: List[PostContentBlock] = Field(default_factory=list)


class RenderedPost(BaseModel):
    post: FullPost
    bodyHtml: Dict[int, str] = Field(default_factory=dict)
    readingTimeMinutes: int = Field(default=1, ge=1)
