from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Span(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: int
    end: int
    type: str
    url: Optional[str] = None


class Heading(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["heading"] = "heading"
    level: int = Field(ge=1, le=6)
    text: str
    spans: List[Span] = Field(default_factory=list)


class Paragraph(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["paragraph"] = "paragraph"
    text: str
    spans: List[Span] = Field(default_factory=list)


class ListItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["list-item"] = "list-item"
    text: str
    ordered: bool = False
    spans: List[Span] = Field(default_factory=list)


class Preformatted(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["preformatted"] = "preformatted"
    text: str


class UnknownNode(BaseModel):
    """Anything the renderer does not know how to display (images, embeds, junk)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown"] = "unknown"
    source_type: str = ""


RichTextNode = Annotated[
    Union[Heading, Paragraph, ListItem, Preformatted, UnknownNode],
    Field(discriminator="kind"),
]

RichTextDocument = List[RichTextNode]
