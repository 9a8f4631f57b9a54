import html
import logging
from typing import Any, Dict, Iterable, List, Optional

from app.exceptions import MalformedContentError
from app.schemas.rich_text import (
    Heading,
    ListItem,
    Paragraph,
    Preformatted,
    RichTextNode,
    Span,
    UnknownNode,
)

logger = logging.getLogger(__name__)

INLINE_TAGS = {"strong": "strong", "em": "em"}
SAFE_URL_PREFIXES = ("http://", "https://", "mailto:", "/")


def parse_document(raw: Any) -> List[RichTextNode]:
    """Turn the content source's rich-text JSON into typed nodes."""
    if not isinstance(raw, list):
        logger.warning(f"Expected a list of rich-text nodes, got {type(raw).__name__}")
        return []

    nodes: List[RichTextNode] = []
    for item in raw:
        try:
            nodes.append(parse_node(item))
        except MalformedContentError as e:
            logger.warning(f"Skipping malformed rich-text node: {e}")
            nodes.append(UnknownNode(source_type="malformed"))
    return nodes


def parse_node(item: Any) -> RichTextNode:
    if not isinstance(item, dict):
        raise MalformedContentError(f"node is a {type(item).__name__}, not an object")

    node_type = item.get("type")
    if not isinstance(node_type, str):
        raise MalformedContentError("node has no type")

    if node_type in ("paragraph", "preformatted", "list-item", "o-list-item") or (
        node_type.startswith("heading")
    ):
        text = item.get("text")
        if text is None:
            text = ""
        if not isinstance(text, str):
            raise MalformedContentError(f"{node_type} text is not a string")
        spans = _parse_spans(item.get("spans"))

        if node_type == "paragraph":
            return Paragraph(text=text, spans=spans)
        if node_type == "preformatted":
            return Preformatted(text=text)
        if node_type in ("list-item", "o-list-item"):
            return ListItem(text=text, ordered=node_type == "o-list-item", spans=spans)

        level = node_type.removeprefix("heading")
        if level.isdigit() and 1 <= int(level) <= 6:
            return Heading(level=int(level), text=text, spans=spans)

    return UnknownNode(source_type=node_type)


def _parse_spans(raw: Any) -> List[Span]:
    if not isinstance(raw, list):
        return []
    spans = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        start, end, span_type = item.get("start"), item.get("end"), item.get("type")
        if not isinstance(start, int) or not isinstance(end, int):
            continue
        if not isinstance(span_type, str):
            continue
        data = item.get("data")
        url = data.get("url") if isinstance(data, dict) else None
        spans.append(
            Span(
                start=start,
                end=end,
                type=span_type,
                url=url if isinstance(url, str) else None,
            )
        )
    return spans


def render(doc: Iterable[RichTextNode]) -> str:
    """Render a rich-text document to HTML. Author text is always escaped."""
    parts: List[str] = []
    open_list: Optional[str] = None

    for node in doc:
        if isinstance(node, UnknownNode):
            logger.warning(f"Dropping unsupported rich-text node: {node.source_type!r}")
            continue

        try:
            rendered = _render_node(node)
        except Exception as e:
            logger.warning(f"Failed to render {node.kind} node, skipping: {e}")
            continue

        wanted_list = None
        if isinstance(node, ListItem):
            wanted_list = "ol" if node.ordered else "ul"
        if open_list and open_list != wanted_list:
            parts.append(f"</{open_list}>")
            open_list = None
        if wanted_list and not open_list:
            parts.append(f"<{wanted_list}>")
            open_list = wanted_list
        parts.append(rendered)

    if open_list:
        parts.append(f"</{open_list}>")
    return "".join(parts)


def _render_node(node: RichTextNode) -> str:
    if isinstance(node, Heading):
        return f"<h{node.level}>{render_inline(node.text, node.spans)}</h{node.level}>"
    if isinstance(node, Paragraph):
        return f"<p>{render_inline(node.text, node.spans)}</p>"
    if isinstance(node, ListItem):
        return f"<li>{render_inline(node.text, node.spans)}</li>"
    if isinstance(node, Preformatted):
        return f"<pre>{html.escape(node.text)}</pre>"
    raise MalformedContentError(f"no renderer for {node.kind}")


def render_inline(text: str, spans: List[Span]) -> str:
    """
    Apply strong/em/hyperlink spans to text.

    Span offsets count UTF-16 code units, as the CMS computes them. Spans may
    overlap, so the text is cut at every span boundary and each segment opens
    and closes its own tags. Output is always well nested.
    """
    offsets = utf16_offsets(text)
    usable = []
    for span in spans:
        start, end = offsets.get(span.start), offsets.get(span.end)
        if start is None or end is None or start >= end:
            continue
        if _span_tag(span) is not None:
            usable.append((start, end, span))
    if not usable:
        return html.escape(text)

    bounds = sorted({0, len(text), *(s for s, _, _ in usable), *(e for _, e, _ in usable)})
    out = []
    for start, end in zip(bounds, bounds[1:]):
        segment = html.escape(text[start:end])
        active = [span for s, e, span in usable if s <= start and end <= e]
        for span in reversed(active):
            segment = _wrap(segment, span)
        out.append(segment)
    return "".join(out)


def utf16_offsets(text: str) -> Dict[int, int]:
    """Map UTF-16 offsets to str indices. Offsets inside a surrogate pair are absent."""
    mapping = {0: 0}
    units = 0
    for index, char in enumerate(text, start=1):
        units += 2 if ord(char) > 0xFFFF else 1
        mapping[units] = index
    return mapping


def _span_tag(span: Span) -> Optional[str]:
    if span.type in INLINE_TAGS:
        return INLINE_TAGS[span.type]
    if span.type == "hyperlink" and is_safe_url(span.url):
        return "a"
    return None


def _wrap(segment: str, span: Span) -> str:
    tag = _span_tag(span)
    if tag == "a":
        href = html.escape(span.url or "", quote=True)
        return f'<a href="{href}" rel="noopener noreferrer">{segment}</a>'
    return f"<{tag}>{segment}</{tag}>"


def is_safe_url(url: Optional[str]) -> bool:
    if not url:
        return False
    url = url.strip()
    if url.startswith("//"):
        return False
    return url.lower().startswith(SAFE_URL_PREFIXES)


def to_plain_text(doc: Iterable[RichTextNode]) -> str:
    """Visible text of a document, space separated. Used for counting only."""
    return " ".join(
        node.text
        for node in doc
        if not isinstance(node, UnknownNode) and node.text
    )
