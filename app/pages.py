"""HTML pages for the listing and post routes, rendered with Jinja2."""

from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.schemas.blog import PostSummary, RenderedPost
from app.settings import settings

TEMPLATE_DIR = Path(__file__).parent / "templates"
LOADING_REFRESH_SECONDS = 2
PT_BR_MONTHS = (
    "jan", "fev", "mar", "abr", "mai", "jun",
    "jul", "ago", "set", "out", "nov", "dez",
)


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return f"{value.day:02d} {PT_BR_MONTHS[value.month - 1]} {value.year}"


env = Environment(
    loader=FileSystemLoader(TEMPLATE_DIR),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
env.filters["format_date"] = format_date


def _render(template_name: str, **context) -> str:
    context.setdefault("site_title", settings.SITE_TITLE)
    return env.get_template(template_name).render(**context)


def render_listing_page(
    posts: Iterable[PostSummary], has_more: bool, load_more_href: str = ""
) -> str:
    return _render(
        "index.html",
        posts=list(posts),
        has_more=has_more,
        load_more_href=load_more_href,
    )


def render_post_page(rendered: RenderedPost) -> str:
    return _render(
        "post.html",
        post=rendered.post,
        body_html=rendered.bodyHtml,
        reading_time=rendered.readingTimeMinutes,
    )


def render_not_found_page(slug: str) -> str:
    return _render("not_found.html", slug=slug)


def render_error_page(message: str = "Tente novamente em instantes.") -> str:
    return _render("error.html", message=message)


def render_loading_page(refresh_seconds: int = LOADING_REFRESH_SECONDS) -> str:
    return _render("loading.html", refresh_seconds=refresh_seconds)
