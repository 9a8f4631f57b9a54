"""Errors raised between the content source, the renderer and the page cache."""


class ContentSourceError(Exception):
    """Base class for failures reported by the content source."""


class NotFoundError(ContentSourceError):
    def __init__(self, slug: str):
        super().__init__(f"Post not found: {slug}")
        self.slug = slug


class TransientFetchError(ContentSourceError):
    """Network failure, timeout or 5xx from the content source."""


class MalformedContentError(ValueError):
    """A rich-text node whose shape the renderer does not understand."""


class RenderFailure(Exception):
    def __init__(self, slug: str, cause: BaseException):
        super().__init__(f"Failed to render {slug}: {cause}")
        self.slug = slug
        self.cause = cause


class InvalidCursorError(ValueError):
    """A pagination cursor that does not point back at the content source."""
