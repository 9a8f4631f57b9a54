from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def choose_env_file() -> str:
    return ".env.local" if Path(".env.local").exists() else ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=choose_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # tolerate unrelated env vars
    )

    # Prismic
    PRISMIC_API_URL: str = "https://spacetraveling.cdn.prismic.io/api/v2"
    PRISMIC_ACCESS_TOKEN: str = ""
    PRISMIC_DOCUMENT_TYPE: str = "posts"
    PRISMIC_TIMEOUT_SECONDS: float = 10.0

    # Listing
    LISTING_PAGE_SIZE: int = 100
    MAX_LISTING_PAGES: int = 20

    # Static generation
    EAGER_BUILD_SLUGS: List[str] = []
    REVALIDATE_SECONDS: int = 60 * 30
    MISSING_TTL_SECONDS: int = 60
    FALLBACK_BLOCKING: bool = True

    # Rendering
    READING_WORDS_PER_MINUTE: int = 200
    SITE_TITLE: str = "spacetraveling"

    # Logging
    LOG_LEVEL: str = "INFO"


# Global settings instance (evaluated at import, but reads env on construction)
settings = Settings()
