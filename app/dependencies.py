from fastapi import Request

from app.services.posts_service import PostsService
from app.services.static_generator import StaticGenerator
from app.settings import Settings, settings


def get_settings() -> Settings:
    """Small wrapper to allow dependency overrides in tests."""
    return settings


def get_posts_service(request: Request) -> PostsService:
    return request.app.state.posts_service


def get_static_generator(request: Request) -> StaticGenerator:
    return request.app.state.static_generator
