"""Shared request dependencies for the API routers."""

from fastapi import Request

from factory_erp.core.middleware import request_language
from factory_erp.services.cache_service import CacheService


def get_language(request: Request) -> str:
    return request_language(request)


def get_cache(request: Request) -> CacheService:
    return request.app.state.cache


def actor_id(claims: dict) -> int:
    """User id of the authenticated caller, from already verified claims."""
    return int(claims["sub"])
