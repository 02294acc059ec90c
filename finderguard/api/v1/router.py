"""
API v1 router - aggregates all endpoint modules (RESTful structure).
"""

from fastapi import APIRouter

from finderguard.api.v1.endpoints import exchanges, health, items, matches, users

api_router = APIRouter(prefix="/v1")

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(items.router, prefix="/items", tags=["items"])
api_router.include_router(matches.router, prefix="/matches", tags=["matches"])
api_router.include_router(exchanges.router, prefix="/matches", tags=["exchange"])
