"""
Routers package for API endpoints.

This package contains all API route handlers organized by functionality.
"""

from .account import router as account_router
from .admin import router as admin_router
from .ai import router as ai_router
from .cache import router as cache_router
from .channels import router as channels_router
from .hashtags import router as hashtags_router
from .jobs import router as jobs_router
from .notifications import router as notifications_router
from .stats import router as stats_router
from .subtitles import router as subtitles_router
from .videos import router as videos_router
from .watermarks import router as watermarks_router
from .workflows import router as workflows_router

__all__ = [
    "account_router",
    "admin_router",
    "ai_router",
    "cache_router",
    "channels_router",
    "hashtags_router",
    "jobs_router",
    "notifications_router",
    "stats_router",
    "subtitles_router",
    "videos_router",
    "watermarks_router",
    "workflows_router",
]
