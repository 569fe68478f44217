"""
Pytest configuration and shared fixtures for test suite.

This module provides:
- Test client fixtures for FastAPI
- API key, user and job token header fixtures
- An in-memory Supabase client patched into every service
- Shared row factories for channels, videos and targets
"""

import os
import tempfile

# Settings are read once at import time, so the environment is set before any app import
_TMP_ROOT = tempfile.mkdtemp(prefix="crosspost-tests-")
os.environ.update({
    "API_KEY": "test-api-key",
    "PY_API_TOKEN": "test-job-token",
    "ALLOWED_ORIGIN": "*",
    "APP_URL": "http://test",
    "STORAGE_DIR": os.path.join(_TMP_ROOT, "storage"),
    "CACHE_DIR": os.path.join(_TMP_ROOT, "cache"),
    "CACHE_TTL_HOURS": "3",
    "SCHEDULER_ENABLED": "false",
    "YTDLP_MIN_SLEEP": "0",
    "YTDLP_MAX_SLEEP": "0",
})
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_SERVICE_KEY", None)
os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("STRIPE_SECRET_KEY", None)

import pytest
import pytest_asyncio
from contextlib import ExitStack
from httpx import AsyncClient, ASGITransport
from unittest.mock import patch

from tests.fakes import FakeSupabase


# Modules that call get_supabase_client() directly
SUPABASE_MODULES = [
    "app.services.supabase_service",
    "app.services.job_service",
    "app.services.media_job_service",
    "app.services.notification_service",
    "app.services.publishing_service",
    "app.services.social_account_service",
    "app.services.video_service",
]

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def fake_db():
    """In-memory Supabase client patched into every service module."""
    db = FakeSupabase()
    with ExitStack() as stack:
        for module in SUPABASE_MODULES:
            stack.enter_context(patch(f"{module}.get_supabase_client", return_value=db))
        yield db


@pytest.fixture
def api_key():
    """Return test API key."""
    return "test-api-key"


@pytest.fixture
def api_headers(api_key):
    """Return headers with API key."""
    return {"X-API-Key": api_key}


@pytest.fixture
def user_headers(api_headers):
    """API key plus the acting user forwarded by the gateway."""
    return {**api_headers, "X-User-Id": USER_ID}


@pytest.fixture
def other_user_headers(api_headers):
    return {**api_headers, "X-User-Id": OTHER_USER_ID}


@pytest.fixture
def job_headers():
    """Bearer token used by the Supabase Edge Function."""
    return {"Authorization": "Bearer test-job-token"}


@pytest_asyncio.fixture
async def client(fake_db):
    """
    Create async test client for FastAPI app.

    Uses httpx AsyncClient with ASGITransport to test the FastAPI app
    without needing to run a server.
    """
    from main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def channel(fake_db):
    """A channel owned by USER_ID with YouTube and TikTok connected."""
    row = fake_db.seed(
        "channels",
        user_id=USER_ID,
        name="Cooking",
        slug="cooking",
        description=None,
        default_platforms=["youtube"],
        is_default=True,
        created_at="2026-01-01T00:00:00+00:00",
    )
    for platform in ("youtube", "tiktok"):
        fake_db.seed(
            "social_accounts",
            user_id=USER_ID,
            channel_id=row["id"],
            platform=platform,
            platform_user_id=f"{platform}-user",
            platform_channel_name=f"{platform}_cook",
            access_token="token",
            refresh_token=None,
            token_expires_at=None,
        )
    return row


@pytest.fixture
def pro_subscription(fake_db):
    """Active pro subscription for USER_ID."""
    return fake_db.seed(
        "subscriptions",
        user_id=USER_ID,
        status="active",
        additional_channels=0,
        created_at="2026-01-01T00:00:00+00:00",
        ends_at="2099-01-01T00:00:00+00:00",
    )


@pytest.fixture
def video(fake_db, channel):
    """An uploaded video of `channel` with one published YouTube target."""
    row = fake_db.seed(
        "videos",
        user_id=USER_ID,
        channel_id=channel["id"],
        title="Pasta night",
        description="Fresh pasta #cooking",
        tags=["pasta"],
        original_file_path="videos/user-1/pasta.mp4",
        thumbnail_path=None,
        duration=42.0,
        has_subtitle_changes=False,
        has_watermark_removal=False,
        created_at="2026-02-01T10:00:00+00:00",
        updated_at="2026-02-01T10:00:00+00:00",
    )
    fake_db.seed(
        "video_targets",
        video_id=row["id"],
        platform="youtube",
        status="success",
        platform_video_id="yt123",
        platform_url="https://www.youtube.com/watch?v=yt123",
        publish_at=None,
        advanced_options=None,
        error_message=None,
        created_at="2026-02-01T10:00:00+00:00",
    )
    return row
