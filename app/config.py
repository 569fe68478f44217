"""
Configuration module for the cross-posting video publishing API.

This module centralizes all environment variables, constants, and runtime configuration
using pydantic-settings for type-safe configuration management.
"""

import os
import shutil
import subprocess
from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # CORS Configuration
    allowed_origin: str = Field(
        default="https://example.com",
        validation_alias="ALLOWED_ORIGIN",
        description="Allowed CORS origin for API requests"
    )

    # API Authentication
    api_key: str = Field(
        default="",
        validation_alias="API_KEY",
        description="API key for endpoint authentication"
    )

    # Job Worker Token (for Supabase Edge Function → Python communication)
    py_api_token: Optional[str] = Field(
        default=None,
        validation_alias="PY_API_TOKEN",
        description="Token for authenticating queue job pushes from Supabase Edge Functions"
    )

    app_url: str = Field(
        default="http://localhost:8000",
        validation_alias="APP_URL",
        description="Public base URL of this service (used for /storage links)"
    )

    # Directory Configuration
    storage_dir: str = Field(
        default="./storage",
        validation_alias="STORAGE_DIR",
        description="Directory for uploaded and rendered videos"
    )

    cache_dir: str = Field(
        default="./cache",
        validation_alias="CACHE_DIR",
        description="Unified cache directory for temporary files"
    )

    cache_ttl_hours: int = Field(
        default=3,
        validation_alias="CACHE_TTL_HOURS",
        description="Time-to-live for cached files in hours"
    )

    max_upload_mb: int = Field(
        default=100,
        validation_alias="MAX_UPLOAD_MB",
        description="Maximum accepted video upload size in megabytes"
    )

    # FFmpeg binaries
    ffmpeg_binary: str = Field(
        default="ffmpeg",
        validation_alias="FFMPEG_BINARY",
        description="Path or name of the ffmpeg binary"
    )

    ffprobe_binary: str = Field(
        default="ffprobe",
        validation_alias="FFPROBE_BINARY",
        description="Path or name of the ffprobe binary"
    )

    # Supabase Configuration
    supabase_url: Optional[str] = Field(
        default=None,
        validation_alias="SUPABASE_URL",
        description="Supabase project URL"
    )

    supabase_service_key: Optional[str] = Field(
        default=None,
        validation_alias="SUPABASE_SERVICE_KEY",
        description="Supabase service role key"
    )

    # Queue Configuration
    publish_queue: str = Field(
        default="video_publishing",
        validation_alias="PUBLISH_QUEUE",
        description="PGMQ queue for upload/update/remove jobs"
    )

    media_queue: str = Field(
        default="media_processing",
        validation_alias="MEDIA_QUEUE",
        description="PGMQ queue for subtitle, watermark and render jobs"
    )

    worker_vt_seconds: int = Field(
        default=1800,
        validation_alias="WORKER_VT_SECONDS",
        description="Visibility timeout in seconds (30 minutes)"
    )

    worker_max_retries: int = Field(
        default=3,
        validation_alias="WORKER_MAX_RETRIES",
        description="Maximum delivery attempts before a job is marked as failed"
    )

    # Transcription (subtitle generation)
    worker_model_size: str = Field(
        default="medium",
        validation_alias="WORKER_MODEL_SIZE",
        description="WhisperX model size for local transcription"
    )

    worker_provider: str = Field(
        default="openai",
        validation_alias="WORKER_PROVIDER",
        description="Transcription provider (local or openai)"
    )

    # OpenAI Configuration
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
        description="OpenAI API key for content optimization, vision and transcription"
    )

    openai_model: str = Field(
        default="gpt-4o-mini",
        validation_alias="OPENAI_MODEL",
        description="Chat model used for content optimization"
    )

    openai_vision_model: str = Field(
        default="gpt-4o-mini",
        validation_alias="OPENAI_VISION_MODEL",
        description="Vision-capable model used for watermark detection"
    )

    ai_cache_ttl_seconds: int = Field(
        default=3600,
        validation_alias="AI_CACHE_TTL_SECONDS",
        description="Cache lifetime for per-platform AI optimization results"
    )

    # Platform credentials
    google_client_id: Optional[str] = Field(
        default=None,
        validation_alias="GOOGLE_CLIENT_ID",
        description="Google OAuth client id (YouTube)"
    )

    google_client_secret: Optional[str] = Field(
        default=None,
        validation_alias="GOOGLE_CLIENT_SECRET",
        description="Google OAuth client secret (YouTube)"
    )

    facebook_graph_version: str = Field(
        default="v18.0",
        validation_alias="FACEBOOK_GRAPH_VERSION",
        description="Graph API version for Facebook and Instagram"
    )

    pinterest_board_name: str = Field(
        default="Videos",
        validation_alias="PINTEREST_BOARD_NAME",
        description="Board used when a pin target has no board_id option"
    )

    snapchat_ad_account_id: Optional[str] = Field(
        default=None,
        validation_alias="SNAPCHAT_AD_ACCOUNT_ID",
        description="Snapchat ad account that owns uploaded media"
    )

    instagram_poll_timeout: int = Field(
        default=300,
        validation_alias="INSTAGRAM_POLL_TIMEOUT",
        description="Seconds to wait for an Instagram media container to finish processing"
    )

    # Billing
    stripe_secret_key: Optional[str] = Field(
        default=None,
        validation_alias="STRIPE_SECRET_KEY",
        description="Stripe secret key for checkout sessions"
    )

    stripe_price_id: Optional[str] = Field(
        default=None,
        validation_alias="STRIPE_PRICE_ID",
        description="Stripe price for the pro plan"
    )

    stripe_channel_price_id: Optional[str] = Field(
        default=None,
        validation_alias="STRIPE_CHANNEL_PRICE_ID",
        description="Stripe price for each additional channel"
    )

    # yt-dlp (workflow source downloads)
    ytdlp_cookies_file: Optional[str] = Field(
        default=None,
        validation_alias="YTDLP_COOKIES_FILE",
        description="Path to cookies.txt for authenticated source downloads"
    )

    ytdlp_min_sleep: int = Field(
        default=7,
        validation_alias="YTDLP_MIN_SLEEP",
        description="Minimum seconds between source platform requests"
    )

    ytdlp_max_sleep: int = Field(
        default=25,
        validation_alias="YTDLP_MAX_SLEEP",
        description="Maximum seconds between source platform requests"
    )

    workflow_max_entries: int = Field(
        default=10,
        validation_alias="WORKFLOW_MAX_ENTRIES",
        description="Newest source entries inspected per workflow run"
    )

    # Scheduler
    scheduler_enabled: bool = Field(
        default=True,
        validation_alias="SCHEDULER_ENABLED",
        description="Enable/disable the background publishing scheduler"
    )

    scheduler_publish_interval_seconds: int = Field(
        default=60,
        validation_alias="SCHEDULER_PUBLISH_INTERVAL_SECONDS",
        description="Seconds between scheduled-upload sweeps"
    )

    scheduler_workflow_interval_minutes: int = Field(
        default=15,
        validation_alias="SCHEDULER_WORKFLOW_INTERVAL_MINUTES",
        description="Minutes between workflow sweeps"
    )

    removal_retry_max_age_hours: int = Field(
        default=24,
        validation_alias="REMOVAL_RETRY_MAX_AGE_HOURS",
        description="Failed removals older than this are no longer retried"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are loaded only once.
    """
    return Settings()


# Initialize settings
settings = get_settings()

# Export commonly used directory paths
STORAGE_DIR = settings.storage_dir
CACHE_DIR = settings.cache_dir
CACHE_TTL_HOURS = settings.cache_ttl_hours
MAX_UPLOAD_BYTES = settings.max_upload_mb * 1024 * 1024

# Create directories on startup
os.makedirs(os.path.join(STORAGE_DIR, "videos"), exist_ok=True)
os.makedirs(os.path.join(STORAGE_DIR, "thumbnails"), exist_ok=True)
os.makedirs(os.path.join(STORAGE_DIR, "rendered"), exist_ok=True)

# Create cache subdirectories
CACHE_SUBDIRS = ["frames", "audio", "subtitles", "ai", "videos"]
for subdir in CACHE_SUBDIRS:
    os.makedirs(os.path.join(CACHE_DIR, subdir), exist_ok=True)

FFMPEG_BINARY = settings.ffmpeg_binary
FFPROBE_BINARY = settings.ffprobe_binary

# Supabase Configuration
SUPABASE_URL = settings.supabase_url
SUPABASE_SERVICE_KEY = settings.supabase_service_key

# Queue names
PUBLISH_QUEUE = settings.publish_queue
MEDIA_QUEUE = settings.media_queue

# yt-dlp
YTDLP_COOKIES_FILE = settings.ytdlp_cookies_file
YTDLP_MIN_SLEEP = settings.ytdlp_min_sleep
YTDLP_MAX_SLEEP = settings.ytdlp_max_sleep

# Publishing platforms, in display order
PLATFORMS = ["youtube", "instagram", "tiktok", "facebook", "snapchat", "pinterest", "x"]
FREE_PLAN_PLATFORMS = ["youtube"]

# Plan pricing (USD)
PRO_DAILY_PRICE = 0.60
EXTRA_CHANNEL_DAILY_PRICE = 0.20
PRO_INCLUDED_CHANNELS = 3
FREE_CHANNEL_LIMIT = 1

# Whisper device detection for local transcription
# Detect optimal device on startup to avoid repeated detection per request
WHISPER_DEVICE = "cpu"
WHISPER_COMPUTE_TYPE = "int8"
WHISPER_GPU_INFO = None

try:
    import torch

    if torch.cuda.is_available():
        WHISPER_DEVICE = "cuda"
        WHISPER_COMPUTE_TYPE = "float16"
        try:
            gpu_name = torch.cuda.get_device_name(0)
            gpu_count = torch.cuda.device_count()
            WHISPER_GPU_INFO = f"{gpu_name} (x{gpu_count})" if gpu_count > 1 else gpu_name
        except Exception:
            WHISPER_GPU_INFO = "CUDA GPU (model unknown)"
        print(f"INFO: CUDA GPU detected ({WHISPER_GPU_INFO}) - whisperX will use float16")
    elif hasattr(torch.backends, 'mps') and torch.backends.mps.is_available():
        WHISPER_DEVICE = "mps"
        WHISPER_COMPUTE_TYPE = "float16"
        WHISPER_GPU_INFO = "Apple Silicon GPU"
        print("INFO: Apple Silicon GPU detected - whisperX will use MPS with float16 compute type")
    else:
        print("INFO: No GPU detected - whisperX will use CPU with int8 compute type (slower)")
except ImportError:
    print("INFO: PyTorch not installed - local subtitle transcription unavailable (provider=openai still works)")
except Exception as e:
    print(f"WARNING: Device detection failed ({str(e)}) - whisperX will default to CPU")


# Log ffmpeg status on module import
def _log_ffmpeg_status():
    """Log ffmpeg version on startup."""
    binary = shutil.which(FFMPEG_BINARY) or (FFMPEG_BINARY if os.path.exists(FFMPEG_BINARY) else None)
    if not binary:
        print(f"WARNING: ffmpeg not found ({FFMPEG_BINARY}) - probing, subtitles and watermark removal will fail")
        return
    try:
        result = subprocess.run([binary, '-version'], capture_output=True, text=True, timeout=5)
        if result.returncode == 0:
            print(f"INFO: {result.stdout.splitlines()[0]}")
    except Exception as e:
        print(f"WARNING: Could not get ffmpeg version: {e}")


_log_ffmpeg_status()

# Log Supabase status
if SUPABASE_URL and SUPABASE_SERVICE_KEY:
    print("INFO: Supabase configuration detected")
else:
    print("INFO: Supabase not configured (SUPABASE_URL/SUPABASE_SERVICE_KEY missing) - persistence disabled")
