"""
Pydantic models for request/response validation.

This module contains all Pydantic BaseModel schemas used for API request
and response validation. These are data validation models, not AI models.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any


# =============================================================================
# Channels & Social Accounts
# =============================================================================

class ChannelCreateRequest(BaseModel):
    """New channel: name, optional description and default platforms."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    default_platforms: List[str] = Field(default_factory=list)


class ChannelUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    default_platforms: Optional[List[str]] = None


class SocialAccountConnectRequest(BaseModel):
    """OAuth result for a platform connection, as handed over by the gateway."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = Field(None, description="Token lifetime in seconds", ge=0)
    token_expires_at: Optional[str] = None
    platform_channel_id: Optional[str] = None
    platform_channel_name: Optional[str] = None
    profile_name: Optional[str] = None
    profile_username: Optional[str] = None
    facebook_page_id: Optional[str] = None
    facebook_page_name: Optional[str] = None
    facebook_page_access_token: Optional[str] = None


# =============================================================================
# Videos & Versions
# =============================================================================

class VideoUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class AutosaveRequest(BaseModel):
    """Draft fields; omitted fields keep the video's current value."""
    title: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    thumbnail_path: Optional[str] = None


class VideoAnalyzeRequest(BaseModel):
    include_transcript: bool = True
    samples: int = Field(3, ge=1, le=8, description="Number of frames to describe")
    apply_tags: bool = Field(False, description="Merge the extracted content tags into the video's tags")


class ThumbnailFrameRequest(BaseModel):
    timestamp: float = Field(..., ge=0, description="Position of the frame in seconds")


# =============================================================================
# AI
# =============================================================================

class OptimizeContentRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    platforms: List[str] = Field(..., min_length=1)


class HashtagSuggestionRequest(BaseModel):
    platform: str
    content: str = Field(..., min_length=1, max_length=5000)
    count: int = Field(10, ge=1, le=30)


class PostingTimesRequest(BaseModel):
    platform: str
    content: str = Field("", max_length=5000)
    timezone: str = "UTC"


class SeoDescriptionRequest(BaseModel):
    platform: str
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)


class ABVariationsRequest(BaseModel):
    platform: str
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    variations: int = Field(3, ge=1, le=5)


class BatchOptimizeItem(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)


class BatchOptimizeRequest(BaseModel):
    """Up to 10 title/description pairs optimized for the same platforms."""
    items: List[BatchOptimizeItem] = Field(..., min_length=1, max_length=10)
    platforms: List[str] = Field(..., min_length=1)


# =============================================================================
# Hashtags
# =============================================================================

class HashtagValidateRequest(BaseModel):
    platform: str
    content: str


class HashtagValidateOptionsRequest(BaseModel):
    """advanced_options keyed by platform, each with optional caption and hashtags."""
    advanced_options: Dict[str, Dict[str, Any]]


# =============================================================================
# Subtitles
# =============================================================================

class SubtitleGenerateRequest(BaseModel):
    video_id: str
    language: str = "en"
    provider: Optional[str] = Field(None, description="Transcription provider: local or openai")
    style: str = "classic"


class SubtitleStyleRequest(BaseModel):
    style: Optional[str] = Field(None, description="Preset name (classic, modern, bold, minimal, karaoke)")
    custom: Optional[Dict[str, Any]] = Field(None, description="Property overrides on top of the preset")


class SubtitlePositionRequest(BaseModel):
    preset: Optional[str] = Field(None, description="top, center or bottom")
    x: Optional[float] = Field(None, description="Horizontal position in percent (0-100)")
    y: Optional[float] = Field(None, description="Vertical position in percent (0-100)")


class SubtitleTextRequest(BaseModel):
    index: int = Field(..., ge=1, description="1-based subtitle number")
    text: str = Field(..., min_length=1, max_length=500)


class SubtitleApplyStyleRequest(BaseModel):
    properties: Dict[str, Any]


# =============================================================================
# Watermarks
# =============================================================================

class WatermarkDetectRequest(BaseModel):
    video_id: str
    samples: int = Field(5, ge=1, le=12, description="Number of frames to analyze")


class WatermarkRegion(BaseModel):
    """Pixel box with its top-left corner at (x, y)."""
    id: Optional[str] = None
    x: int = Field(..., ge=0)
    y: int = Field(..., ge=0)
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    confidence: Optional[float] = None
    platform: Optional[str] = None


class WatermarkRemoveRequest(BaseModel):
    video_id: str
    watermarks: List[WatermarkRegion] = Field(..., min_length=1)
    method: str = "delogo"


# =============================================================================
# Workflows
# =============================================================================

class WorkflowCreateRequest(BaseModel):
    channel_id: str
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    source_platform: str
    source_url: str
    target_platforms: List[str] = Field(..., min_length=1)
    is_active: bool = True


class WorkflowUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    source_platform: Optional[str] = None
    source_url: Optional[str] = None
    target_platforms: Optional[List[str]] = None
    is_active: Optional[bool] = None


# =============================================================================
# Account
# =============================================================================

class CheckoutRequest(BaseModel):
    additional_channels: int = Field(0, ge=0, le=50)


class AdminUpgradeRequest(BaseModel):
    additional_channels: int = Field(0, ge=0, le=50)


# =============================================================================
# Queue jobs
# =============================================================================

class Job(BaseModel):
    """Single message read from a PGMQ queue."""
    msg_id: int
    read_ct: int = 1
    enqueued_at: Optional[str] = None
    message: Dict[str, Any] = Field(default_factory=dict)


class JobBatchPayload(BaseModel):
    """Payload from the Supabase Edge Function with a batch of jobs."""
    queue: Optional[str] = Field(default=None, description="Queue name")
    vt_seconds: int = Field(default=1800, description="Visibility timeout in seconds")
    jobs: List[Job] = Field(..., description="List of jobs to process")


class JobBatchResponse(BaseModel):
    """Response after processing a job batch; results keep every field the job service reports."""
    ok: bool
    summary: Dict[str, int]
    results: List[Dict[str, Any]]
