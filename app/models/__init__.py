"""
Models package for API request/response validation.

This package contains Pydantic models used throughout the application
for validating API requests and responses.
"""

from .schemas import (
    ChannelCreateRequest,
    ChannelUpdateRequest,
    SocialAccountConnectRequest,
    VideoUpdateRequest,
    AutosaveRequest,
    OptimizeContentRequest,
    HashtagSuggestionRequest,
    PostingTimesRequest,
    SeoDescriptionRequest,
    ABVariationsRequest,
    BatchOptimizeItem,
    BatchOptimizeRequest,
    HashtagValidateRequest,
    HashtagValidateOptionsRequest,
    SubtitleGenerateRequest,
    SubtitleStyleRequest,
    SubtitlePositionRequest,
    SubtitleTextRequest,
    SubtitleApplyStyleRequest,
    WatermarkDetectRequest,
    WatermarkRegion,
    WatermarkRemoveRequest,
    WorkflowCreateRequest,
    WorkflowUpdateRequest,
    CheckoutRequest,
    AdminUpgradeRequest,
    Job,
    JobBatchPayload,
    JobBatchResponse,
)

__all__ = [
    "ChannelCreateRequest",
    "ChannelUpdateRequest",
    "SocialAccountConnectRequest",
    "VideoUpdateRequest",
    "AutosaveRequest",
    "OptimizeContentRequest",
    "HashtagSuggestionRequest",
    "PostingTimesRequest",
    "SeoDescriptionRequest",
    "ABVariationsRequest",
    "BatchOptimizeItem",
    "BatchOptimizeRequest",
    "HashtagValidateRequest",
    "HashtagValidateOptionsRequest",
    "SubtitleGenerateRequest",
    "SubtitleStyleRequest",
    "SubtitlePositionRequest",
    "SubtitleTextRequest",
    "SubtitleApplyStyleRequest",
    "WatermarkDetectRequest",
    "WatermarkRegion",
    "WatermarkRemoveRequest",
    "WorkflowCreateRequest",
    "WorkflowUpdateRequest",
    "CheckoutRequest",
    "AdminUpgradeRequest",
    "Job",
    "JobBatchPayload",
    "JobBatchResponse",
]
