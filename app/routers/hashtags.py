"""
Hashtag validation router.

Lets the upload form preview which hashtags will be stripped from a caption
before it is published to a platform.
"""

from fastapi import APIRouter, Depends, HTTPException

from app.config import PLATFORMS
from app.dependencies import get_current_user_id
from app.models.schemas import HashtagValidateRequest, HashtagValidateOptionsRequest
from app.services.hashtag_service import (
    get_forbidden_hashtags,
    get_validation_message,
    validate_advanced_options,
    validate_and_filter_hashtags,
)

router = APIRouter(prefix="/hashtags", tags=["Hashtags"])


@router.post("/validate")
async def validate_hashtags(request: HashtagValidateRequest, _: str = Depends(get_current_user_id)):
    """Filter a caption for one platform and explain what was removed."""
    result = validate_and_filter_hashtags(request.platform, request.content)
    result["message"] = get_validation_message(request.platform, result["removed_hashtags"])
    return result


@router.post("/validate-options")
async def validate_options(request: HashtagValidateOptionsRequest, _: str = Depends(get_current_user_id)):
    """Validate per-platform advanced options; only platforms with changes are returned."""
    results = validate_advanced_options(request.advanced_options)
    return {"has_changes": bool(results), "platforms": results}


@router.get("/forbidden/{platform}")
async def forbidden_hashtags(platform: str, _: str = Depends(get_current_user_id)):
    if platform not in PLATFORMS:
        raise HTTPException(status_code=404, detail=f"Unknown platform: {platform}")
    return {"platform": platform, "forbidden_hashtags": get_forbidden_hashtags(platform)}
