"""
AI content router.

This module provides endpoints for:
- Per-platform content optimization (single and batch)
- Trending hashtags, posting times, SEO descriptions and A/B variations

Every feature falls back to deterministic defaults when OpenAI is not
configured or fails, so these endpoints answer even without OPENAI_API_KEY.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.config import PLATFORMS
from app.dependencies import get_current_user_id
from app.models.schemas import (
    OptimizeContentRequest,
    HashtagSuggestionRequest,
    PostingTimesRequest,
    SeoDescriptionRequest,
    ABVariationsRequest,
    BatchOptimizeRequest,
)
from app.services import ai_content_service

router = APIRouter(prefix="/ai", tags=["AI"])


def _check_platforms(platforms: List[str]) -> List[str]:
    unknown = [p for p in platforms if p not in PLATFORMS]
    if unknown:
        raise HTTPException(status_code=422, detail=f"Unsupported platform(s): {', '.join(unknown)}")
    return list(dict.fromkeys(platforms))


@router.post("/optimize-content")
async def optimize_content(request: OptimizeContentRequest, _: str = Depends(get_current_user_id)):
    """
    Optimize title, description and tags for each requested platform.

    Each platform result carries an optimization_score (0-100), suggestions
    and platform-specific tips. Results are cached per platform for an hour.
    """
    platforms = _check_platforms(request.platforms)
    optimizations = ai_content_service.optimize_for_platforms(request.title, request.description, platforms)
    return {
        "success": True,
        "category": ai_content_service.detect_content_category(f"{request.title} {request.description}"),
        "optimizations": optimizations,
    }


@router.post("/hashtags")
async def trending_hashtags(request: HashtagSuggestionRequest, _: str = Depends(get_current_user_id)):
    _check_platforms([request.platform])
    hashtags = ai_content_service.generate_trending_hashtags(request.platform, request.content, request.count)
    return {"success": True, "platform": request.platform, "hashtags": hashtags}


@router.post("/posting-times")
async def posting_times(request: PostingTimesRequest, _: str = Depends(get_current_user_id)):
    _check_platforms([request.platform])
    times = ai_content_service.suggest_optimal_posting_times(request.platform, request.content, request.timezone)
    return {"success": True, "platform": request.platform, "timezone": request.timezone, "posting_times": times}


@router.post("/seo-description")
async def seo_description(request: SeoDescriptionRequest, _: str = Depends(get_current_user_id)):
    _check_platforms([request.platform])
    description = ai_content_service.generate_seo_description(request.title, request.description, request.platform)
    return {"success": True, "platform": request.platform, "seo_description": description}


@router.post("/ab-variations")
async def ab_variations(request: ABVariationsRequest, _: str = Depends(get_current_user_id)):
    _check_platforms([request.platform])
    variations = ai_content_service.generate_ab_variations(
        request.platform, request.title, request.description, request.variations
    )
    return {"success": True, "platform": request.platform, "variations": variations}


@router.post("/batch-optimize")
async def batch_optimize(request: BatchOptimizeRequest, _: str = Depends(get_current_user_id)):
    """Optimize up to 10 title/description pairs for the same platforms."""
    platforms = _check_platforms(request.platforms)
    results = []
    for index, item in enumerate(request.items):
        results.append({
            "index": index,
            "title": item.title,
            "optimizations": ai_content_service.optimize_for_platforms(item.title, item.description, platforms),
        })
    return {"success": True, "total": len(results), "results": results}
