"""
Cache router: inspect and clean the temporary file cache.

Cached files are frames, extracted audio, subtitle work files, AI answers
and downloaded source videos; all of them expire after CACHE_TTL_HOURS.
"""

from typing import Optional

from fastapi import APIRouter, Query, Depends, HTTPException

from app.dependencies import verify_api_key
from app.config import CACHE_SUBDIRS
from app.services.cache_service import cleanup_cache, get_cache_stats, list_cache_files


router = APIRouter(prefix="/cache", tags=["Cache"])


@router.delete("/cleanup")
async def cache_cleanup(_: bool = Depends(verify_api_key)):
    """
    Delete cached files older than CACHE_TTL_HOURS.

    The publishing scheduler runs the same cleanup hourly.
    """
    result = cleanup_cache()
    return {
        "message": f"Cleanup complete. Deleted {result['total_deleted']} files.",
        **result,
    }


@router.get("")
async def list_cache(
    type: Optional[str] = Query(None, description=f"Filter by type: {', '.join(CACHE_SUBDIRS)}"),
    _: bool = Depends(verify_api_key)
):
    try:
        return list_cache_files(type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/stats")
async def cache_stats(_: bool = Depends(verify_api_key)):
    """File count and size per cache type."""
    return get_cache_stats()
