"""
Stats router: publishing statistics for the dashboard.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_current_user_id
from app.services.stats_service import get_user_stats

router = APIRouter(tags=["Stats"])


@router.get("/stats")
async def stats(user_id: str = Depends(get_current_user_id)):
    """
    Overview counts, target status breakdown, per-platform totals, uploads
    per day over the last 30 days and per-channel success rates.
    """
    return get_user_stats(user_id)
