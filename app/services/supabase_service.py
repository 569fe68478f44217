"""
Supabase service module for database and queue operations.

This module provides utilities for:
- Supabase client initialization and access
- Thin row helpers (fetch/insert/update/delete) over the query builder
- Sending messages to PGMQ queues through the pgmq_send RPC
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from fastapi import HTTPException
from supabase import create_client, Client
from app.config import SUPABASE_URL, SUPABASE_SERVICE_KEY


# Supabase client initialization (optional, only if configured)
supabase_client: Optional[Client] = None

try:
    if SUPABASE_URL and SUPABASE_SERVICE_KEY:
        supabase_client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
        print("INFO: Supabase client initialized successfully")
    else:
        print("INFO: Supabase not configured (SUPABASE_URL/SUPABASE_SERVICE_KEY missing) - persistence disabled")
except Exception as e:
    print(f"WARNING: Failed to initialize Supabase client: {str(e)}")
    supabase_client = None


def get_supabase_client() -> Client:
    """
    Get Supabase client or raise error if not configured.

    This function should be used in endpoints that require Supabase to ensure
    proper error handling when Supabase is not configured.

    Returns:
        Initialized Supabase client instance

    Raises:
        HTTPException: 503 Service Unavailable if Supabase is not configured
    """
    if supabase_client is None:
        raise HTTPException(
            status_code=503,
            detail="Supabase not configured. Set SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables."
        )
    return supabase_client


def now_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _apply_filters(query, filters: Dict[str, Any]):
    for column, value in filters.items():
        if value is None:
            query = query.is_(column, "null")
        elif isinstance(value, (list, tuple)):
            query = query.in_(column, list(value))
        else:
            query = query.eq(column, value)
    return query


# =============================================================================
# Row Helpers
# =============================================================================

def fetch_one(table: str, **filters) -> Optional[Dict[str, Any]]:
    """
    Return the first row of `table` matching all equality filters, or None.

    A list value becomes an IN filter and None becomes IS NULL.

    Example:
        >>> video = fetch_one("videos", id=video_id, user_id=user_id)
    """
    supabase = get_supabase_client()
    query = _apply_filters(supabase.table(table).select("*"), filters)
    result = query.limit(1).execute()
    return result.data[0] if result.data else None


def fetch_all(
    table: str,
    order_by: Optional[str] = None,
    desc: bool = False,
    limit: Optional[int] = None,
    **filters
) -> List[Dict[str, Any]]:
    """Return all rows of `table` matching the filters."""
    supabase = get_supabase_client()
    query = _apply_filters(supabase.table(table).select("*"), filters)
    if order_by:
        query = query.order(order_by, desc=desc)
    if limit:
        query = query.limit(limit)
    return query.execute().data or []


def insert_row(table: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert one row and return it as stored."""
    supabase = get_supabase_client()
    result = supabase.table(table).insert(data).execute()
    if not result.data:
        raise RuntimeError(f"Insert into {table} returned no row")
    return result.data[0]


def update_rows(table: str, values: Dict[str, Any], **filters) -> List[Dict[str, Any]]:
    """Update rows matching the filters and return the updated rows."""
    supabase = get_supabase_client()
    query = _apply_filters(supabase.table(table).update(values), filters)
    return query.execute().data or []


def delete_rows(table: str, **filters) -> List[Dict[str, Any]]:
    """Delete rows matching the filters and return them."""
    if not filters:
        raise ValueError("delete_rows requires at least one filter")
    supabase = get_supabase_client()
    query = _apply_filters(supabase.table(table).delete(), filters)
    return query.execute().data or []


# =============================================================================
# Queue
# =============================================================================

def enqueue_message(queue_name: str, message: Dict[str, Any], delay_seconds: int = 0) -> Optional[int]:
    """
    Send a message to a PGMQ queue.

    Returns the msg_id assigned by PGMQ (None if the RPC returned nothing).
    Errors propagate so callers can record dispatch failures.
    """
    supabase = get_supabase_client()
    result = supabase.rpc("pgmq_send", {
        "queue_name": queue_name,
        "message": message,
        "sleep_seconds": delay_seconds
    }).execute()

    data = result.data
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        data = data.get("msg_id") or data.get("pgmq_send")
    print(f"INFO: Enqueued {message.get('action') or message.get('kind')} on '{queue_name}' (msg_id={data})")
    return data
