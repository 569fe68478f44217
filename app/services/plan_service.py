"""
Subscription plans: what a user may publish to and how many channels they get.

Free users publish to YouTube only and own a single channel. An active pro
subscription (status "active" and ends_at unset or in the future) unlocks
every platform and 3 channels plus any purchased additional channels.
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional, List

import stripe
from fastapi import HTTPException

from app.config import (
    PLATFORMS,
    FREE_PLAN_PLATFORMS,
    PRO_DAILY_PRICE,
    EXTRA_CHANNEL_DAILY_PRICE,
    PRO_INCLUDED_CHANNELS,
    FREE_CHANNEL_LIMIT,
    get_settings,
)
from app.services.supabase_service import fetch_all, fetch_one, insert_row, update_rows, now_iso
from app.services.target_state import parse_datetime


def is_subscription_active(subscription: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    if subscription.get("status") != "active":
        return False
    ends_at = parse_datetime(subscription.get("ends_at"))
    return ends_at is None or ends_at > (now or datetime.now(timezone.utc))


def get_active_subscription(user_id: str) -> Optional[Dict[str, Any]]:
    for subscription in fetch_all("subscriptions", order_by="created_at", desc=True, user_id=user_id):
        if is_subscription_active(subscription):
            return subscription
    return None


def has_active_subscription(user_id: str) -> bool:
    return get_active_subscription(user_id) is not None


def get_current_plan(user_id: str) -> str:
    return "pro" if has_active_subscription(user_id) else "free"


def get_allowed_platforms(user_id: str) -> List[str]:
    if has_active_subscription(user_id):
        return list(PLATFORMS)
    return list(FREE_PLAN_PLATFORMS)


def can_access_platform(user_id: str, platform: str) -> bool:
    return platform in get_allowed_platforms(user_id)


def get_max_channels(user_id: str) -> int:
    subscription = get_active_subscription(user_id)
    if not subscription:
        return FREE_CHANNEL_LIMIT
    return PRO_INCLUDED_CHANNELS + int(subscription.get("additional_channels") or 0)


def can_create_channel(user_id: str) -> bool:
    return len(fetch_all("channels", user_id=user_id)) < get_max_channels(user_id)


def monthly_cost(is_pro: bool, additional_channels: int = 0) -> float:
    """Pro costs 0.60/day plus 0.20/day per additional channel, billed per 30 days."""
    if not is_pro:
        return 0.0
    return round(PRO_DAILY_PRICE * 30 + max(0, additional_channels) * EXTRA_CHANNEL_DAILY_PRICE * 30, 2)


def get_plan_summary(user_id: str) -> Dict[str, Any]:
    subscription = get_active_subscription(user_id)
    max_channels = get_max_channels(user_id)
    cost = monthly_cost(subscription is not None, max_channels - PRO_INCLUDED_CHANNELS)
    return {
        "current_plan": "pro" if subscription else "free",
        "has_subscription": subscription is not None,
        "monthly_cost": cost,
        "daily_cost": round(cost / 30, 2),
        "channels_count": len(fetch_all("channels", user_id=user_id)),
        "max_channels": max_channels,
        "allowed_platforms": get_allowed_platforms(user_id),
        "subscription": subscription,
        "plans": {
            "free": {"name": "Free", "price": 0, "channels": FREE_CHANNEL_LIMIT, "platforms": list(FREE_PLAN_PLATFORMS)},
            "pro": {"name": "Pro", "price": monthly_cost(True), "channels": PRO_INCLUDED_CHANNELS, "platforms": list(PLATFORMS)},
        },
    }


# =============================================================================
# Billing
# =============================================================================

def create_checkout_session(user_id: str, additional_channels: int = 0) -> Dict[str, Any]:
    """
    Create a Stripe Checkout session for the pro plan.

    Raises:
        HTTPException: 503 when Stripe is not configured, 409 when already pro,
                       502 when Stripe rejects the request
    """
    settings = get_settings()
    if not settings.stripe_secret_key or not settings.stripe_price_id:
        raise HTTPException(status_code=503, detail="Billing not configured. Set STRIPE_SECRET_KEY and STRIPE_PRICE_ID.")

    if has_active_subscription(user_id):
        raise HTTPException(status_code=409, detail="You already have an active subscription.")

    line_items = [{"price": settings.stripe_price_id, "quantity": 1}]
    if additional_channels > 0:
        if not settings.stripe_channel_price_id:
            raise HTTPException(status_code=503, detail="Additional channel pricing not configured (STRIPE_CHANNEL_PRICE_ID).")
        line_items.append({"price": settings.stripe_channel_price_id, "quantity": additional_channels})

    app_url = settings.app_url.rstrip("/")
    try:
        session = stripe.checkout.Session.create(
            api_key=settings.stripe_secret_key,
            mode="subscription",
            line_items=line_items,
            success_url=f"{app_url}/subscription/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{app_url}/subscription/plans",
            client_reference_id=user_id,
            metadata={"user_id": user_id, "additional_channels": str(additional_channels)},
        )
    except stripe.StripeError as e:
        print(f"ERROR: Stripe checkout failed: {str(e)}")
        raise HTTPException(status_code=502, detail="Unable to create checkout session. Please try again.")

    print(f"INFO: Created checkout session {session.id} for user {user_id}")
    return {"id": session.id, "url": session.url}


# =============================================================================
# Admin
# =============================================================================

def upgrade_to_pro(user_id: str, additional_channels: int = 0) -> Dict[str, Any]:
    """Grant pro with a manual, open-ended subscription. No-op if already pro."""
    if not fetch_one("profiles", id=user_id):
        raise HTTPException(status_code=404, detail="User not found")

    existing = get_active_subscription(user_id)
    if existing:
        print(f"INFO: User {user_id} already has an active Pro subscription")
        return {"upgraded": False, "subscription": existing}

    subscription = insert_row("subscriptions", {
        "user_id": user_id,
        "status": "active",
        "stripe_subscription_id": f"manual_upgrade_{int(datetime.now(timezone.utc).timestamp())}",
        "additional_channels": additional_channels,
        "ends_at": None,
        "created_at": now_iso(),
    })
    print(f"INFO: Upgraded user {user_id} to Pro")
    return {"upgraded": True, "subscription": subscription}


def downgrade_from_pro(user_id: str) -> Dict[str, Any]:
    """Cancel every active subscription of the user immediately."""
    if not fetch_one("profiles", id=user_id):
        raise HTTPException(status_code=404, detail="User not found")

    canceled = update_rows(
        "subscriptions",
        {"status": "canceled", "ends_at": now_iso()},
        user_id=user_id,
        status="active",
    )
    print(f"INFO: Downgraded user {user_id} from Pro ({len(canceled)} subscription(s) canceled)")
    return {"downgraded": bool(canceled), "canceled": len(canceled)}
