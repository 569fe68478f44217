"""
Account router: plan summary and Stripe checkout for the pro plan.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_current_user_id
from app.models.schemas import CheckoutRequest
from app.services import plan_service

router = APIRouter(prefix="/account", tags=["Account"])


@router.get("/plan")
async def get_plan(user_id: str = Depends(get_current_user_id)):
    """Current plan, costs, channel usage and allowed platforms."""
    return plan_service.get_plan_summary(user_id)


@router.post("/checkout")
async def create_checkout(request: CheckoutRequest, user_id: str = Depends(get_current_user_id)):
    """
    Start a Stripe Checkout session for the pro plan.

    Returns 503 when billing is not configured and 409 for users who are
    already pro.
    """
    return plan_service.create_checkout_session(user_id, request.additional_channels)
