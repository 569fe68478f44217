"""
Unit tests for subscription plans, channel limits and billing.
"""

import pytest
import stripe
from fastapi import HTTPException
from unittest.mock import patch, MagicMock

from app.services import channel_service, plan_service


class TestPricing:
    """Test monthly_cost()."""

    def test_free(self):
        assert plan_service.monthly_cost(False, 5) == 0.0

    def test_pro(self):
        assert plan_service.monthly_cost(True) == 18.0

    def test_pro_with_channels(self):
        assert plan_service.monthly_cost(True, 2) == 30.0

    def test_negative_channels_ignored(self):
        assert plan_service.monthly_cost(True, -1) == 18.0


class TestPlan:
    """Test plan lookups against stored subscriptions."""

    def test_free_user(self, fake_db):
        assert plan_service.get_current_plan("user-1") == "free"
        assert plan_service.get_allowed_platforms("user-1") == ["youtube"]
        assert plan_service.get_max_channels("user-1") == 1

    def test_pro_user(self, fake_db, pro_subscription):
        assert plan_service.get_current_plan("user-1") == "pro"
        assert "tiktok" in plan_service.get_allowed_platforms("user-1")
        assert plan_service.get_max_channels("user-1") == 3

    def test_additional_channels(self, fake_db, pro_subscription):
        fake_db.rows("subscriptions", id=pro_subscription["id"])[0]["additional_channels"] = 2
        assert plan_service.get_max_channels("user-1") == 5

    def test_expired_subscription(self, fake_db):
        fake_db.seed("subscriptions", user_id="user-1", status="active", additional_channels=0,
                     created_at="2025-01-01T00:00:00+00:00", ends_at="2025-02-01T00:00:00+00:00")
        assert plan_service.get_current_plan("user-1") == "free"

    def test_summary(self, fake_db, channel, pro_subscription):
        summary = plan_service.get_plan_summary("user-1")
        assert summary["current_plan"] == "pro"
        assert summary["monthly_cost"] == 18.0
        assert summary["daily_cost"] == 0.6
        assert summary["channels_count"] == 1
        assert summary["plans"]["pro"]["price"] == 18.0


class TestChannelLimits:
    """Test channel creation against the plan limit."""

    def test_free_limit(self, fake_db, channel):
        with pytest.raises(HTTPException) as excinfo:
            channel_service.create_channel("user-1", "Second")
        assert excinfo.value.status_code == 403

    def test_pro_allows_more(self, fake_db, channel, pro_subscription):
        created = channel_service.create_channel("user-1", "Cooking")
        assert created["slug"] == "cooking-1"
        assert created["is_default"] is False


class TestAdmin:
    """Test manual upgrades and downgrades."""

    def test_upgrade_and_downgrade(self, fake_db):
        fake_db.seed("profiles", id="user-1", email="cook@example.com")

        result = plan_service.upgrade_to_pro("user-1", additional_channels=1)
        assert result["upgraded"] is True
        assert plan_service.get_max_channels("user-1") == 4
        assert plan_service.upgrade_to_pro("user-1")["upgraded"] is False

        assert plan_service.downgrade_from_pro("user-1") == {"downgraded": True, "canceled": 1}
        assert plan_service.get_current_plan("user-1") == "free"

    def test_unknown_user(self, fake_db):
        with pytest.raises(HTTPException) as excinfo:
            plan_service.upgrade_to_pro("nobody")
        assert excinfo.value.status_code == 404


class TestCheckout:
    """Test Stripe checkout with the Stripe API mocked."""

    def _settings(self, **overrides):
        settings = MagicMock(stripe_secret_key="sk_test", stripe_price_id="price_pro",
                             stripe_channel_price_id="price_channel", app_url="http://test/")
        for key, value in overrides.items():
            setattr(settings, key, value)
        return settings

    def test_not_configured(self, fake_db):
        with patch.object(plan_service, "get_settings", return_value=self._settings(stripe_secret_key=None)):
            with pytest.raises(HTTPException) as excinfo:
                plan_service.create_checkout_session("user-1")
        assert excinfo.value.status_code == 503

    def test_creates_session(self, fake_db):
        session = MagicMock(id="cs_1", url="https://checkout.stripe.com/cs_1")
        with patch.object(plan_service, "get_settings", return_value=self._settings()), \
             patch.object(stripe.checkout.Session, "create", return_value=session) as create:
            result = plan_service.create_checkout_session("user-1", additional_channels=2)

        assert result == {"id": "cs_1", "url": "https://checkout.stripe.com/cs_1"}
        kwargs = create.call_args.kwargs
        assert kwargs["line_items"][1] == {"price": "price_channel", "quantity": 2}
        assert kwargs["cancel_url"] == "http://test/subscription/plans"

    def test_already_pro(self, fake_db, pro_subscription):
        with patch.object(plan_service, "get_settings", return_value=self._settings()):
            with pytest.raises(HTTPException) as excinfo:
                plan_service.create_checkout_session("user-1")
        assert excinfo.value.status_code == 409

    def test_stripe_error(self, fake_db):
        with patch.object(plan_service, "get_settings", return_value=self._settings()), \
             patch.object(stripe.checkout.Session, "create", side_effect=stripe.StripeError("card declined")):
            with pytest.raises(HTTPException) as excinfo:
                plan_service.create_checkout_session("user-1")
        assert excinfo.value.status_code == 502
