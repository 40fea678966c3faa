from datetime import date, datetime, timedelta

import pytest

from app.features.analysis.workers.periodic_tasks import reset_monthly_quotas
from app.features.billing.models.subscription import Subscription, SubscriptionState
from app.features.billing.services.tier_manager import (
    apply_monthly_reset,
    available_upgrades,
    check_access,
    downgrade_tier,
    effective_tier,
    format_tier_name,
    parse_tier,
    upgrade_tier,
    validate_analysis_access,
)
from app.features.users.models.user import SubscriptionStatus, User, UserTier
from app.platform.db.session import SessionLocal
from app.platform.exceptions import UserNotFoundError
from app.platform.utils.clock import utctoday

NOW = datetime(2025, 7, 14, 12, 0, 0)


def _user(**fields):
    fields.setdefault("tier", UserTier.free)
    fields.setdefault("monthly_analyses_used", 0)
    fields.setdefault("monthly_reset_date", date(2025, 7, 1))
    return User(id="user-1", email="user-1@example.com", **fields)


class TestAccessRules:

    def test_free_user_under_limit(self):
        access = check_access(_user(monthly_analyses_used=1), NOW)

        assert access.allowed is True
        assert access.tier == "free"
        assert access.remaining_analyses == 2

    def test_free_user_at_limit(self):
        access = check_access(_user(monthly_analyses_used=3), NOW)

        assert access.allowed is False
        assert access.remaining_analyses == 0
        assert access.upgrade_required is True

    def test_paid_user_is_unlimited(self):
        user = _user(tier=UserTier.coffee, tier_expires_at=NOW + timedelta(days=3), monthly_analyses_used=50)
        access = check_access(user, NOW)

        assert access.allowed is True
        assert access.tier == "coffee"
        assert access.remaining_analyses is None

    def test_expired_paid_tier_falls_back_to_free(self):
        user = _user(tier=UserTier.professional, tier_expires_at=NOW - timedelta(seconds=1), monthly_analyses_used=3)

        assert effective_tier(user, NOW) == (UserTier.free, True)
        access = check_access(user, NOW)
        assert access.allowed is False
        assert access.subscription_expired is True

    def test_paid_tier_without_expiry_is_active(self):
        assert effective_tier(_user(tier=UserTier.enterprise), NOW) == (UserTier.enterprise, False)

    def test_new_month_resets_counter(self):
        user = _user(monthly_analyses_used=3, monthly_reset_date=date(2025, 6, 1))

        access = check_access(user, NOW)

        assert access.allowed is True
        assert access.remaining_analyses == 3
        assert user.monthly_analyses_used == 0
        assert user.monthly_reset_date == date(2025, 7, 1)

    def test_reset_is_noop_within_month(self):
        user = _user(monthly_analyses_used=2)

        assert apply_monthly_reset(user, date(2025, 7, 31)) is False
        assert user.monthly_analyses_used == 2

    def test_first_reset_when_date_missing(self):
        user = _user(monthly_analyses_used=2, monthly_reset_date=None)

        assert apply_monthly_reset(user, date(2025, 7, 14)) is True
        assert user.monthly_reset_date == date(2025, 7, 1)


class TestTierHelpers:

    def test_display_names(self):
        assert format_tier_name(UserTier.free) == "Free"
        assert "Coffee" in format_tier_name(UserTier.coffee)

    def test_upgrade_paths(self):
        assert available_upgrades(UserTier.free) == ["coffee", "professional", "enterprise"]
        assert available_upgrades(UserTier.enterprise) == []

    @pytest.mark.parametrize(
        "value, expected",
        [("professional", UserTier.professional), (None, UserTier.coffee), ("platinum", UserTier.coffee)],
    )
    def test_parse_tier(self, value, expected):
        assert parse_tier(value) == expected


class TestTierUpdates:

    @pytest.mark.asyncio
    async def test_upgrade_then_downgrade(self, make_user, session_factory):
        make_user()

        async with SessionLocal() as db:
            user = await upgrade_tier(db, "user-1", UserTier.coffee, {"id": "sub_9", "customer": "cus_9"})
            assert user.tier == UserTier.coffee
            assert user.tier_expires_at is not None

            user = await downgrade_tier(db, "user-1", "test")
            assert user.tier == UserTier.free
            assert user.subscription_status == SubscriptionStatus.inactive

        db = session_factory()
        try:
            subscription = db.query(Subscription).filter(Subscription.stripe_subscription_id == "sub_9").one()
            assert subscription.status == SubscriptionState.canceled
            assert db.get(User, "user-1").stripe_customer_id == "cus_9"
        finally:
            db.close()

    @pytest.mark.asyncio
    async def test_unknown_user(self, session_factory):
        async with SessionLocal() as db:
            with pytest.raises(UserNotFoundError):
                await validate_analysis_access(db, "ghost")


def test_periodic_reset_only_touches_stale_counters(make_user, session_factory):
    month_start = utctoday().replace(day=1)
    make_user(user_id="stale", monthly_analyses_used=3, monthly_reset_date=date(2000, 1, 1))
    make_user(user_id="fresh", monthly_analyses_used=2, monthly_reset_date=month_start)

    assert reset_monthly_quotas() == 1

    db = session_factory()
    try:
        assert db.get(User, "stale").monthly_analyses_used == 0
        assert db.get(User, "stale").monthly_reset_date == month_start
        assert db.get(User, "fresh").monthly_analyses_used == 2
    finally:
        db.close()
