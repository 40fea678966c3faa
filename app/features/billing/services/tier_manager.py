"""
Tier access control and subscription bookkeeping.

The pure helpers at the top are shared by the async API services and the
synchronous analysis worker; the async functions below operate on the
API's AsyncSession.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.billing.models.subscription import Subscription, SubscriptionState
from app.features.billing.models.usage_analytics import UsageRecord
from app.features.users.models.user import SubscriptionStatus, User, UserTier
from app.platform.config import settings
from app.platform.exceptions import UserNotFoundError
from app.platform.logger import get_logger
from app.platform.utils.clock import from_unix, utcnow, utctoday

logger = get_logger(__name__)

TIER_DISPLAY_NAMES = {
    UserTier.free: "Free",
    UserTier.coffee: "☕ Coffee",
    UserTier.professional: "💼 Professional",
    UserTier.enterprise: "🏢 Enterprise",
}

TIER_FEATURES = {
    UserTier.free: ["3 analyses per month", "Basic recommendations", "Phase A factors", "Watermarked results"],
    UserTier.coffee: ["Unlimited Phase A analyses", "Professional recommendations", "Clean results", "Export capabilities"],
    UserTier.professional: ["Everything in Coffee", "Phase B factors (22 total)", "Advanced analysis", "Priority support"],
    UserTier.enterprise: ["Everything in Professional", "API access", "Team collaboration", "Custom reporting"],
}

UPGRADE_PATHS = {
    UserTier.free: [UserTier.coffee, UserTier.professional, UserTier.enterprise],
    UserTier.coffee: [UserTier.professional, UserTier.enterprise],
    UserTier.professional: [UserTier.enterprise],
    UserTier.enterprise: [],
}

DEFAULT_PERIOD = timedelta(days=30)


@dataclass
class TierAccess:
    allowed: bool
    tier: str
    remaining_analyses: Optional[int] = None  # None means unlimited
    subscription_expired: bool = False
    upgrade_required: bool = False
    message: str = ""


def monthly_limit(tier: UserTier) -> Optional[int]:
    if tier == UserTier.free:
        return settings.FREE_TIER_MONTHLY_ANALYSES
    return None


def effective_tier(user: User, now: Optional[datetime] = None) -> tuple[UserTier, bool]:
    """The tier the user is entitled to right now, and whether a paid tier has lapsed."""
    now = now or utcnow()
    tier = user.tier or UserTier.free
    if tier != UserTier.free and user.tier_expires_at and user.tier_expires_at < now:
        return UserTier.free, True
    return tier, False


def apply_monthly_reset(user: User, today: Optional[date] = None) -> bool:
    """Zero the free-tier counter when the stored reset month is behind the current one."""
    today = today or utctoday()
    reset = user.monthly_reset_date
    if reset is not None and (reset.year, reset.month) >= (today.year, today.month):
        return False
    user.monthly_analyses_used = 0
    user.monthly_reset_date = today.replace(day=1)
    return True


def check_access(user: User, now: Optional[datetime] = None) -> TierAccess:
    now = now or utcnow()
    apply_monthly_reset(user, now.date())
    tier, expired = effective_tier(user, now)
    limit = monthly_limit(tier)

    if limit is None:
        return TierAccess(allowed=True, tier=tier.value, message="Unlimited analyses")

    remaining = max(limit - (user.monthly_analyses_used or 0), 0)
    if remaining <= 0:
        return TierAccess(
            allowed=False,
            tier=tier.value,
            remaining_analyses=0,
            subscription_expired=expired,
            upgrade_required=True,
            message=f"Monthly limit of {limit} analyses reached. Upgrade to continue.",
        )
    return TierAccess(
        allowed=True,
        tier=tier.value,
        remaining_analyses=remaining,
        subscription_expired=expired,
        message=f"{remaining} analyses remaining this month",
    )


def format_tier_name(tier: UserTier) -> str:
    return TIER_DISPLAY_NAMES.get(tier, tier.value)


def available_upgrades(tier: UserTier) -> List[str]:
    return [t.value for t in UPGRADE_PATHS.get(tier, [])]


def parse_tier(value: Optional[str], default: UserTier = UserTier.coffee) -> UserTier:
    try:
        return UserTier(value) if value else default
    except ValueError:
        logger.warning(f"Unknown tier '{value}', using {default.value}")
        return default


async def get_user(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


async def find_user_by_customer(db: AsyncSession, customer_id: str) -> User:
    result = await db.execute(select(User).where(User.stripe_customer_id == customer_id))
    user = result.scalar_one_or_none()
    if not user:
        raise UserNotFoundError(f"User not found for customer ID: {customer_id}")
    return user


async def validate_analysis_access(db: AsyncSession, user_id: str) -> TierAccess:
    user = await get_user(db, user_id)
    access = check_access(user)
    # check_access may have reset the monthly counter
    await db.flush()
    logger.info(f"Tier access for {user_id}: allowed={access.allowed} tier={access.tier} remaining={access.remaining_analyses}")
    return access


async def upgrade_tier(
    db: AsyncSession,
    user_id: str,
    tier: UserTier,
    subscription: Dict[str, Any],
) -> User:
    """
    Move a user onto a paid tier after checkout and mirror the Stripe
    subscription locally (upsert on stripe_subscription_id).
    """
    user = await get_user(db, user_id)

    period_start = from_unix(subscription["current_period_start"]) if subscription.get("current_period_start") else utcnow()
    period_end = from_unix(subscription["current_period_end"]) if subscription.get("current_period_end") else period_start + DEFAULT_PERIOD

    user.tier = tier
    user.tier_expires_at = period_end
    user.subscription_status = SubscriptionStatus.active
    if subscription.get("customer"):
        user.stripe_customer_id = subscription["customer"]

    subscription_id = subscription.get("id")
    record = None
    if subscription_id:
        result = await db.execute(
            select(Subscription).where(Subscription.stripe_subscription_id == subscription_id)
        )
        record = result.scalar_one_or_none()
    if record is None:
        record = Subscription(user_id=user_id, stripe_subscription_id=subscription_id)
        db.add(record)

    record.tier = tier
    record.stripe_price_id = subscription.get("price_id")
    record.status = SubscriptionState.active
    record.current_period_start = period_start
    record.current_period_end = period_end
    record.cancel_at_period_end = bool(subscription.get("cancel_at_period_end", False))

    await db.commit()
    logger.info(f"Upgraded user {user_id} to {tier.value} until {period_end.isoformat()}")
    return user


async def downgrade_tier(db: AsyncSession, user_id: str, reason: str = "subscription_ended") -> User:
    user = await get_user(db, user_id)

    user.tier = UserTier.free
    user.tier_expires_at = None
    user.subscription_status = SubscriptionStatus.inactive

    await db.execute(
        update(Subscription)
        .where(Subscription.user_id == user_id, Subscription.status == SubscriptionState.active)
        .values(status=SubscriptionState.canceled)
    )
    await db.commit()
    logger.info(f"Downgraded user {user_id} to free ({reason})")
    return user


async def get_user_tier_info(db: AsyncSession, user_id: str) -> Dict[str, Any]:
    user = await get_user(db, user_id)
    access = check_access(user)
    await db.commit()

    result = await db.execute(
        select(Subscription).where(Subscription.user_id == user_id).order_by(Subscription.created_at.desc())
    )
    subscriptions = result.scalars().all()
    tier, _ = effective_tier(user)

    return {
        "userId": user.id,
        "tier": user.tier.value,
        "effective_tier": tier.value,
        "tier_display_name": format_tier_name(tier),
        "tier_expires_at": user.tier_expires_at,
        "subscription_status": user.subscription_status.value,
        "monthly_analyses_used": user.monthly_analyses_used,
        "monthly_reset_date": user.monthly_reset_date,
        "remaining_analyses": access.remaining_analyses,
        "subscription_expired": access.subscription_expired,
        "features": TIER_FEATURES.get(tier, []),
        "available_upgrades": available_upgrades(tier),
        "subscriptions": [
            {
                "tier": s.tier.value,
                "status": s.status.value,
                "current_period_end": s.current_period_end,
                "cancel_at_period_end": s.cancel_at_period_end,
            }
            for s in subscriptions
        ],
    }


async def get_usage_analytics(db: AsyncSession, user_id: str, days: int = 30) -> Dict[str, Any]:
    """Usage rows from the last ``days`` days, newest first, with simple totals."""
    await get_user(db, user_id)
    since = utcnow() - timedelta(days=days)

    result = await db.execute(
        select(UsageRecord)
        .where(UsageRecord.user_id == user_id, UsageRecord.created_at >= since)
        .order_by(UsageRecord.created_at.desc(), UsageRecord.id.desc())
    )
    records = list(result.scalars().all())

    successful = sum(1 for r in records if r.success)
    average_ms = round(sum(r.processing_time_ms for r in records) / len(records)) if records else None

    return {
        "userId": user_id,
        "days": days,
        "total": len(records),
        "successful": successful,
        "failed": len(records) - successful,
        "average_processing_time_ms": average_ms,
        "records": records,
    }
