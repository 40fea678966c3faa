from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.billing.services.tier_manager import apply_monthly_reset
from app.features.users.models.user import SubscriptionStatus, User, UserTier
from app.platform.exceptions import InvalidRequestError
from app.platform.logger import get_logger

logger = get_logger(__name__)


async def initialize_user(db: AsyncSession, user_id: str, email: str) -> tuple[User, bool]:
    """
    Make sure a users row exists for an authenticated account.

    Returns the user and whether it was created by this call. Calling again
    with the same id is a no-op.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user:
        return user, False

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise InvalidRequestError(f"Email {email} is already registered to another user")

    user = User(
        id=user_id,
        email=email,
        tier=UserTier.free,
        subscription_status=SubscriptionStatus.active,
        monthly_analyses_used=0,
    )
    apply_monthly_reset(user)
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Initialized user {user_id} on free tier")
    return user, True
