from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.features.billing.services.stripe_client import StripeClient
from app.features.billing.services.tier_manager import get_user
from app.platform.logger import get_logger

logger = get_logger(__name__)


async def ensure_stripe_customer(db: AsyncSession, stripe: StripeClient, user_id: str, tier: str) -> str:
    """
    Return the user's Stripe customer id, creating and storing one on first use.

    Check-then-create: two simultaneous first checkouts for the same user can
    both create a customer. The unique column keeps only one of them.
    """
    user = await get_user(db, user_id)
    if user.stripe_customer_id:
        return user.stripe_customer_id

    logger.info(f"Creating Stripe customer for user {user_id}")
    customer = await stripe.create_customer(user.email, user_id, tier)
    user.stripe_customer_id = customer["id"]
    await db.commit()
    logger.info(f"Stripe customer created: {customer['id']}")
    return customer["id"]


async def create_checkout_session(
    db: AsyncSession,
    stripe: StripeClient,
    price_id: str,
    user_id: str,
    tier: str,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    origin: Optional[str] = None,
) -> Dict[str, str]:
    customer_id = await ensure_stripe_customer(db, stripe, user_id, tier)

    origin = (origin or "").rstrip("/")
    session = await stripe.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        user_id=user_id,
        tier=tier,
        success_url=success_url or f"{origin}/upgrade-success",
        cancel_url=cancel_url or f"{origin}/pricing",
    )
    logger.info(f"Checkout session created: {session['id']} for user {user_id}")

    return {
        "sessionId": session["id"],
        "url": session.get("url"),
        "customerId": customer_id,
    }
