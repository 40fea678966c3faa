"""
Stripe webhook verification and event handling.

Signatures follow Stripe's scheme: the ``Stripe-Signature`` header carries
``t=<unix ts>`` and one or more ``v1=<hex>`` entries, where each v1 value is
HMAC-SHA256(secret, "<t>.<raw body>").
"""
import hashlib
import hmac
import json
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.features.billing.services.stripe_client import StripeClient
from app.features.billing.services.tier_manager import (
    downgrade_tier,
    find_user_by_customer,
    parse_tier,
    upgrade_tier,
)
from app.platform.config import settings
from app.platform.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    MissingSignatureError,
    StripeError,
    WebhookSignatureError,
)
from app.platform.logger import get_logger

logger = get_logger(__name__)

PAYMENT_FAILURE_WARNING_ATTEMPTS = 3


def compute_signature(payload: bytes, timestamp: str, secret: str) -> str:
    signed = timestamp.encode() + b"." + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_signature(
    payload: bytes,
    header: Optional[str],
    secret: Optional[str],
    tolerance: int = 300,
    now: Optional[float] = None,
) -> None:
    if not secret:
        raise ConfigurationError("Stripe webhook secret not configured")
    if not header:
        raise MissingSignatureError()

    timestamp = None
    signatures = []
    for element in header.split(","):
        key, _, value = element.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        raise WebhookSignatureError("Malformed signature header")
    try:
        signed_at = int(timestamp)
    except ValueError:
        raise WebhookSignatureError("Malformed signature timestamp")

    now = time.time() if now is None else now
    if abs(now - signed_at) > tolerance:
        raise WebhookSignatureError("Signature timestamp outside tolerance")

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise WebhookSignatureError()


def parse_event(payload: bytes) -> Dict[str, Any]:
    try:
        event = json.loads(payload)
    except ValueError as e:
        raise InvalidRequestError(f"Invalid webhook payload: {e}") from e
    if not isinstance(event, dict) or "type" not in event:
        raise InvalidRequestError("Invalid webhook payload: missing event type")
    return event


async def handle_checkout_completed(db: AsyncSession, stripe: StripeClient, session: Dict[str, Any]) -> None:
    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id")
    if not user_id:
        raise InvalidRequestError("No user_id in session metadata")
    tier = parse_tier(metadata.get("tier"))

    details: Dict[str, Any] = {}
    subscription_id = session.get("subscription")
    if subscription_id:
        try:
            details = await stripe.retrieve_subscription(subscription_id)
        except StripeError as e:
            # Upgrade still goes through with a default billing period
            logger.warning(f"Could not fetch subscription {subscription_id}: {e.message}")

    items = (details.get("items") or {}).get("data") or [{}]
    await upgrade_tier(db, user_id, tier, {
        "id": subscription_id,
        "customer": session.get("customer"),
        "current_period_start": details.get("current_period_start"),
        "current_period_end": details.get("current_period_end"),
        "cancel_at_period_end": details.get("cancel_at_period_end", False),
        "price_id": (items[0].get("price") or {}).get("id"),
    })


async def handle_payment_succeeded(db: AsyncSession, stripe: StripeClient, invoice: Dict[str, Any]) -> None:
    if not invoice.get("subscription"):
        logger.info("No subscription ID in invoice, skipping")
        return
    user = await find_user_by_customer(db, invoice.get("customer"))
    logger.info(f"Payment succeeded for user {user.id}, tier: {user.tier.value}")


async def handle_subscription_updated(db: AsyncSession, stripe: StripeClient, subscription: Dict[str, Any]) -> None:
    user = await find_user_by_customer(db, subscription.get("customer"))
    status = subscription.get("status")
    logger.info(f"Subscription updated for user {user.id}, status: {status}")
    if status in ("canceled", "incomplete_expired"):
        await downgrade_tier(db, user.id, "subscription_canceled")


async def handle_subscription_deleted(db: AsyncSession, stripe: StripeClient, subscription: Dict[str, Any]) -> None:
    user = await find_user_by_customer(db, subscription.get("customer"))
    await downgrade_tier(db, user.id, "subscription_canceled")


async def handle_payment_failed(db: AsyncSession, stripe: StripeClient, invoice: Dict[str, Any]) -> None:
    user = await find_user_by_customer(db, invoice.get("customer"))
    attempts = invoice.get("attempt_count") or 0
    logger.info(f"Payment failed for user {user.id}, attempt: {attempts}")
    if attempts >= PAYMENT_FAILURE_WARNING_ATTEMPTS:
        logger.warning(f"Repeated payment failures for user {user.id} ({attempts} attempts)")


EVENT_HANDLERS: Dict[str, Callable[[AsyncSession, StripeClient, Dict[str, Any]], Awaitable[None]]] = {
    "checkout.session.completed": handle_checkout_completed,
    "invoice.payment_succeeded": handle_payment_succeeded,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_failed": handle_payment_failed,
}


async def process_webhook(
    db: AsyncSession,
    stripe: StripeClient,
    payload: bytes,
    signature_header: Optional[str],
) -> str:
    """Verify, parse and dispatch one webhook delivery. Returns the event type."""
    verify_signature(
        payload,
        signature_header,
        settings.STRIPE_WEBHOOK_SECRET,
        tolerance=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
    )
    event = parse_event(payload)
    event_type = event["type"]
    logger.info(f"Webhook event type: {event_type}")

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled event type: {event_type}")
        return event_type

    data_object = (event.get("data") or {}).get("object") or {}
    await handler(db, stripe, data_object)
    return event_type
