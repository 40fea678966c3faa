from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.billing.services.stripe_client import StripeClient, get_stripe_client
from app.features.billing.services.webhook import process_webhook
from app.platform.config import settings
from app.platform.db.session import get_db
from app.platform.exceptions import AppError, ConfigurationError, WebhookSignatureError
from app.platform.logger import get_logger
from app.platform.response import api_response, error_response

logger = get_logger(__name__)

router = APIRouter(prefix=settings.FUNCTIONS_PREFIX, tags=["billing"])


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    payload = await request.body()
    try:
        event_type = await process_webhook(db, stripe, payload, request.headers.get("stripe-signature"))
    except (WebhookSignatureError, ConfigurationError):
        raise
    except AppError as e:
        # Stripe retries non-2xx deliveries
        await db.rollback()
        logger.error(f"Webhook processing error: {e.message}")
        return error_response(f"Webhook error: {e.message}", status.HTTP_400_BAD_REQUEST)

    return api_response(data={"received": True, "type": event_type}, message="Webhook handled successfully")
