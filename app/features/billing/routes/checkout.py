from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.billing.schemas.checkout import CheckoutSessionRequest
from app.features.billing.services.checkout import create_checkout_session
from app.features.billing.services.stripe_client import StripeClient, get_stripe_client
from app.platform.config import settings
from app.platform.db.session import get_db
from app.platform.response import CORS_HEADERS, api_response

router = APIRouter(prefix=settings.FUNCTIONS_PREFIX, tags=["billing"])


@router.options("/create-checkout-session", include_in_schema=False)
async def checkout_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/create-checkout-session")
async def create_checkout_session_route(
    body: CheckoutSessionRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
):
    body.require("priceId", "userId", "tier")
    session = await create_checkout_session(
        db,
        stripe,
        price_id=body.priceId,
        user_id=body.userId,
        tier=body.tier,
        success_url=body.successUrl,
        cancel_url=body.cancelUrl,
        origin=request.headers.get("origin"),
    )
    return api_response(data=session)
