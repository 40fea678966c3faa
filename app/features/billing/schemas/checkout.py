from typing import Optional

from app.platform.schemas import FunctionRequest


class CheckoutSessionRequest(FunctionRequest):
    priceId: Optional[str] = None
    userId: Optional[str] = None
    tier: Optional[str] = None
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None
