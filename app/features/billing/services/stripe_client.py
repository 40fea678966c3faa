from typing import Any, Dict, Optional

import httpx

from app.platform.config import settings
from app.platform.exceptions import ConfigurationError, StripeError
from app.platform.logger import get_logger

logger = get_logger(__name__)


class StripeClient:
    """
    Minimal Stripe REST client.

    Requests are form-encoded with Stripe's bracket notation for nested
    fields (``metadata[user_id]``), which callers pass as flat keys.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.base_url = (base_url or settings.STRIPE_API_URL).rstrip("/")
        self.timeout = timeout or settings.STRIPE_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("Stripe secret key not configured")
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _request(self, method: str, path: str, data: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        headers = self._headers()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", data=data, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"Stripe {method} {path} failed: {e}")
            raise StripeError(f"Stripe request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Stripe {method} {path} returned {response.status_code}: {response.text}")
            raise StripeError(f"Stripe {path} failed ({response.status_code}): {response.text}")
        return response.json()

    async def create_customer(self, email: str, user_id: str, tier: str) -> Dict[str, Any]:
        return await self._request("POST", "/customers", {
            "email": email,
            "metadata[user_id]": user_id,
            "metadata[tier]": tier,
        })

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: str,
        tier: str,
        success_url: str,
        cancel_url: str,
    ) -> Dict[str, Any]:
        return await self._request("POST", "/checkout/sessions", {
            "customer": customer_id,
            "line_items[0][price]": price_id,
            "line_items[0][quantity]": "1",
            "mode": "subscription",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata[user_id]": user_id,
            "metadata[tier]": tier,
            "subscription_data[metadata][user_id]": user_id,
            "subscription_data[metadata][tier]": tier,
            "allow_promotion_codes": "true",
            "billing_address_collection": "auto",
            "payment_method_types[0]": "card",
        })

    async def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/subscriptions/{subscription_id}")


def get_stripe_client() -> StripeClient:
    return StripeClient()
