"""
Adapty server-side API profile lookup.
"""
import logging

import httpx

from models import PurchaseRequest
from providers.base import HttpValidator, ValidationResult

logger = logging.getLogger(__name__)

ADAPTY_API_BASE_URL = "https://api.adapty.io/api/v2/server-side-api"


def _subscription_entries(profile: dict) -> list[dict]:
    subscriptions = profile.get("subscriptions") or {}
    if isinstance(subscriptions, dict):  # keyed by vendor_product_id
        return list(subscriptions.values())
    return list(subscriptions)


class AdaptyValidator(HttpValidator):
    name = "Adapty"

    def __init__(self, api_key: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        super().__init__(transport)
        self.api_key = api_key

    async def validate(self, purchase: PurchaseRequest) -> ValidationResult:
        customer_user_id = purchase.customer_user_id or ""
        context = {"customer_user_id": customer_user_id}
        logger.info("Validating Adapty subscription", extra={"context": context})

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{ADAPTY_API_BASE_URL}/profile/",
                    headers={
                        "adapty-customer-user-id": customer_user_id,
                        "Content-Type": "application/json",
                        "Authorization": f"Api-Key {self.api_key}",
                    },
                )

            if not response.is_success:
                logger.error(
                    "Adapty API error",
                    extra={"context": {**context, "status": response.status_code, "error": response.text[:200]}},
                )
                return ValidationResult(False, f"Adapty API error: {response.status_code} - {response.text}")

            body = response.json()
            profile = body.get("data", body) if isinstance(body, dict) else {}
            has_active = any(
                isinstance(entry, dict) and entry.get("is_active") is True
                for entry in _subscription_entries(profile)
            )
        except Exception as e:
            logger.exception("Adapty validation error", extra={"context": context})
            return ValidationResult(False, str(e) or "Unknown validation error")

        if not has_active:
            return ValidationResult(False, "No active subscriptions found in Adapty profile")

        logger.info("Active subscription found in Adapty profile", extra={"context": context})
        return ValidationResult(True, data=profile)
