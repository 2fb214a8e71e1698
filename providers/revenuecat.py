"""
RevenueCat v2 customer lookup.
"""
import logging
from datetime import datetime, timezone

import httpx

from models import PurchaseRequest
from providers.base import HttpValidator, ValidationResult

logger = logging.getLogger(__name__)

REVENUECAT_API_BASE_URL = "https://api.revenuecat.com/v2"
ANONYMOUS_ID_PREFIX = "$RCAnonymousID:"


def normalize_customer_id(customer_user_id: str) -> str:
    """
    Put an id into RevenueCat's anonymous-id form.

    ":abc" -> "$RCAnonymousID:abc", "abc" -> "$RCAnonymousID:abc",
    ids already carrying the prefix are left alone.
    """
    if customer_user_id.startswith(":"):
        return ANONYMOUS_ID_PREFIX + customer_user_id[1:]
    if not customer_user_id.startswith(ANONYMOUS_ID_PREFIX):
        return ANONYMOUS_ID_PREFIX + customer_user_id
    return customer_user_id


def _entitlement_summary(items: list[dict]) -> list[dict]:
    summary = []
    for item in items:
        expires_at = item.get("expires_at")
        if isinstance(expires_at, (int, float)):
            expires_at = datetime.fromtimestamp(expires_at / 1000, tz=timezone.utc).isoformat()
        summary.append({"id": item.get("entitlement_id"), "expires_at": expires_at})
    return summary


class RevenueCatValidator(HttpValidator):
    name = "RevenueCat"

    def __init__(
        self,
        api_key: str,
        project_id: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(transport)
        self.api_key = api_key
        self.project_id = project_id

    async def validate(self, purchase: PurchaseRequest) -> ValidationResult:
        customer_id = normalize_customer_id(purchase.customer_user_id or "")
        context = {"customer_user_id": customer_id}

        try:
            if not self.project_id:
                raise ValueError("REVENUECAT_PROJECT_ID environment variable is not set")

            api_url = f"{REVENUECAT_API_BASE_URL}/projects/{self.project_id}/customers/{customer_id}"
            logger.info("Calling RevenueCat API", extra={"context": {**context, "api_url": api_url}})

            async with self._client() as client:
                response = await client.get(
                    api_url,
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {self.api_key}",
                    },
                )

            if not response.is_success:
                logger.error(
                    "RevenueCat API error",
                    extra={"context": {**context, "status": response.status_code, "error": response.text[:200]}},
                )
                return ValidationResult(False, f"RevenueCat API error: {response.status_code} - {response.text}")

            customer = response.json()
            items = (customer.get("active_entitlements") or {}).get("items") or []
        except Exception as e:
            logger.error("RevenueCat validation error", extra={"context": {**context, "error": str(e)}})
            return ValidationResult(False, str(e) or "Unknown validation error")

        logger.info(
            "RevenueCat customer data retrieved",
            extra={"context": {**context, "entitlements": _entitlement_summary(items)}},
        )
        if not items:
            logger.warning("No active entitlements found", extra={"context": context})
            return ValidationResult(False, "No active entitlements found in RevenueCat profile")

        return ValidationResult(True, data=customer)
