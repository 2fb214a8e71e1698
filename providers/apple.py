"""
Apple App Store Server API transaction lookup
=============================================
GET /inApps/v2/transactions/{transactionId} with a self-signed ES256 token.

Ref: https://developer.apple.com/documentation/appstoreserverapi/get_transaction_info
"""
import logging
import re

import httpx

from apple_jws import (
    AppleCredentials,
    AppleCredentialsError,
    decode_jws_payload,
    generate_apple_jwt,
    verify_apple_jwt,
)
from models import PurchaseRequest
from providers.base import HttpValidator, ValidationResult

logger = logging.getLogger(__name__)

APPLE_API_ENDPOINTS = {
    "production": "https://api.storekit.itunes.apple.com",
    "sandbox":    "https://api.storekit-sandbox.itunes.apple.com",
}

TRANSACTION_ID_PATTERN = re.compile(r"^\d+$")

TRANSACTION_FIELDS = (
    "transactionId",
    "originalTransactionId",
    "bundleId",
    "productId",
    "purchaseDate",
    "originalPurchaseDate",
    "quantity",
    "type",
    "inAppOwnershipType",
    "signedDate",
    "environment",
    "transactionReason",
    "storefront",
    "storefrontId",
)


def _api_error(response: httpx.Response) -> ValidationResult:
    if response.status_code == 401:
        return ValidationResult(False, "Apple API authentication failed - check your JWT credentials")
    if response.status_code == 404:
        return ValidationResult(False, "Transaction not found")
    return ValidationResult(
        False, f"Apple API request failed: {response.status_code} {response.reason_phrase}"
    )


class AppleValidator(HttpValidator):
    name = "Apple"

    def __init__(
        self,
        key_id: str,
        issuer_id: str,
        bundle_id: str,
        private_key: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(transport)
        self._credential_values = (key_id, issuer_id, bundle_id, private_key)

    def credentials(self) -> AppleCredentials:
        return AppleCredentials.from_values(*self._credential_values)

    async def validate(self, purchase: PurchaseRequest) -> ValidationResult:
        return await self.validate_transaction(purchase.transaction_id or "", purchase.environment or "")

    async def validate_transaction(self, transaction_id: str, environment: str) -> ValidationResult:
        # ── Input checks, before credentials or network ───────────────────────
        if not TRANSACTION_ID_PATTERN.match(transaction_id):
            return ValidationResult(False, "Invalid transaction ID format")
        if environment not in APPLE_API_ENDPOINTS:
            return ValidationResult(False, 'Invalid environment. Must be "production" or "sandbox"')

        context = {"transaction_id": transaction_id, "environment": environment}
        logger.info("Validating Apple transaction", extra={"context": context})

        try:
            credentials = self.credentials()
            token = generate_apple_jwt(credentials)
            try:
                verify_apple_jwt(token, credentials)
            except ValueError as e:
                logger.error("JWT verification failed", extra={"context": {**context, "reason": str(e)}})
                return ValidationResult(False, "Generated JWT failed validation - check your Apple credentials")

            url = f"{APPLE_API_ENDPOINTS[environment]}/inApps/v2/transactions/{transaction_id}"
            logger.info("Calling Apple Store Server API", extra={"context": {**context, "url": url}})

            async with self._client() as client:
                response = await client.get(
                    url,
                    headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
                )

            logger.info(
                "Apple API response received",
                extra={"context": {**context, "status": response.status_code}},
            )
            if not response.is_success:
                return _api_error(response)

            signed_info = response.json().get("signedTransactionInfo")
            if not signed_info:
                return ValidationResult(False, "No transaction info in response")

            try:
                payload = decode_jws_payload(signed_info)
            except ValueError as e:
                logger.error("Error parsing JWS", extra={"context": {**context, "error": str(e)}})
                return ValidationResult(False, "Failed to parse transaction info")

            transaction_info = {field: payload.get(field) for field in TRANSACTION_FIELDS}
            logger.info("Transaction validated successfully", extra={"context": context})
            return ValidationResult(True, data=transaction_info)

        except AppleCredentialsError as e:
            logger.error("Apple credentials unusable", extra={"context": {**context, "error": str(e)}})
            return ValidationResult(False, f"Validation failed: {e}")
        except Exception as e:
            logger.exception("Apple Store Server API validation error", extra={"context": context})
            return ValidationResult(False, f"Validation failed: {e}")
