"""
Purchase validators, one per provider. A deployment uses exactly one,
chosen by VALIDATION_METHOD at startup.
"""
import logging

import config
from providers.adapty import AdaptyValidator
from providers.apple import AppleValidator
from providers.base import NoopValidator, SubscriptionValidator, ValidationResult
from providers.revenuecat import RevenueCatValidator

logger = logging.getLogger(__name__)

VALIDATION_METHODS = ("apple", "adapty", "revenuecat", "none")


def build_validator(method: str, transport=None) -> SubscriptionValidator:
    if method == "apple":
        if not all((config.APPLE_KEY_ID, config.APPLE_ISSUER_ID, config.APPLE_BUNDLE_ID, config.APPLE_PRIVATE_KEY)):
            logger.warning("VALIDATION_METHOD=apple but Apple credentials are incomplete")
        return AppleValidator(
            key_id=config.APPLE_KEY_ID,
            issuer_id=config.APPLE_ISSUER_ID,
            bundle_id=config.APPLE_BUNDLE_ID,
            private_key=config.APPLE_PRIVATE_KEY,
            transport=transport,
        )
    if method == "adapty":
        return AdaptyValidator(api_key=config.ADAPTY_SECRET_API_KEY, transport=transport)
    if method == "revenuecat":
        return RevenueCatValidator(
            api_key=config.REVENUECAT_SECRET_API_KEY,
            project_id=config.REVENUECAT_PROJECT_ID,
            transport=transport,
        )
    if method != "none":
        logger.warning(f"Unknown VALIDATION_METHOD {method!r}, purchases will not be validated")
    return NoopValidator()


__all__ = [
    "AdaptyValidator",
    "AppleValidator",
    "NoopValidator",
    "RevenueCatValidator",
    "SubscriptionValidator",
    "ValidationResult",
    "VALIDATION_METHODS",
    "build_validator",
]
