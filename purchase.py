"""
Unsent Pro API — Purchase orchestration
  idempotency lookup → provider validation → expiry → insert

The lookup and the insert are not atomic and subscription.transaction_id has
no UNIQUE constraint, so two concurrent requests for the same transaction can
both insert a row.
"""
import logging
from datetime import datetime, timezone

from database import StoreError, SubscriptionStore
from entitlements import UnknownProductError, calculate_expiry
from errors import InvalidRequestError, PersistenceError, ProviderValidationError
from models import PurchaseRequest, Subscription
from providers import SubscriptionValidator

REQUIRED_FIELDS = ("customer_user_id", "product", "price", "currency")


class PurchaseOrchestrator:
    def __init__(
        self,
        validator: SubscriptionValidator,
        store: SubscriptionStore,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> None:
        self.validator = validator
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    async def add_subscription(self, purchase: PurchaseRequest) -> Subscription:
        missing = [name for name in REQUIRED_FIELDS if getattr(purchase, name) in (None, "")]
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")

        existing = await self._find_existing(purchase.transaction_id)
        if existing:
            return existing

        result = await self.validator.validate(purchase)
        context = {"customer_user_id": purchase.customer_user_id, "transaction_id": purchase.transaction_id}
        if not result.is_valid:
            self.logger.warning(
                f"{self.validator.name} subscription validation failed",
                extra={"context": {**context, "error": result.error}},
            )
            raise ProviderValidationError(
                f"{self.validator.name} subscription validation failed: {result.error}"
            )
        self.logger.info(f"{self.validator.name} subscription validated", extra={"context": context})

        purchase_date = purchase.purchase_date or datetime.now(timezone.utc)
        try:
            expires_at = calculate_expiry(purchase_date, purchase.product)
        except UnknownProductError as e:
            raise InvalidRequestError(str(e))

        subscription = Subscription(
            customer_user_id=purchase.customer_user_id,
            product=purchase.product,
            price=purchase.price,
            currency=purchase.currency,
            is_active=True,
            platform=purchase.platform,
            transaction_id=purchase.transaction_id,
            original_transaction_id=purchase.original_transaction_id,
            purchase_date=purchase_date,
            environment=purchase.environment,
            expires_at=expires_at,
        )

        try:
            saved = await self.store.add_subscription(subscription)
        except StoreError as e:
            self.logger.error("Subscription insert failed", extra={"context": {**context, "error": str(e)}})
            raise PersistenceError(str(e))

        self.logger.info("Subscription recorded", extra={"context": {**context, "id": saved.id}})
        return saved

    async def _find_existing(self, transaction_id: str | None) -> Subscription | None:
        if not transaction_id or not transaction_id.strip():
            return None
        try:
            existing = await self.store.get_active_subscription_by_transaction_id(transaction_id)
        except StoreError as e:
            raise PersistenceError(str(e))

        context = {"transaction_id": transaction_id}
        if existing:
            self.logger.info("Found existing active subscription", extra={"context": context})
        else:
            self.logger.info("No existing subscription found", extra={"context": context})
        return existing
