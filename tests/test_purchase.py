"""
Purchase orchestration: idempotency, provider dispatch, expiry and persistence.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import RecordingValidator
from database import StoreError, get_db
from errors import InvalidRequestError, PersistenceError, ProviderValidationError
from models import PurchaseRequest, Subscription
from providers import ValidationResult
from purchase import PurchaseOrchestrator


def _purchase(**overrides) -> PurchaseRequest:
    fields = dict(
        customer_user_id="u1",
        product="com.unsentpro.yearly",
        price=9.99,
        currency="USD",
        platform="ios",
        transaction_id="123",
        purchase_date="2024-01-01T00:00:00Z",
        environment="sandbox",
    )
    fields.update(overrides)
    return PurchaseRequest(**fields)


def _count_rows(store) -> int:
    async def count():
        db = await get_db(store.path)
        try:
            async with db.execute("SELECT COUNT(*) FROM subscription") as cursor:
                (n,) = await cursor.fetchone()
        finally:
            await db.close()
        return n
    return asyncio.run(count())


def _existing(transaction_id="123", expires_in=timedelta(days=30)) -> Subscription:
    now = datetime.now(timezone.utc)
    return Subscription(
        customer_user_id="u1",
        product="com.unsentpro.monthly",
        price=4.99,
        currency="USD",
        transaction_id=transaction_id,
        purchase_date=now - timedelta(days=1),
        environment="sandbox",
        expires_at=now + expires_in,
    )


class BrokenStore:
    async def get_active_subscription_by_transaction_id(self, transaction_id):
        return None

    async def add_subscription(self, subscription):
        raise StoreError("database is locked")


def test_new_purchase_is_validated_and_recorded(utc_tz, store, validator):
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    saved = asyncio.run(orchestrator.add_subscription(_purchase()))

    assert saved.id is not None
    assert saved.is_active
    assert saved.customer_user_id == "u1"
    assert saved.expires_at == datetime(2024, 12, 31, 23, 59, 59, 999000, tzinfo=timezone.utc)
    assert len(validator.calls) == 1
    assert _count_rows(store) == 1


@pytest.mark.parametrize(
    "overrides, missing",
    [
        ({"customer_user_id": None}, "customer_user_id"),
        ({"product": ""}, "product"),
        ({"price": None, "currency": None}, "price, currency"),
    ],
)
def test_missing_required_fields_are_named(store, validator, overrides, missing):
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    with pytest.raises(InvalidRequestError) as excinfo:
        asyncio.run(orchestrator.add_subscription(_purchase(**overrides)))

    assert excinfo.value.status_code == 400
    assert excinfo.value.message == f"Missing required fields: {missing}"
    assert validator.calls == []


def test_replayed_transaction_returns_existing_row_without_validation(store, validator):
    existing = asyncio.run(store.add_subscription(_existing()))
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    result = asyncio.run(orchestrator.add_subscription(_purchase()))

    assert result.id == existing.id
    assert result.product == "com.unsentpro.monthly"
    assert validator.calls == []
    assert _count_rows(store) == 1


def test_expired_row_does_not_short_circuit(store, validator):
    asyncio.run(store.add_subscription(_existing(expires_in=timedelta(days=-1))))
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    asyncio.run(orchestrator.add_subscription(_purchase(purchase_date=None)))

    assert len(validator.calls) == 1
    assert _count_rows(store) == 2


def test_blank_transaction_id_skips_lookup(store, validator):
    asyncio.run(store.add_subscription(_existing(transaction_id="   ")))
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    asyncio.run(orchestrator.add_subscription(_purchase(transaction_id="   ")))

    assert len(validator.calls) == 1


def test_provider_rejection_is_prefixed_and_not_persisted(store):
    validator = RecordingValidator(ValidationResult(is_valid=False, error="Transaction not found"))
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    with pytest.raises(ProviderValidationError) as excinfo:
        asyncio.run(orchestrator.add_subscription(_purchase()))

    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Fake subscription validation failed: Transaction not found"
    assert _count_rows(store) == 0


def test_unknown_product_never_reaches_persistence(store, validator):
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    with pytest.raises(InvalidRequestError, match="Unknown subscription type: com.unsentpro.lifetime"):
        asyncio.run(orchestrator.add_subscription(_purchase(product="com.unsentpro.lifetime")))

    assert _count_rows(store) == 0


def test_store_failure_becomes_persistence_error(validator):
    orchestrator = PurchaseOrchestrator(validator=validator, store=BrokenStore())

    with pytest.raises(PersistenceError) as excinfo:
        asyncio.run(orchestrator.add_subscription(_purchase()))

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "database is locked"


def test_missing_purchase_date_defaults_to_now(store, validator):
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    saved = asyncio.run(orchestrator.add_subscription(_purchase(purchase_date=None, product="com.unsentpro.weekly")))

    now = datetime.now(timezone.utc)
    assert now - timedelta(minutes=1) < saved.purchase_date <= now
    assert saved.expires_at > now + timedelta(days=6)


def test_renewal_inserts_a_new_row(store, validator):
    """A renewal carries a new transaction id and is recorded alongside the original"""
    orchestrator = PurchaseOrchestrator(validator=validator, store=store)

    asyncio.run(orchestrator.add_subscription(_purchase(transaction_id="100", purchase_date=None)))
    asyncio.run(orchestrator.add_subscription(
        _purchase(transaction_id="101", original_transaction_id="100", purchase_date=None)
    ))

    assert _count_rows(store) == 2
