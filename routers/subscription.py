"""
Unsent Pro API — Subscription routes
  POST /api/purchase           validate a purchase with the configured provider + record it
  POST /api/add-subscription   same flow, legacy body (user_id instead of customer_user_id)
  GET  /api/get-subscription   active subscription for a subscriber
"""
from fastapi import APIRouter, Depends, Request

from auth import verify_api_key
from database import StoreError, SubscriptionStore
from dependencies import get_orchestrator, get_store
from errors import InvalidRequestError, NotFoundError, PersistenceError
from limiter import limiter
from models import PurchaseRequest, SubscriptionResponse
from purchase import PurchaseOrchestrator

router = APIRouter(prefix="/api", tags=["Subscription"], dependencies=[Depends(verify_api_key)])


@router.post("/purchase", response_model=SubscriptionResponse, summary="Record a purchase")
@limiter.limit("10/minute")
async def purchase(
    request: Request,
    data: PurchaseRequest,
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    """
    Record an in-app purchase after the app store hands it to the client.

    1. Replays with a `transaction_id` that already has an active row return that row.
    2. Otherwise the purchase is checked with the deployment's provider
       (Apple, Adapty, RevenueCat, or none).
    3. Expiry is purchase date + 7 / 30 / 365 days, at 23:59:59.999.

    Returns **403** when the provider rejects the purchase.
    """
    subscription = await orchestrator.add_subscription(data)
    return SubscriptionResponse(subscription=subscription)


@router.post("/add-subscription", response_model=SubscriptionResponse, summary="Record a purchase (legacy)")
@limiter.limit("10/minute")
async def add_subscription(
    request: Request,
    data: PurchaseRequest,
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
):
    """Older app builds post here with `user_id`. Same behaviour as `/api/purchase`."""
    subscription = await orchestrator.add_subscription(data)
    return SubscriptionResponse(subscription=subscription)


@router.get("/get-subscription", response_model=SubscriptionResponse, summary="Get active subscription")
@limiter.limit("30/minute")
async def get_subscription(
    request: Request,
    customer_user_id: str | None = None,
    store: SubscriptionStore = Depends(get_store),
):
    """Returns **404** when the subscriber has no active, unexpired subscription."""
    if not customer_user_id or not customer_user_id.strip():
        raise InvalidRequestError(
            "Missing or invalid customer_user_id: customer_user_id query parameter is required and must be a string"
        )

    try:
        subscription = await store.get_active_subscription(customer_user_id)
    except StoreError as e:
        raise PersistenceError(f"Internal server error: {e}")

    if not subscription:
        raise NotFoundError(f"No active subscription found for customer_user_id: {customer_user_id}")

    return SubscriptionResponse(subscription=subscription)
