"""
Unsent Pro API — Auth dependencies
  - verify_api_key:              shared secret header (blocks unauthenticated requests)
  - require_active_subscription: message endpoints are for subscribers only
"""
import hmac

from fastapi import Header, HTTPException

import config
from database import StoreError, SubscriptionStore
from errors import PersistenceError, SubscriptionRequiredError


def api_key_is_valid(authorization: str | None) -> bool:
    """The shared key, bare or as "Bearer <key>". An unset API_KEY matches nothing."""
    expected = config.API_KEY
    presented = (authorization or "").removeprefix("Bearer ").strip()
    return bool(expected and presented) and hmac.compare_digest(presented.encode(), expected.encode())


async def verify_api_key(authorization: str = Header(default="")) -> None:
    """Validate the shared API key sent in every request."""
    if not api_key_is_valid(authorization):
        raise HTTPException(status_code=401, detail="Unauthorized")


async def require_active_subscription(store: SubscriptionStore, customer_user_id: str) -> None:
    """Raise 403 if the subscriber has no active, unexpired subscription row."""
    try:
        subscription = await store.get_active_subscription(customer_user_id)
    except StoreError as e:
        raise PersistenceError(str(e))

    if not subscription:
        raise SubscriptionRequiredError("No active subscription found")
