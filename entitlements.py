"""
Unsent Pro API — Entitlement window
Maps a product to its duration and computes when the subscription lapses.
"""
from datetime import datetime, timedelta

from models import Product, to_utc

SUBSCRIPTION_DURATIONS = {
    Product.WEEKLY.value:  7,
    Product.MONTHLY.value: 30,
    Product.YEARLY.value:  365,
}


class UnknownProductError(ValueError):
    pass


def calculate_expiry(purchase_date: datetime, product: str) -> datetime:
    """
    Purchase instant + the product's day count, with the time of day forced to
    23:59:59.999 in the server's local time zone.

    The clamp uses process-local time, so the same purchase can expire on a
    different UTC day depending on where the server runs.
    """
    days = SUBSCRIPTION_DURATIONS.get(product)
    if not days:
        raise UnknownProductError(f"Unknown subscription type: {product}")

    expires = to_utc(purchase_date) + timedelta(seconds=days * 86400)
    # Re-resolve the offset: the local day may change DST after the shifted instant
    local = expires.astimezone().replace(tzinfo=None, hour=23, minute=59, second=59, microsecond=999000)
    return local.astimezone()
