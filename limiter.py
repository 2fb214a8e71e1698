"""
Unsent Pro API — Rate limiter (shared instance)
Imported by main.py and all routers that apply @limiter.limit().
"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from config import RATE_LIMIT_ENABLED


def get_client_ip(request: Request) -> str:
    """CF-Connecting-IP, then X-Real-IP, then the first X-Forwarded-For hop, then the socket."""
    forwarded_for = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    return (
        request.headers.get("CF-Connecting-IP")
        or request.headers.get("X-Real-IP")
        or forwarded_for
        or get_remote_address(request)
    )


limiter = Limiter(key_func=get_client_ip, enabled=RATE_LIMIT_ENABLED)
