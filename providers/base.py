"""
Unsent Pro API — Provider validator contract
"""
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from models import PurchaseRequest


@dataclass
class ValidationResult:
    is_valid: bool
    error: str | None = None
    data: Any = None  # provider payload, opaque to the orchestrator


class SubscriptionValidator(Protocol):
    name: str

    async def validate(self, purchase: PurchaseRequest) -> ValidationResult:
        ...


class HttpValidator:
    """Base for validators that make one REST call per validation."""

    name = "Provider"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        # No timeout override: httpx defaults apply
        return httpx.AsyncClient(transport=self._transport)


class NoopValidator:
    """Deployment without a purchase provider: every purchase is accepted."""

    name = "None"

    async def validate(self, purchase: PurchaseRequest) -> ValidationResult:
        return ValidationResult(is_valid=True)
