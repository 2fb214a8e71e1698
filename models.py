"""
Unsent Pro API — Pydantic models (request bodies + response shapes)
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List

from pydantic import AliasChoices, BaseModel, Field, field_serializer, field_validator


def to_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """2024-12-31T23:59:59.999Z"""
    return to_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Product(str, Enum):
    WEEKLY  = "com.unsentpro.weekly"
    MONTHLY = "com.unsentpro.monthly"
    YEARLY  = "com.unsentpro.yearly"


# ── Subscriptions ─────────────────────────────────────────────────────────────

class PurchaseRequest(BaseModel):
    # Required-field checks live in the orchestrator so the 400 can name them.
    customer_user_id: str | None = Field(
        default=None, validation_alias=AliasChoices("customer_user_id", "user_id")
    )
    product: str | None = None
    price: float | None = None
    currency: str | None = None
    platform: str | None = None
    transaction_id: str | None = None
    original_transaction_id: str | None = None
    purchase_date: datetime | None = None
    environment: str | None = None

    @field_validator("transaction_id", "original_transaction_id", mode="before")
    @classmethod
    def coerce_numeric_ids(cls, v):
        # StoreKit ids are numeric strings; some clients send them as JSON numbers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class Subscription(BaseModel):
    id: int | None = None
    customer_user_id: str
    product: str
    price: float
    currency: str
    is_active: bool = True
    platform: str | None = None
    transaction_id: str | None = None
    original_transaction_id: str | None = None
    purchase_date: datetime
    environment: str | None = None
    expires_at: datetime

    @field_serializer("purchase_date", "expires_at")
    def serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)


class SubscriptionResponse(BaseModel):
    success: bool = True
    subscription: Subscription


# ── Messages ──────────────────────────────────────────────────────────────────

class GenerateCustomMessageRequest(BaseModel):
    customer_user_id: str | None = None
    tone: str | None = None
    context: str | None = None
    raw_message: str | None = None
    word_count: int = 100


class Answer(BaseModel):
    question: str
    selected_option: str | None = None
    custom_input: str | None = None


class GenerateStructuredMessageRequest(BaseModel):
    customer_user_id: str | None = None
    recipient: str | None = None
    message_type: str | None = None
    additional_notes: str | None = None
    word_count: int = 100
    answers: List[Answer] = Field(default_factory=list)


class Prompts(BaseModel):
    system_prompt: str
    user_prompt: str


class MessageLog(BaseModel):
    customer_user_id: str
    prompt: Prompts
    generated_message: str
    ip: str | None = None
    user_agent: str | None = None


class MessageGenerationResponse(BaseModel):
    success: bool = True
    input_prompt: str
    generated_message: str


class StructuredMessageResponse(MessageGenerationResponse):
    system_prompt: str
    user_prompt: str


# ── Generic ───────────────────────────────────────────────────────────────────

class StatusResponse(BaseModel):
    status: str
    message: str
    validation_method: str | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
