"""
Unsent Pro API
==============
Backend for the Unsent Pro mobile app: records in-app purchases after checking
them with the configured provider, and writes AI-composed messages for
subscribers.

Every response uses the same envelope: {"success": bool, "error"?: str, ...}.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from ai_client import MessageGenerator
from auth import api_key_is_valid
from composer import MessageComposer
from config import DATABASE_PATH, PROMPTS_DIR, VALIDATION_METHOD
from database import SubscriptionStore
from errors import ApiError
from limiter import limiter
from logging_setup import configure_logging
from providers import build_validator
from purchase import PurchaseOrchestrator
from routers import messages, subscription, system

logger = logging.getLogger(__name__)


# ── Lifespan ──────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: logging, schema, and the collaborators every request shares
    configure_logging()
    store = SubscriptionStore(DATABASE_PATH)
    await store.init()

    validator = build_validator(VALIDATION_METHOD)
    logger.info("Purchase validation configured", extra={"context": {"provider": validator.name}})

    app.state.store = store
    app.state.orchestrator = PurchaseOrchestrator(validator=validator, store=store)
    app.state.composer = MessageComposer(store=store, generator=MessageGenerator(), prompts_dir=PROMPTS_DIR)
    yield


# ── Error envelope ────────────────────────────────────────────────────────────

def _envelope(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _envelope(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Bodies are parsed before router dependencies run; keep the key check first
    if request.url.path.startswith("/api/") and not api_key_is_valid(request.headers.get("authorization")):
        return _envelope(401, "Unauthorized")
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return _envelope(400, "Invalid request: " + "; ".join(problems))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _envelope(429, f"Rate limit exceeded: {exc.detail}")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"context": {"path": request.url.path}})
    return _envelope(500, "An unexpected error occurred")


# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    lifespan=lifespan,
    title="Unsent Pro API",
    description="""
Backend for the **Unsent Pro** mobile app (iOS & Android).

## Authentication

Every `/api` route requires the shared key in the `Authorization` header,
either bare or as `Bearer <key>`.

## Purchases

`POST /api/purchase` records a subscription once the configured provider
(Apple App Store Server API, Adapty or RevenueCat) confirms it. Replaying a
`transaction_id` that already has an active subscription returns the stored row.

## Messages

Subscribers can generate messages with `POST /api/generate-custom-message` and
`POST /api/generate-structured-message`. Each generation is logged.
""",
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# ── Routers ───────────────────────────────────────────────────────────────────

app.include_router(subscription.router)
app.include_router(messages.router)
app.include_router(system.router)
