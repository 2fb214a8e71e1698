"""
Unsent Pro API — System routes
  GET /health   liveness plus the purchase provider this deployment checks against
"""
from fastapi import APIRouter

import config
from models import StatusResponse

router = APIRouter(tags=["System"])


@router.get("/health", response_model=StatusResponse, summary="Health check")
async def health_check():
    """No API key required."""
    return StatusResponse(
        status="ok",
        message="Unsent Pro API is running",
        validation_method=config.VALIDATION_METHOD or "none",
    )
