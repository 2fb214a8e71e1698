"""
Unsent Pro API — Message routes (subscribers only)
  POST /api/generate-custom-message       rewrite a raw draft in a given tone
  POST /api/generate-structured-message   compose a message from questionnaire answers
"""
import logging

from fastapi import APIRouter, Depends, Request

from auth import verify_api_key
from composer import MessageComposer
from dependencies import get_composer
from limiter import get_client_ip, limiter
from logging_setup import RequestLogger
from models import (
    GenerateCustomMessageRequest,
    GenerateStructuredMessageRequest,
    MessageGenerationResponse,
    StructuredMessageResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Messages"], dependencies=[Depends(verify_api_key)])


@router.post("/generate-custom-message", response_model=MessageGenerationResponse,
             summary="Generate a custom message")
@limiter.limit("10/minute")
async def generate_custom_message(
    request: Request,
    data: GenerateCustomMessageRequest,
    composer: MessageComposer = Depends(get_composer),
):
    """
    Rewrite `raw_message` in the requested `tone`, given `context`.

    Returns **403** if the subscriber has no active subscription.
    """
    log = RequestLogger(logger)
    prompts, message = await composer.compose_custom(
        data, log, ip=get_client_ip(request), user_agent=request.headers.get("user-agent"),
    )
    log.info("Request completed successfully", extra={"context": {"customer_user_id": data.customer_user_id}})
    return MessageGenerationResponse(input_prompt=prompts.user_prompt, generated_message=message)


@router.post("/generate-structured-message", response_model=StructuredMessageResponse,
             summary="Generate a structured message")
@limiter.limit("10/minute")
async def generate_structured_message(
    request: Request,
    data: GenerateStructuredMessageRequest,
    composer: MessageComposer = Depends(get_composer),
):
    """Compose a message for `recipient` from the questionnaire `answers`."""
    log = RequestLogger(logger)
    prompts, message = await composer.compose_structured(
        data, log, ip=get_client_ip(request), user_agent=request.headers.get("user-agent"),
    )
    log.info("Request completed successfully", extra={"context": {"customer_user_id": data.customer_user_id}})
    return StructuredMessageResponse(
        input_prompt=prompts.user_prompt,
        system_prompt=prompts.system_prompt,
        user_prompt=prompts.user_prompt,
        generated_message=message,
    )
