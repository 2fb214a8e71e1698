"""
Unsent Pro API — AI message composition
Loads JSON prompt templates, fills {{placeholders}}, calls the model and
records every generated message in message_logs.
"""
import json
import logging
from pathlib import Path
from typing import Callable

import openai

from ai_client import MessageGenerator
from auth import require_active_subscription
from config import PROMPTS_DIR
from database import StoreError, SubscriptionStore
from errors import GenerationError, InvalidRequestError
from models import (
    Answer,
    GenerateCustomMessageRequest,
    GenerateStructuredMessageRequest,
    MessageLog,
    Prompts,
)

MAX_WORDS = 250

CUSTOM_PROMPTS = "custom-message"
STRUCTURED_PROMPTS = "structured-message"


def load_prompts(name: str, prompts_dir: Path = PROMPTS_DIR) -> Prompts:
    path = Path(prompts_dir) / f"{name}.json"
    with open(path, encoding="utf-8") as f:
        return Prompts(**json.load(f))


def fill_template(template: str, values: dict[str, object]) -> str:
    """Replace every {{key}}; tokens without a value are left as they are."""
    for key, value in values.items():
        template = template.replace("{{" + key + "}}", "" if value is None else str(value))
    return template


def format_answers(answers: list[Answer]) -> str:
    return "\n".join(
        f"{a.question} \n->  {a.custom_input or a.selected_option or '(not answered)'} \n"
        for a in answers
    )


def format_custom_prompts(prompts: Prompts, body: GenerateCustomMessageRequest) -> Prompts:
    return Prompts(
        system_prompt=prompts.system_prompt,
        user_prompt=fill_template(prompts.user_prompt, {
            "tone": body.tone,
            "context": body.context,
            "requested_word_count": body.word_count,
            "max_words": MAX_WORDS,
            "raw_message": body.raw_message,
        }),
    )


def format_structured_prompts(prompts: Prompts, body: GenerateStructuredMessageRequest) -> Prompts:
    return Prompts(
        system_prompt=fill_template(prompts.system_prompt, {"max_words": MAX_WORDS}),
        user_prompt=fill_template(prompts.user_prompt, {
            "recipient": body.recipient,
            "message_type": body.message_type,
            "additional_notes": body.additional_notes,
            "word_count": body.word_count,
            "answersText": format_answers(body.answers),
        }),
    )


class MessageComposer:
    def __init__(
        self, store: SubscriptionStore, generator: MessageGenerator, prompts_dir: Path = PROMPTS_DIR
    ) -> None:
        self.store = store
        self.generator = generator
        self.prompts_dir = prompts_dir

    async def compose_custom(
        self,
        body: GenerateCustomMessageRequest,
        log: logging.Logger | logging.LoggerAdapter,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[Prompts, str]:
        if not body.customer_user_id:
            raise InvalidRequestError(
                "Missing customer_user_id: customer_user_id is required to generate custom message"
            )
        return await self._compose(
            body.customer_user_id,
            lambda prompts: format_custom_prompts(prompts, body),
            CUSTOM_PROMPTS, log, ip, user_agent,
        )

    async def compose_structured(
        self,
        body: GenerateStructuredMessageRequest,
        log: logging.Logger | logging.LoggerAdapter,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[Prompts, str]:
        if not body.customer_user_id:
            raise InvalidRequestError("Missing customer_user_id")
        return await self._compose(
            body.customer_user_id,
            lambda prompts: format_structured_prompts(prompts, body),
            STRUCTURED_PROMPTS, log, ip, user_agent,
        )

    async def _compose(
        self,
        customer_user_id: str,
        format_prompts: Callable[[Prompts], Prompts],
        prompts_name: str,
        log: logging.Logger | logging.LoggerAdapter,
        ip: str | None,
        user_agent: str | None,
    ) -> tuple[Prompts, str]:
        context = {"customer_user_id": customer_user_id}
        log.info("Processing message request", extra={"context": {**context, "prompts": prompts_name}})

        await require_active_subscription(self.store, customer_user_id)
        log.info("Subscription validated", extra={"context": context})

        try:
            prompts = format_prompts(load_prompts(prompts_name, self.prompts_dir))
            log.info("Prompts loaded and formatted", extra={"context": context})

            message = await self.generator.generate(prompts.system_prompt, prompts.user_prompt)
            log.info("Message generated successfully", extra={"context": context})

            await self.store.log_message(MessageLog(
                customer_user_id=customer_user_id,
                prompt=prompts,
                generated_message=message,
                ip=ip,
                user_agent=user_agent,
            ))
            log.info("Message logged to database", extra={"context": context})
        except (OSError, ValueError, StoreError, openai.OpenAIError) as e:
            log.error("Request failed", extra={"context": {**context, "error": str(e)}})
            raise GenerationError(str(e) or "An unexpected error occurred")

        return prompts, message
