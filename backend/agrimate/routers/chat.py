"""
/chat endpoint
"""
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from agrimate.config import Settings, get_settings
from agrimate.di import get_model_factory
from agrimate.errors import ConfigurationError, ProvidersExhausted
from agrimate.llm.chain import ChatModelFactory, build_messages, chain_from_settings
from agrimate.llm.prompts import SYSTEM_INSTRUCTION
from agrimate.routers.responses import error_response
from agrimate.schemas import ChatReply, ChatTurn

log = logging.getLogger("agrimate.chat")

router = APIRouter(tags=["ai"])


def _parse_history(raw: Any) -> List[Dict[str, str]]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("history must be a list")
    return [ChatTurn.model_validate(m).model_dump() for m in raw]


@router.post("/chat", response_model=ChatReply)
async def chat(
    request: Request,
    settings: Settings = Depends(get_settings),
    model_factory: ChatModelFactory = Depends(get_model_factory),
):
    """
    One reply from the first LLM provider that answers.
    400: missing message, 500: no provider configured, 502: every provider failed.
    """
    try:
        body = await request.json()
    except ValueError:
        return error_response(400, "Request body must be JSON.")
    if not isinstance(body, dict):
        return error_response(400, "Message is required.")

    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        return error_response(400, "Message is required.")
    try:
        history = _parse_history(body.get("history"))
    except (ValueError, ValidationError):
        return error_response(400, "History must be a list of {role, content} messages.")

    try:
        chain = chain_from_settings(settings, model_factory)
    except ConfigurationError as e:
        return error_response(500, str(e))

    messages = build_messages(SYSTEM_INSTRUCTION, history, message, limit=settings.HISTORY_LIMIT)
    try:
        out = await chain.complete(messages)
    except ProvidersExhausted as e:
        log.error("%s", e)
        return error_response(502, str(e))
    except Exception:
        log.exception("Chat request error")
        return error_response(500, "Failed to process your request.")

    return ChatReply(reply=out.reply, provider=out.provider)
