"""
Web widget chat endpoints — knowledge base first, generator fallback.
"""

import re
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger

from faqbot.dependencies import get_gpt, get_registry, get_sessions
from faqbot.knowledge.store import KnowledgeRegistry
from faqbot.middleware.rate_limit import CHAT_LIMIT, limiter
from faqbot.middleware.security import sanitize_message
from faqbot.models.schemas import ChatMessageData, ChatMessageRequest, ChatMessageResponse
from faqbot.services.gpt_service import GPTService
from faqbot.services.reply_service import build_reply
from faqbot.services.session_service import SessionStore

router = APIRouter(prefix="/chat", tags=["chat"])


def generate_user_id(request: Request, locale: str) -> str:
    millis = int(time.time() * 1000)
    if locale == "en":
        return f"web_en_{millis}"
    host = request.client.host if request.client else "unknown"
    return f"web_{re.sub(r'[^a-zA-Z0-9]', '', host)}_{millis}"


async def _handle_message(
    request: Request,
    req: ChatMessageRequest,
    locale: str,
    registry: KnowledgeRegistry,
    gpt: GPTService,
    sessions: SessionStore,
) -> ChatMessageResponse:
    user_id = req.user_id or generate_user_id(request, locale)
    session_id = sessions.get_or_create(req.session_id, user_id, "web")
    message = sanitize_message(req.message)

    logger.info(f"Chat message [{locale}] from {user_id} / {session_id} ({len(message)} chars)")

    reply = await build_reply(message, user_id, registry.get(locale), gpt, locale=locale, platform="web")

    sessions.add_message(session_id, "user", message)
    sessions.add_message(session_id, "assistant", reply.text, source=reply.source)

    logger.info(f"Chat reply [{locale}] for {user_id}: source={reply.source}, {len(reply.text)} chars")

    return ChatMessageResponse(data=ChatMessageData(
        message=reply.text,
        user_id=user_id,
        session_id=session_id,
        timestamp=datetime.now(timezone.utc),
        source=reply.source,
        is_appointment=reply.is_appointment,
        quick_replies=reply.quick_replies,
    ))


@router.post("/message", response_model=ChatMessageResponse)
@limiter.limit(CHAT_LIMIT)
async def chat_message(
    request: Request,
    req: ChatMessageRequest,
    registry: KnowledgeRegistry = Depends(get_registry),
    gpt: GPTService = Depends(get_gpt),
    sessions: SessionStore = Depends(get_sessions),
):
    return await _handle_message(request, req, "zh", registry, gpt, sessions)


@router.post("/message-en", response_model=ChatMessageResponse)
@limiter.limit(CHAT_LIMIT)
async def chat_message_en(
    request: Request,
    req: ChatMessageRequest,
    registry: KnowledgeRegistry = Depends(get_registry),
    gpt: GPTService = Depends(get_gpt),
    sessions: SessionStore = Depends(get_sessions),
):
    return await _handle_message(request, req, "en", registry, gpt, sessions)


@router.delete("/session/{user_id}")
async def clear_session(
    user_id: str,
    gpt: GPTService = Depends(get_gpt),
    sessions: SessionStore = Depends(get_sessions),
):
    if not user_id or len(user_id) > 100:
        raise HTTPException(status_code=400, detail="Invalid user ID")

    gpt.clear_history(user_id)
    removed = sessions.delete_user_sessions(user_id)
    logger.info(f"Session cleared for {user_id} ({removed} sessions removed)")

    return {"success": True, "message": "Conversation history cleared", "sessions_removed": removed}


@router.get("/stats")
async def chat_stats(
    gpt: GPTService = Depends(get_gpt),
    sessions: SessionStore = Depends(get_sessions),
):
    session_stats = sessions.stats()
    return {
        "success": True,
        "data": {
            **gpt.stats(),
            "active_sessions": session_stats["active_sessions"],
            "total_messages": session_stats["total_messages"],
            "platform_stats": session_stats["platform_stats"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }
