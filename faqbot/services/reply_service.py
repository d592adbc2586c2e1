"""
Reply pipeline shared by the web widget and the messaging webhook:
canned knowledge-base answer first, generative fallback second.
"""

from typing import List, Optional

from loguru import logger
from pydantic import BaseModel

from faqbot.knowledge.models import Ambiguous, Found, QuickReply
from faqbot.knowledge.store import KnowledgeStore
from faqbot.services.gpt_service import GPTService, is_appointment_query

_DISAMBIGUATION_HEADER = {
    "zh": "我找到了几个相关的问题，请选择最符合您需求的：",
    "en": "I found a few related questions, please pick the one closest to what you need:",
}

_APPOINTMENT_REPLIES = {
    "zh": [
        QuickReply(id="appointment_phone", title="📞 电话预约", payload="APPOINTMENT_PHONE", category="appointment"),
        QuickReply(id="appointment_online", title="🌐 在线预约", payload="APPOINTMENT_ONLINE", category="appointment"),
        QuickReply(id="appointment_service", title="💬 客服咨询", payload="APPOINTMENT_SERVICE", category="appointment"),
        QuickReply(id="view_services", title="📋 查看服务", payload="VIEW_SERVICES", category="appointment"),
    ],
    "en": [
        QuickReply(id="appointment_quick_en", title="📅 Book Appointment", payload="BOOK_APPOINTMENT",
                   category="Appointment Services"),
    ],
}


class ChatReply(BaseModel):
    text: str
    source: str  # knowledge_base / disambiguation / generator
    quick_replies: Optional[List[QuickReply]] = None
    is_appointment: bool = False
    confidence: Optional[int] = None


def render_disambiguation(decision: Ambiguous, locale: str = "zh") -> str:
    header = _DISAMBIGUATION_HEADER.get(locale, _DISAMBIGUATION_HEADER["en"])
    lines = [f"{i}. {result.entry.question}" for i, result in enumerate(decision.candidates, start=1)]
    return header + "\n\n" + "\n".join(lines)


def appointment_quick_replies(locale: str = "zh") -> List[QuickReply]:
    return list(_APPOINTMENT_REPLIES.get(locale, _APPOINTMENT_REPLIES["en"]))


async def build_reply(
    message: str,
    user_id: str,
    knowledge: KnowledgeStore,
    gpt: GPTService,
    locale: str = "zh",
    platform: str = "web",
) -> ChatReply:
    decision = knowledge.get_smart_answer(message)

    if isinstance(decision, Found):
        logger.info(f"FAQ answer for {user_id} (confidence={decision.confidence}, category={decision.category})")
        return ChatReply(
            text=decision.answer,
            source="knowledge_base",
            quick_replies=decision.suggestions,
            confidence=decision.confidence,
        )

    if isinstance(decision, Ambiguous):
        logger.info(f"FAQ disambiguation for {user_id} ({len(decision.candidates)} candidates)")
        return ChatReply(
            text=render_disambiguation(decision, locale),
            source="disambiguation",
            quick_replies=decision.suggestions,
            confidence=decision.candidates[0].score,
        )

    text = await gpt.generate_response(message, user_id, platform=platform, language=locale)
    appointment = is_appointment_query(message)
    logger.info(f"Generated reply for {user_id} (appointment={appointment})")
    return ChatReply(
        text=text,
        source="generator",
        quick_replies=appointment_quick_replies(locale) if appointment else None,
        is_appointment=appointment,
    )
