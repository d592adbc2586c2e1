"""
Generative fallback for messages the knowledge base cannot answer.
Falls back to keyword-driven canned replies if OPENAI_API_KEY is not configured
or the API call fails.
"""

import random
from typing import Dict, List, Optional

import openai
from loguru import logger

from faqbot.config import settings

STORED_HISTORY_LIMIT = 20
SENT_HISTORY_LIMIT = 10
MAX_TRACKED_USERS = 1000

SYSTEM_PROMPT = """你是一个专业的诊所客服助手，专门为患者提供医疗信息咨询和预约服务。

你的职责包括：
1. 回答关于诊所服务、医生信息、治疗项目的问题
2. 协助患者进行预约安排
3. 提供诊所地址、营业时间等基本信息
4. 解释常见医疗流程和注意事项

重要规则：
- 只提供一般性医疗信息，不进行具体诊断
- 遇到复杂医疗问题时，建议患者咨询专业医生
- 保持友好、专业、耐心的服务态度
- 如果无法回答某个问题，诚实告知并建议联系诊所"""

ENGLISH_INSTRUCTION = "Please respond in English only."

APPOINTMENT_KEYWORDS = [
    "预约", "预定", "挂号", "看医生", "看病", "就诊",
    "appointment", "book", "schedule", "visit",
]

# (keywords, zh reply, en reply); first match wins
_TOPIC_REPLIES = [
    (
        ["预约", "appointment", "book"],
        "感谢您的预约咨询！请拨打我们的预约热线：400-xxx-xxxx，或访问我们的网站进行在线预约。",
        "Thanks for your interest in booking! Call our appointment line at 400-xxx-xxxx or book online on our website.",
    ),
    (
        ["地址", "位置", "在哪里", "address", "location", "where"],
        "我们的诊所地址是：北京市朝阳区xxx街道xxx号。营业时间：周一至周日 8:00-20:00。",
        "Our clinic is at xxx Street, Chaoyang District, Beijing. Open Monday to Sunday, 8:00-20:00.",
    ),
    (
        ["医生", "专家", "doctor", "specialist"],
        "我们有多位经验丰富的医生为您服务。您可以访问我们的网站查看医生介绍，或致电咨询具体医生排班。",
        "Our experienced doctors are here to help. See their profiles on our website or call us for schedules.",
    ),
    (
        ["价格", "费用", "收费", "price", "cost", "fee"],
        "我们的收费标准透明合理。具体价格请致电咨询或到院了解。我们提供多种支付方式。",
        "Our pricing is transparent. Please call or visit for exact prices; several payment methods are accepted.",
    ),
    (
        ["时间", "营业", "几点", "hours", "open", "time"],
        "我们的营业时间是：周一至周日 8:00-20:00。节假日正常营业。",
        "We are open Monday to Sunday, 8:00-20:00, including public holidays.",
    ),
]

_ERROR_REPLIES = {
    "insufficient_quota": (
        "抱歉，服务暂时不可用。请稍后再试或直接联系我们的客服。",
        "Sorry, the service is temporarily unavailable. Please try again later or contact our staff.",
    ),
    "rate_limit_exceeded": (
        "请求过于频繁，请稍等片刻后再试。",
        "Too many requests, please wait a moment and try again.",
    ),
    "timeout": (
        "请求超时，请重试。如果问题持续，请联系我们的客服。",
        "The request timed out, please retry. If this keeps happening, contact our staff.",
    ),
}

_GENERIC_REPLIES = {
    "zh": [
        "感谢您的咨询！我是诊所客服助手，目前正在学习阶段。如需详细帮助，请致电：400-xxx-xxxx。",
        "您好！我是诊所智能客服。如需人工服务，请拨打客服热线或访问我们的网站。",
        "您好！我是诊所客服助手。如需预约或咨询，请致电：400-xxx-xxxx。",
    ],
    "en": [
        "Thanks for reaching out! I'm the clinic assistant. For detailed help, call 400-xxx-xxxx.",
        "Hello! I'm the clinic's virtual assistant. For a human agent, call our hotline or visit our website.",
    ],
}


# ── Key validation ────────────────────────────────────────
def _is_real_api_key(key: str) -> bool:
    """Return True only if the key looks like a genuine OpenAI API key."""
    if not key:
        return False
    if "your" in key.lower() or "placeholder" in key.lower():
        return False
    if not key.startswith("sk-"):
        return False
    if len(key) < 30:
        return False
    return True


def _error_code(error: Optional[Exception]) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, openai.APITimeoutError) or "timeout" in str(error).lower():
        return "timeout"
    return getattr(error, "code", None)


def is_appointment_query(message: str) -> bool:
    lower = (message or "").lower()
    return any(keyword in lower for keyword in APPOINTMENT_KEYWORDS)


def fallback_response(message: str, language: str = "zh", error: Optional[Exception] = None) -> str:
    en = language == "en"
    lower = (message or "").lower()

    for keywords, zh_reply, en_reply in _TOPIC_REPLIES:
        if any(keyword in lower for keyword in keywords):
            return en_reply if en else zh_reply

    code = _error_code(error)
    if code in _ERROR_REPLIES:
        zh_reply, en_reply = _ERROR_REPLIES[code]
        return en_reply if en else zh_reply

    return random.choice(_GENERIC_REPLIES["en" if en else "zh"])


class GPTService:
    def __init__(self, api_key: Optional[str] = None, max_users: int = MAX_TRACKED_USERS):
        api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.client = openai.AsyncOpenAI(api_key=api_key) if _is_real_api_key(api_key) else None
        self.max_users = max_users
        self._history: Dict[str, List[Dict[str, str]]] = {}
        if self.client is None:
            logger.warning("OpenAI API key not configured — generator running in fallback mode")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def history(self, user_id: str) -> List[Dict[str, str]]:
        return self._history.get(user_id, [])[-SENT_HISTORY_LIMIT:]

    def _remember(self, user_id: str, message: str, reply: str) -> None:
        # re-insert so the dict stays ordered from least to most recently active
        history = self._history.pop(user_id, [])
        history.append({"role": "user", "content": message})
        history.append({"role": "assistant", "content": reply})
        del history[:-STORED_HISTORY_LIMIT]
        self._history[user_id] = history

        while len(self._history) > self.max_users:
            evicted = next(iter(self._history))
            del self._history[evicted]
            logger.debug(f"Conversation history evicted for {evicted}")

    def clear_history(self, user_id: str) -> bool:
        existed = self._history.pop(user_id, None) is not None
        logger.info(f"Conversation history cleared for {user_id}")
        return existed

    async def generate_response(
        self,
        message: str,
        user_id: str,
        platform: str = "web",
        language: str = "zh",
    ) -> str:
        """Never raises; any API problem degrades to a canned reply."""
        logger.info(f"Generating response for {user_id} on {platform} ({len(message)} chars)")

        if self.client is None:
            return fallback_response(message, language)

        prompt = f"{ENGLISH_INSTRUCTION} {message}" if language == "en" else message
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        messages.extend(self.history(user_id))
        messages.append({"role": "user", "content": prompt})

        try:
            completion = await self.client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=messages,
                max_tokens=settings.OPENAI_MAX_TOKENS,
                temperature=settings.OPENAI_TEMPERATURE,
                presence_penalty=0.1,
                frequency_penalty=0.1,
            )
            reply = (completion.choices[0].message.content or "").strip()
            if not reply:
                raise ValueError("Empty response from OpenAI")
        except Exception as e:
            logger.error(f"AI error for {user_id}: {e}")
            return fallback_response(message, language, error=e)

        self._remember(user_id, message, reply)
        usage = getattr(completion, "usage", None)
        logger.info(f"AI response for {user_id}: {len(reply)} chars, tokens={getattr(usage, 'total_tokens', None)}")
        return reply

    def stats(self) -> Dict[str, int]:
        return {
            "active_conversations": len(self._history),
            "total_users": len(self._history),
        }
