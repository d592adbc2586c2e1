import asyncio
from types import SimpleNamespace

from faqbot.services import gpt_service
from faqbot.services.gpt_service import (
    ENGLISH_INSTRUCTION,
    SYSTEM_PROMPT,
    GPTService,
    fallback_response,
    is_appointment_query,
)


class FakeCompletions:
    def __init__(self, reply="AI reply", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.reply))],
            usage=SimpleNamespace(total_tokens=42),
        )


class CodedError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.code = code


def _service(completions):
    service = GPTService(api_key="")
    service.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return service


def test_api_key_validation():
    assert not gpt_service._is_real_api_key("")
    assert not gpt_service._is_real_api_key("sk-your-key-here-xxxxxxxxxxxxxxxxxxxx")
    assert not gpt_service._is_real_api_key("pk-" + "a" * 40)
    assert not gpt_service._is_real_api_key("sk-short")
    assert gpt_service._is_real_api_key("sk-" + "a" * 40)


def test_unconfigured_service_uses_fallback():
    service = GPTService(api_key="")
    assert not service.is_configured

    reply = asyncio.run(service.generate_response("我想预约", "u1"))
    assert "预约" in reply


def test_fallback_topics_and_errors():
    assert "xxx Street" in fallback_response("where are you", "en")
    assert "营业时间" in fallback_response("你们几点开门", "zh")
    assert fallback_response("你好", "zh", CodedError("slow down", "rate_limit_exceeded")) == "请求过于频繁，请稍等片刻后再试。"
    assert fallback_response("hi", "en", CodedError("Request timeout", None)).startswith("The request timed out")
    assert fallback_response("hi", "en") in gpt_service._GENERIC_REPLIES["en"]


def test_is_appointment_query():
    assert is_appointment_query("Can I BOOK a visit?")
    assert is_appointment_query("我想挂号")
    assert not is_appointment_query("what is the weather")
    assert not is_appointment_query("")


def test_generate_response_sends_prompt_and_history():
    completions = FakeCompletions("Sure, we are open daily.")
    service = _service(completions)

    first = asyncio.run(service.generate_response("are you open", "u1", language="en"))
    asyncio.run(service.generate_response("and sunday?", "u1", language="en"))

    assert first == "Sure, we are open daily."
    messages = completions.calls[1]["messages"]
    assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert messages[1] == {"role": "user", "content": "are you open"}
    assert messages[2] == {"role": "assistant", "content": "Sure, we are open daily."}
    assert messages[-1] == {"role": "user", "content": f"{ENGLISH_INSTRUCTION} and sunday?"}
    assert service.stats() == {"active_conversations": 1, "total_users": 1}


def test_history_is_bounded():
    service = _service(FakeCompletions("ok"))
    for i in range(15):
        asyncio.run(service.generate_response(f"q{i}", "u1"))

    assert len(service._history["u1"]) == gpt_service.STORED_HISTORY_LIMIT
    assert len(service.history("u1")) == gpt_service.SENT_HISTORY_LIMIT
    assert service.history("u1")[-1] == {"role": "assistant", "content": "ok"}


def test_api_error_degrades_to_fallback():
    service = _service(FakeCompletions(error=CodedError("quota", "insufficient_quota")))
    reply = asyncio.run(service.generate_response("你好", "u1"))

    assert reply == "抱歉，服务暂时不可用。请稍后再试或直接联系我们的客服。"
    assert service.history("u1") == []


def test_empty_completion_degrades_to_fallback():
    service = _service(FakeCompletions("   "))
    reply = asyncio.run(service.generate_response("hello", "u1", language="en"))
    assert reply in gpt_service._GENERIC_REPLIES["en"]


def test_clear_history():
    service = _service(FakeCompletions("ok"))
    asyncio.run(service.generate_response("hi", "u1"))
    assert service.clear_history("u1") is True
    assert service.clear_history("u1") is False
    assert service.history("u1") == []


def test_tracked_users_are_capped_least_recent_first():
    service = GPTService(api_key="", max_users=2)
    service.client = SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions("ok")))

    for user_id in ("u1", "u2", "u1", "u3"):
        asyncio.run(service.generate_response("hi", user_id))

    assert set(service._history) == {"u1", "u3"}
    assert len(service.history("u1")) == 4
    assert service.history("u2") == []
