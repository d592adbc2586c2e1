"""
Meta Graph API send client (Messenger / Instagram).
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from faqbot.config import settings
from faqbot.knowledge.models import QuickReply

MAX_TEXT_LENGTH = 2000
MAX_QUICK_REPLIES = 13
MAX_QUICK_REPLY_TITLE = 20

WELCOME_TEXT = "您好！欢迎来到我们的诊所 👋\n我是智能客服助手，可以为您解答常见问题、协助预约。请问有什么可以帮您？"
APPOINTMENT_TEXT = "请选择您希望的预约方式："


class MessageSendError(Exception):
    pass


class MessageSender:
    def __init__(
        self,
        access_token: Optional[str] = None,
        api_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.access_token = settings.META_PAGE_ACCESS_TOKEN if access_token is None else access_token
        self.api_url = (api_url or settings.META_GRAPH_API_URL).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token)

    async def _post(self, payload: Dict[str, Any], platform: str) -> Dict[str, Any]:
        recipient = payload["recipient"]["id"]
        if not self.is_configured:
            logger.info(f"Meta integration not configured — skipping send to {recipient} ({platform})")
            return {"status": "skipped"}

        try:
            response = await self._client.post(
                f"{self.api_url}/me/messages",
                params={"access_token": self.access_token},
                json=payload,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise MessageSendError(
                f"Graph API rejected message to {recipient}: {e.response.status_code} {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise MessageSendError(f"Graph API request failed for {recipient}: {e}") from e

        data = response.json()
        logger.info(f"Message sent to {recipient} on {platform}: {data.get('message_id')}")
        return data

    async def send_text(self, recipient_id: str, text: str, platform: str = "messenger") -> Dict[str, Any]:
        return await self._post({
            "recipient": {"id": recipient_id},
            "message": {"text": text[:MAX_TEXT_LENGTH]},
            "messaging_type": "RESPONSE",
        }, platform)

    async def send_quick_replies(
        self,
        recipient_id: str,
        text: str,
        replies: List[QuickReply],
        platform: str = "messenger",
    ) -> Dict[str, Any]:
        if not replies:
            return await self.send_text(recipient_id, text, platform)
        return await self._post({
            "recipient": {"id": recipient_id},
            "message": {
                "text": text[:MAX_TEXT_LENGTH],
                "quick_replies": [
                    {
                        "content_type": "text",
                        "title": reply.title[:MAX_QUICK_REPLY_TITLE],
                        "payload": reply.payload,
                    }
                    for reply in replies[:MAX_QUICK_REPLIES]
                ],
            },
            "messaging_type": "RESPONSE",
        }, platform)

    async def send_welcome(
        self, recipient_id: str, replies: List[QuickReply], platform: str = "messenger"
    ) -> Dict[str, Any]:
        return await self.send_quick_replies(recipient_id, WELCOME_TEXT, replies, platform)

    async def send_appointment_quick_reply(
        self, recipient_id: str, replies: List[QuickReply], platform: str = "messenger"
    ) -> Dict[str, Any]:
        return await self.send_quick_replies(recipient_id, APPOINTMENT_TEXT, replies, platform)

    async def aclose(self) -> None:
        await self._client.aclose()
