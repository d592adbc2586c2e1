"""
Meta webhook — subscription handshake plus Messenger / Instagram events.
"""

import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from faqbot.config import settings
from faqbot.middleware.security import sanitize_message, verify_meta_signature
from faqbot.services.reply_service import appointment_quick_replies, build_reply

router = APIRouter(prefix="/webhook", tags=["webhook"])

WEBHOOK_LOCALE = "zh"

ATTACHMENT_REPLIES = {
    "image": "感谢您发送的图片！我目前主要处理文字消息。如果您有任何问题，请用文字描述，我会尽力帮助您。",
    "video": "感谢您发送的视频！我目前主要处理文字消息。如果您有任何问题，请用文字描述，我会尽力帮助您。",
    "file": "感谢您发送的文件！我目前主要处理文字消息。如果您有任何问题，请用文字描述，我会尽力帮助您。",
}

POSTBACK_REPLIES = {
    "APPOINTMENT_PHONE": "📞 电话预约\n\n请拨打我们的客服热线：\n☎️ 400-123-4567\n\n工作时间：周一至周日 9:00-18:00",
    "APPOINTMENT_ONLINE": "🌐 在线预约\n\n请访问我们的官网预约系统，在线选择医生、时间和服务类型。",
    "APPOINTMENT_SERVICE": "💬 客服咨询\n\n我们的专业客服团队随时为您服务：服务咨询、预约安排、价格查询、就诊指导。\n\n请告诉我您需要什么帮助？",
    "CLINIC_INFO": "📍 诊所信息\n\n☎️ 电话：400-123-4567\n🕒 营业时间：周一至周日 9:00-18:00\n🚗 提供免费停车位",
}

DEFAULT_POSTBACK_REPLY = "感谢您的选择！如果您有其他问题，请随时告诉我。"
ERROR_REPLY = "抱歉，处理您的消息时出现了问题。请稍后再试。"
SERVICES_TEXT = "我们提供以下服务，请选择您感兴趣的内容："


class WebhookContext:
    """Collaborators one webhook delivery needs, resolved from app state."""

    def __init__(self, app):
        self.knowledge = app.state.knowledge.get(WEBHOOK_LOCALE)
        self.gpt = app.state.gpt
        self.sender = app.state.sender
        self.sessions = app.state.sessions


@router.get("")
async def verify_subscription(request: Request):
    mode = request.query_params.get("hub.mode")
    token = request.query_params.get("hub.verify_token")
    challenge = request.query_params.get("hub.challenge", "")

    logger.info(f"Webhook verification request: mode={mode}, token={'provided' if token else 'missing'}")

    if mode == "subscribe" and settings.META_VERIFY_TOKEN and token == settings.META_VERIFY_TOKEN:
        logger.info("Webhook verification successful")
        return PlainTextResponse(challenge)

    logger.warning(f"Webhook verification failed (mode={mode})")
    return JSONResponse(status_code=403, content={"error": "Forbidden"})


@router.post("")
async def receive_events(request: Request):
    body = await request.body()
    if not verify_meta_signature(body, request.headers.get("X-Hub-Signature-256"), settings.META_APP_SECRET):
        return JSONResponse(status_code=403, content={"error": "Forbidden"})

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        logger.warning("Webhook body is not valid JSON")
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    if not isinstance(payload, dict):
        logger.warning(f"Webhook body is not an object: {type(payload).__name__}")
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    entries = payload.get("entry")
    if not isinstance(entries, list):
        entries = []
    logger.info(f"Webhook received: object={payload.get('object')}, entries={len(entries)}")

    platform = {"page": "messenger", "instagram": "instagram"}.get(payload.get("object"))
    if platform is not None:
        ctx = WebhookContext(request.app)
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping malformed {platform} entry: {type(entry).__name__}")
                continue
            await process_entry(ctx, entry, platform)

    return PlainTextResponse("EVENT_RECEIVED")


def _sender_id(event: Any) -> Optional[str]:
    sender = event.get("sender") if isinstance(event, dict) else None
    return sender.get("id") if isinstance(sender, dict) else None


def _records(container: Dict[str, Any], key: str) -> List[Any]:
    value = container.get(key)
    return value if isinstance(value, list) else []


async def process_entry(ctx: WebhookContext, entry: Dict[str, Any], platform: str) -> None:
    logger.info(f"Processing {platform} entry {entry.get('id')} at {entry.get('time')}")

    for event in _records(entry, "messaging"):
        if not isinstance(event, dict):
            logger.warning(f"Skipping malformed messaging event: {type(event).__name__}")
            continue
        try:
            await process_messaging_event(ctx, event, platform)
        except Exception:
            logger.exception(f"Error processing messaging event from {_sender_id(event)}")

    for change in _records(entry, "changes"):
        field = change.get("field") if isinstance(change, dict) else None
        logger.info(f"Page change received: field={field}")


async def process_messaging_event(ctx: WebhookContext, event: Dict[str, Any], platform: str) -> None:
    sender_id = event["sender"]["id"]

    if "message" in event:
        message = event["message"]
        quick_reply = message.get("quick_reply") or {}
        if message.get("is_echo"):
            return
        if quick_reply.get("payload"):
            await handle_postback(ctx, quick_reply["payload"], sender_id, platform)
        elif message.get("text"):
            await handle_text(ctx, message["text"], sender_id, platform)
        if message.get("attachments"):
            await handle_attachments(ctx, message["attachments"], sender_id, platform)

    if "postback" in event:
        await handle_postback(ctx, event["postback"].get("payload", ""), sender_id, platform)

    if "read" in event:
        logger.info(f"Message read by {sender_id} on {platform}: watermark={event['read'].get('watermark')}")

    if "delivery" in event:
        logger.info(f"Message delivered to {sender_id} on {platform}: watermark={event['delivery'].get('watermark')}")


async def handle_text(ctx: WebhookContext, text: str, sender_id: str, platform: str) -> None:
    message = sanitize_message(text.strip())
    logger.info(f"Received text from {sender_id} on {platform} ({len(message)} chars)")

    try:
        session_id = ctx.sessions.get_or_create(f"{platform}_{sender_id}", sender_id, platform)
        reply = await build_reply(message, sender_id, ctx.knowledge, ctx.gpt, locale=WEBHOOK_LOCALE, platform=platform)
        ctx.sessions.add_message(session_id, "user", message)
        ctx.sessions.add_message(session_id, "assistant", reply.text, source=reply.source)

        if reply.quick_replies:
            await ctx.sender.send_quick_replies(sender_id, reply.text, reply.quick_replies, platform)
        else:
            await ctx.sender.send_text(sender_id, reply.text, platform)
    except Exception:
        logger.exception(f"Error handling text message from {sender_id}")
        await ctx.sender.send_text(sender_id, ERROR_REPLY, platform)


async def handle_attachments(ctx: WebhookContext, attachments, sender_id: str, platform: str) -> None:
    logger.info(f"Received {len(attachments)} attachments from {sender_id} on {platform}")
    for attachment in attachments:
        text = ATTACHMENT_REPLIES.get(attachment.get("type"), ATTACHMENT_REPLIES["file"])
        await ctx.sender.send_text(sender_id, text, platform)


async def handle_postback(ctx: WebhookContext, payload: str, sender_id: str, platform: str) -> None:
    logger.info(f"Received postback {payload} from {sender_id} on {platform}")

    if payload == "GET_STARTED":
        await ctx.sender.send_welcome(sender_id, ctx.knowledge.default_quick_replies(), platform)
    elif payload == "BOOK_APPOINTMENT":
        await ctx.sender.send_appointment_quick_reply(sender_id, appointment_quick_replies(WEBHOOK_LOCALE), platform)
    elif payload == "VIEW_SERVICES":
        await ctx.sender.send_quick_replies(sender_id, SERVICES_TEXT, ctx.knowledge.quick_replies(), platform)
    elif payload in POSTBACK_REPLIES:
        await ctx.sender.send_text(sender_id, POSTBACK_REPLIES[payload], platform)
    else:
        reply = next((r for r in ctx.knowledge.quick_replies() if r.payload == payload), None)
        if reply is None:
            await ctx.sender.send_text(sender_id, DEFAULT_POSTBACK_REPLY, platform)
        else:
            await handle_text(ctx, reply.title, sender_id, platform)
