import hashlib
import hmac
import json

import httpx
import pytest

from faqbot.integrations.meta_messenger import MessageSender
from faqbot.integrations.meta_webhook import DEFAULT_POSTBACK_REPLY, POSTBACK_REPLIES


@pytest.fixture
def graph(client):
    """Swap the app's sender for one backed by a mock Graph API."""
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(200, json={"message_id": f"mid.{len(sent)}"})

    original = client.app.state.sender
    client.app.state.sender = MessageSender(
        access_token="page-token",
        api_url="https://graph.test/v18.0",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    yield sent
    client.app.state.sender = original


def _event(message=None, postback=None, sender_id="user-1"):
    event = {"sender": {"id": sender_id}, "recipient": {"id": "page-1"}, "timestamp": 1}
    if message is not None:
        event["message"] = message
    if postback is not None:
        event["postback"] = postback
    return {"object": "page", "entry": [{"id": "page-1", "time": 1, "messaging": [event]}]}


def test_verification_handshake(client):
    response = client.get(
        "/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
    )
    assert response.status_code == 200
    assert response.text == "12345"


@pytest.mark.parametrize("params", [
    {"hub.mode": "subscribe", "hub.verify_token": "wrong", "hub.challenge": "1"},
    {"hub.mode": "unsubscribe", "hub.verify_token": "verify-me", "hub.challenge": "1"},
    {},
])
def test_verification_rejected(client, params):
    response = client.get("/webhook", params=params)
    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden"}


def test_text_message_answered_from_knowledge_base(client, graph):
    response = client.post("/webhook", json=_event(message={"mid": "m1", "text": "营业时间"}))

    assert response.status_code == 200
    assert response.text == "EVENT_RECEIVED"
    assert len(graph) == 1
    assert graph[0]["recipient"] == {"id": "user-1"}
    assert graph[0]["message"]["text"].startswith("我们的营业时间")
    assert [r["payload"] for r in graph[0]["message"]["quick_replies"]] == ["FAQ_HOURS"]

    history = client.app.state.sessions.get_history("messenger_user-1")
    assert [m["role"] for m in history] == ["user", "assistant"]


def test_instagram_events_use_instagram_sessions(client, graph):
    payload = _event(message={"mid": "m1", "text": "预约"}, sender_id="ig-7")
    payload["object"] = "instagram"
    client.post("/webhook", json=payload)

    assert len(graph) == 1
    assert client.app.state.sessions.get_session("instagram_ig-7")["platform"] == "instagram"


def test_echo_and_unknown_objects_are_ignored(client, graph):
    client.post("/webhook", json=_event(message={"mid": "m1", "text": "营业时间", "is_echo": True}))
    unknown = _event(message={"mid": "m2", "text": "营业时间"})
    unknown["object"] = "whatsapp_business_account"
    assert client.post("/webhook", json=unknown).text == "EVENT_RECEIVED"

    assert graph == []


def test_get_started_sends_welcome_with_default_replies(client, graph):
    client.post("/webhook", json=_event(postback={"title": "Get Started", "payload": "GET_STARTED"}))

    replies = graph[0]["message"]["quick_replies"]
    assert [r["payload"] for r in replies] == ["FAQ_HOURS", "FAQ_APPOINTMENT"]


def test_book_appointment_postback(client, graph):
    client.post("/webhook", json=_event(postback={"payload": "BOOK_APPOINTMENT"}))

    payloads = [r["payload"] for r in graph[0]["message"]["quick_replies"]]
    assert payloads == ["APPOINTMENT_PHONE", "APPOINTMENT_ONLINE", "APPOINTMENT_SERVICE", "VIEW_SERVICES"]


def test_quick_reply_payloads(client, graph):
    client.post("/webhook", json=_event(message={"mid": "m1", "text": "电话预约", "quick_reply": {"payload": "APPOINTMENT_PHONE"}}))
    client.post("/webhook", json=_event(message={"mid": "m2", "text": "营业时间", "quick_reply": {"payload": "FAQ_HOURS"}}))
    client.post("/webhook", json=_event(postback={"payload": "SOMETHING_ELSE"}))

    assert graph[0]["message"]["text"] == POSTBACK_REPLIES["APPOINTMENT_PHONE"]
    assert graph[1]["message"]["text"].startswith("我们的营业时间")
    assert graph[2]["message"]["text"] == DEFAULT_POSTBACK_REPLY


def test_attachments_get_text_only_notice(client, graph):
    client.post("/webhook", json=_event(message={"mid": "m1", "attachments": [{"type": "image"}]}))
    assert "图片" in graph[0]["message"]["text"]


def test_invalid_json_rejected(client):
    response = client.post("/webhook", content=b"{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


def test_signature_enforced_when_app_secret_set(client, graph, monkeypatch):
    from faqbot.config import settings

    monkeypatch.setattr(settings, "META_APP_SECRET", "app-secret")
    body = json.dumps(_event(message={"mid": "m1", "text": "营业时间"})).encode()

    unsigned = client.post("/webhook", content=body, headers={"Content-Type": "application/json"})
    assert unsigned.status_code == 403

    signature = "sha256=" + hmac.new(b"app-secret", body, hashlib.sha256).hexdigest()
    signed = client.post(
        "/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": signature},
    )
    assert signed.status_code == 200
    assert len(graph) == 1


def test_send_failures_do_not_fail_delivery(client):
    def handler(request):
        return httpx.Response(500, json={"error": {"message": "boom"}})

    client.app.state.sender = MessageSender(
        access_token="page-token",
        api_url="https://graph.test/v18.0",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    response = client.post("/webhook", json=_event(message={"mid": "m1", "text": "营业时间"}))
    assert response.text == "EVENT_RECEIVED"


def test_non_object_body_rejected(client):
    response = client.post("/webhook", json=[{"object": "page"}])
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid payload"}


def test_malformed_entries_and_events_are_skipped(client, graph):
    payload = {
        "object": "page",
        "entry": [
            "not an entry",
            {
                "id": "page-1",
                "messaging": ["not an event", {"sender": "no-id"}, _event(message={"text": "营业时间"})["entry"][0]["messaging"][0]],
                "changes": ["not a change"],
            },
        ],
    }
    response = client.post("/webhook", json=payload)

    assert response.status_code == 200
    assert response.text == "EVENT_RECEIVED"
    assert len(graph) == 1

    assert client.post("/webhook", json={"object": "page", "entry": "oops"}).text == "EVENT_RECEIVED"
