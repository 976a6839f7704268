"""
Instagram webhook tests: handshake, signature, inbound storage and automated replies.
"""
import hashlib
import hmac
import json

import pytest

from neuraslide.infrastructure.config import get_settings
from neuraslide.infrastructure.instagram_client import GraphAPIError
from neuraslide.models.conversation import MessageType
from neuraslide.services.webhook_service import parse_messaging_events, verify_signature


BUSINESS_ID = "ig-business-1"


def _event(text="hello there", mid="mid.in.1", sender="ig-customer-9", **message):
    body = {"mid": mid, **message}
    if text is not None:
        body["text"] = text
    return {
        "object": "instagram",
        "entry": [{
            "id": BUSINESS_ID,
            "messaging": [{"sender": {"id": sender}, "recipient": {"id": BUSINESS_ID}, "message": body}],
        }],
    }


async def _connect(client, headers):
    response = await client.post(
        "/crystal/instagram/accounts",
        json={"instagramUserId": BUSINESS_ID, "username": "shoeshop", "accessToken": "page-token"},
        headers=headers,
    )
    assert response.status_code == 201


async def _messages(client, headers):
    conversations = (await client.get("/crystal/conversations", headers=headers)).json()["data"]["conversations"]
    assert len(conversations) == 1
    response = await client.get(f"/crystal/conversations/{conversations[0]['id']}/messages", headers=headers)
    return response.json()["data"]["messages"]


class TestParseMessagingEvents:

    def test_text_message(self):
        [message] = parse_messaging_events(_event())
        assert message.instagram_account_id == BUSINESS_ID
        assert message.sender_id == "ig-customer-9"
        assert message.text == "hello there"
        assert message.type == MessageType.TEXT

    def test_echo_skipped(self):
        assert parse_messaging_events(_event(is_echo=True)) == []

    def test_attachment(self):
        payload = _event(text=None, attachments=[{"type": "image", "payload": {"url": "https://cdn.example.com/a.jpg"}}])
        [message] = parse_messaging_events(payload)
        assert message.type == MessageType.IMAGE
        assert message.media_urls == ["https://cdn.example.com/a.jpg"]

    def test_story_reply(self):
        [message] = parse_messaging_events(_event(reply_to={"story": {"id": "s1"}}))
        assert message.type == MessageType.STORY_REPLY

    def test_non_message_events(self):
        payload = {"entry": [{"id": BUSINESS_ID, "messaging": [{"sender": {"id": "x"}, "read": {"mid": "m"}}]}]}
        assert parse_messaging_events(payload) == []
        assert parse_messaging_events({}) == []

    def test_explicit_nulls(self):
        [message] = parse_messaging_events(_event(reply_to=None, attachments=[{"type": "image", "payload": None}]))
        assert message.type == MessageType.IMAGE
        assert message.media_urls == []

    def test_malformed_entries_skipped(self):
        good = _event()["entry"][0]
        payload = {"entry": ["junk", None, {"id": BUSINESS_ID, "messaging": [7, {"message": None}]}, good]}
        [message] = parse_messaging_events(payload)
        assert message.text == "hello there"
        assert parse_messaging_events({"entry": 5}) == []
        assert parse_messaging_events({"entry": [{"messaging": "nope"}]}) == []


class TestVerifySignature:

    def test_valid(self):
        body = b'{"entry": []}'
        digest = hmac.new(b"shh", body, hashlib.sha256).hexdigest()
        assert verify_signature("shh", body, f"sha256={digest}")

    def test_invalid(self):
        assert not verify_signature("shh", b"{}", "sha256=deadbeef")
        assert not verify_signature("shh", b"{}", None)
        assert not verify_signature("shh", b"{}", "md5=abc")


class TestSubscriptionHandshake:

    @pytest.mark.asyncio
    async def test_challenge_echoed(self, client):
        response = await client.get(
            "/webhooks/instagram",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
        )
        assert response.status_code == 200
        assert response.text == "12345"

    @pytest.mark.asyncio
    async def test_wrong_token(self, client):
        response = await client.get(
            "/webhooks/instagram",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "12345"},
        )
        assert response.status_code == 403


class TestInboundMessages:

    @pytest.mark.asyncio
    async def test_message_stored(self, client, auth_headers, instagram_client):
        await _connect(client, auth_headers)
        response = await client.post("/webhooks/instagram", json=_event())
        assert response.status_code == 200
        assert response.json()["data"] == {"processed": 1, "automated": 0, "skipped": 0}

        [message] = await _messages(client, auth_headers)
        assert message["senderType"] == "EXTERNAL"
        assert message["text"] == "hello there"
        instagram_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicate_delivery(self, client, auth_headers):
        await _connect(client, auth_headers)
        await client.post("/webhooks/instagram", json=_event())
        response = await client.post("/webhooks/instagram", json=_event())
        assert response.json()["data"]["skipped"] == 1
        assert len(await _messages(client, auth_headers)) == 1

    @pytest.mark.asyncio
    async def test_null_fields_accepted(self, client, auth_headers):
        await _connect(client, auth_headers)
        payload = _event(reply_to=None, attachments=None)
        payload["entry"].insert(0, None)
        response = await client.post("/webhooks/instagram", json=payload)
        assert response.status_code == 200
        assert response.json()["data"]["processed"] == 1

    @pytest.mark.asyncio
    async def test_unknown_account(self, client):
        response = await client.post("/webhooks/instagram", json=_event())
        assert response.json()["data"] == {"processed": 0, "automated": 0, "skipped": 1}

    @pytest.mark.asyncio
    async def test_invalid_json(self, client):
        response = await client.post(
            "/webhooks/instagram", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_non_object_body(self, client):
        response = await client.post("/webhooks/instagram", json=[1, 2])
        assert response.status_code == 400


class TestAutomatedReplies:

    async def _activate(self, client, headers, sample_automation):
        response = await client.post(
            "/crystal/automations",
            json={**sample_automation, "status": "ACTIVE", "isActive": True},
            headers=headers,
        )
        assert response.status_code == 201
        return response.json()["data"]["id"]

    @pytest.mark.asyncio
    async def test_reply_sent(self, client, auth_headers, instagram_client, sample_automation):
        await _connect(client, auth_headers)
        await self._activate(client, auth_headers, sample_automation)

        response = await client.post("/webhooks/instagram", json=_event())
        assert response.json()["data"]["automated"] == 1
        instagram_client.send_message.assert_awaited_once_with("page-token", "ig-customer-9", "Hi there!")

        messages = {m["senderType"]: m for m in await _messages(client, auth_headers)}
        assert messages["BOT"]["text"] == "Hi there!"
        assert messages["BOT"]["status"] == "SENT"
        assert messages["BOT"]["externalMessageId"] == "mid.out.1"

        conversation = (await client.get("/crystal/conversations", headers=auth_headers)).json()["data"]["conversations"][0]
        assert conversation["isAutomated"] is True
        assert conversation["messageCount"] == 2

    @pytest.mark.asyncio
    async def test_draft_automation_ignored(self, client, auth_headers, instagram_client, sample_automation):
        await _connect(client, auth_headers)
        await client.post("/crystal/automations", json=sample_automation, headers=auth_headers)

        response = await client.post("/webhooks/instagram", json=_event())
        assert response.json()["data"]["automated"] == 0
        instagram_client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_match(self, client, auth_headers, instagram_client, sample_automation):
        await _connect(client, auth_headers)
        await self._activate(client, auth_headers, sample_automation)

        response = await client.post("/webhooks/instagram", json=_event(text="what are your opening hours"))
        assert response.json()["data"]["automated"] == 0

    @pytest.mark.asyncio
    async def test_delivery_failure_marked(self, client, auth_headers, instagram_client, sample_automation):
        await _connect(client, auth_headers)
        await self._activate(client, auth_headers, sample_automation)
        instagram_client.send_message.side_effect = GraphAPIError(400, "Outside messaging window")

        response = await client.post("/webhooks/instagram", json=_event())
        assert response.status_code == 200

        messages = {m["senderType"]: m for m in await _messages(client, auth_headers)}
        assert messages["BOT"]["status"] == "FAILED"


class TestSignature:

    @pytest.fixture
    def signed_client(self, client, test_settings):
        from neuraslide.main import app

        secured = test_settings.model_copy(update={"instagram_app_secret": "shh"})
        app.dependency_overrides[get_settings] = lambda: secured
        return client

    @pytest.mark.asyncio
    async def test_missing_signature(self, signed_client):
        response = await signed_client.post("/webhooks/instagram", json=_event())
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_valid_signature(self, signed_client):
        body = json.dumps(_event()).encode()
        digest = hmac.new(b"shh", body, hashlib.sha256).hexdigest()
        response = await signed_client.post(
            "/webhooks/instagram",
            content=body,
            headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={digest}"},
        )
        assert response.status_code == 200
