"""
Instagram account and DM endpoint tests. The Graph API client is mocked.
"""
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import delete

from neuraslide.db.models import InstagramAccountModel
from neuraslide.infrastructure.instagram_client import GraphAPIError
from neuraslide.services.instagram_service import InstagramService, format_dm


ACCOUNT = {"instagramUserId": "ig-business-1", "username": "shoeshop", "accessToken": "page-token"}


async def _connect(client, headers, body=None):
    response = await client.post("/crystal/instagram/accounts", json=body or ACCOUNT, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


class TestFormatDM:

    def test_without_link(self):
        assert format_dm("Thanks!") == "Thanks!"

    def test_with_link(self):
        assert format_dm("See here", "https://shop.example.com") == "See here\n\n🔗 https://shop.example.com"


class TestAccounts:

    @pytest.mark.asyncio
    async def test_connect_and_list(self, client, auth_headers):
        account_id = await _connect(client, auth_headers)
        response = await client.get("/crystal/instagram/accounts", headers=auth_headers)
        accounts = response.json()["data"]["accounts"]
        assert [a["id"] for a in accounts] == [account_id]
        assert accounts[0]["username"] == "shoeshop"
        assert "accessToken" not in accounts[0]

    @pytest.mark.asyncio
    async def test_reconnect_refreshes(self, client, auth_headers):
        first = await _connect(client, auth_headers)
        second = await _connect(client, auth_headers, {**ACCOUNT, "username": "shoeshop_new"})
        assert first == second
        accounts = (await client.get("/crystal/instagram/accounts", headers=auth_headers)).json()["data"]["accounts"]
        assert accounts[0]["username"] == "shoeshop_new"

    @pytest.mark.asyncio
    async def test_connected_elsewhere(self, client, auth_headers, other_headers):
        await _connect(client, auth_headers)
        response = await client.post("/crystal/instagram/accounts", json=ACCOUNT, headers=other_headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unique_account_constraint_conflicts(self, client, auth_headers, other_headers):
        await _connect(client, auth_headers)
        with patch.object(InstagramService, "_find_by_instagram_id", AsyncMock(return_value=None)):
            response = await client.post("/crystal/instagram/accounts", json=ACCOUNT, headers=other_headers)
        assert response.status_code == 409
        assert response.json()["message"] == "Instagram account is already connected"

    @pytest.mark.asyncio
    async def test_connect_validation(self, client, auth_headers):
        response = await client.post("/crystal/instagram/accounts", json={"username": "x"}, headers=auth_headers)
        assert response.status_code == 400
        assert "Access token is required" in response.json()["errors"]


class TestDirectMessages:

    @pytest.mark.asyncio
    async def test_send_dm_is_stored(self, client, auth_headers, instagram_client):
        account_id = await _connect(client, auth_headers)
        response = await client.post(
            "/crystal/instagram/dm/send",
            json={"accountId": account_id, "recipientId": "ig-customer-9", "message": "Hello!"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["messageId"] == "mid.out.1"
        instagram_client.send_message.assert_awaited_once_with("page-token", "ig-customer-9", "Hello!")

        messages = await client.get(
            f"/crystal/conversations/{data['conversationId']}/messages", headers=auth_headers
        )
        stored = messages.json()["data"]["messages"]
        assert len(stored) == 1
        assert stored[0]["senderType"] == "USER"
        assert stored[0]["externalMessageId"] == "mid.out.1"

    @pytest.mark.asyncio
    async def test_account_removed_while_sending(self, client, database, auth_headers, instagram_client):
        account_id = await _connect(client, auth_headers)

        async def send_then_remove(*args):
            async with database.session() as session:
                await session.execute(delete(InstagramAccountModel).where(InstagramAccountModel.id == account_id))
            return {"message_id": "mid.out.2"}

        instagram_client.send_message.side_effect = send_then_remove
        response = await client.post(
            "/crystal/instagram/dm/send",
            json={"accountId": account_id, "recipientId": "ig-customer-9", "message": "Hello!"},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Instagram account not found"

    @pytest.mark.asyncio
    async def test_same_recipient_reuses_conversation(self, client, auth_headers):
        account_id = await _connect(client, auth_headers)
        body = {"accountId": account_id, "recipientId": "ig-customer-9", "message": "One"}
        first = (await client.post("/crystal/instagram/dm/send", json=body, headers=auth_headers)).json()["data"]
        second = (await client.post(
            "/crystal/instagram/dm/send", json={**body, "message": "Two"}, headers=auth_headers
        )).json()["data"]
        assert first["conversationId"] == second["conversationId"]

        conversation = (await client.get(
            f"/crystal/conversations/{first['conversationId']}", headers=auth_headers
        )).json()["data"]
        assert conversation["messageCount"] == 2

    @pytest.mark.asyncio
    async def test_send_with_link(self, client, auth_headers, instagram_client):
        account_id = await _connect(client, auth_headers)
        response = await client.post(
            "/crystal/instagram/dm/send-with-link",
            json={
                "accountId": account_id,
                "recipientId": "ig-customer-9",
                "message": "Our new drop",
                "link": "https://shop.example.com/drop",
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Our new drop\n\n🔗 https://shop.example.com/drop"
        sent_text = instagram_client.send_message.call_args.args[2]
        assert sent_text.endswith("🔗 https://shop.example.com/drop")

    @pytest.mark.asyncio
    async def test_send_with_link_requires_link(self, client, auth_headers):
        account_id = await _connect(client, auth_headers)
        response = await client.post(
            "/crystal/instagram/dm/send-with-link",
            json={"accountId": account_id, "recipientId": "ig-customer-9", "message": "Hi"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Link is required"]

    @pytest.mark.asyncio
    async def test_graph_failure(self, client, auth_headers, instagram_client):
        account_id = await _connect(client, auth_headers)
        instagram_client.send_message.side_effect = GraphAPIError(400, "Invalid recipient")
        response = await client.post(
            "/crystal/instagram/dm/send",
            json={"accountId": account_id, "recipientId": "nobody", "message": "Hi"},
            headers=auth_headers,
        )
        assert response.status_code == 500
        assert response.json()["success"] is False

        conversations = await client.get("/crystal/conversations", headers=auth_headers)
        assert conversations.json()["data"]["conversations"] == []

    @pytest.mark.asyncio
    async def test_other_users_account(self, client, auth_headers, other_headers):
        account_id = await _connect(client, auth_headers)
        response = await client.post(
            "/crystal/instagram/dm/send",
            json={"accountId": account_id, "recipientId": "ig-customer-9", "message": "Hi"},
            headers=other_headers,
        )
        assert response.status_code == 404


class TestThreads:

    @pytest.mark.asyncio
    async def test_threads(self, client, auth_headers, instagram_client):
        account_id = await _connect(client, auth_headers)
        response = await client.get(
            "/crystal/instagram/dm/conversations",
            params={"accountId": account_id, "userId": "ig-customer-9"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["conversations"] == [{"id": "thread-1"}]
        instagram_client.get_conversations.assert_awaited_once_with("page-token", "ig-customer-9")

    @pytest.mark.asyncio
    async def test_account_required(self, client, auth_headers):
        response = await client.get("/crystal/instagram/dm/conversations", headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"] == ["Account ID is required"]
