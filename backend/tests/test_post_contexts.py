"""
Post context endpoint tests, including the hand-off to AI generation.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from neuraslide.infrastructure.openai_client import ChatCompletion, OpenAIClient, get_openai_client


URL = "/crystal/post-contexts"


async def _connect(client, headers, instagram_user_id="ig-business-1"):
    response = await client.post(
        "/crystal/instagram/accounts",
        json={"instagramUserId": instagram_user_id, "username": "shoeshop", "accessToken": "page-token"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["id"]


async def _create(client, headers, account_id, **fields):
    body = {
        "instagramAccountId": account_id,
        "mediaId": "media-17",
        "caption": "Summer drop is live",
        "keyPoints": ["Ships in 2 days"],
        "products": ["Running Shoe"],
        "pricing": {"Running Shoe": 89.99},
        **fields,
    }
    response = await client.post(URL, json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def recording_openai():
    client = MagicMock(spec=OpenAIClient)
    client.configured = True
    client.default_model = "gpt-test"
    client.chat = AsyncMock(return_value=ChatCompletion(
        content="Yes, two days.", tokens_used=12, model="gpt-test", finish_reason="stop",
    ))
    return client


@pytest.fixture
def use_openai(client, recording_openai):
    from neuraslide.main import app

    app.dependency_overrides[get_openai_client] = lambda: recording_openai
    return recording_openai


class TestPostContextCrud:

    @pytest.mark.asyncio
    async def test_create_defaults(self, client, auth_headers):
        account_id = await _connect(client, auth_headers)
        context = await _create(client, auth_headers, account_id)
        assert context["contextType"] == "MANUAL"
        assert context["responseTone"] == "friendly"
        assert context["isActive"] is True
        assert context["keyPoints"] == ["Ships in 2 days"]
        assert context["faqs"] is None

    @pytest.mark.asyncio
    async def test_validation_errors(self, client, auth_headers):
        response = await client.post(
            URL, json={"keyPoints": "not a list", "faqs": ["q"], "pricing": 5}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["errors"] == [
            "Instagram account ID is required",
            "Media ID is required",
            "Key points must be an array",
            "Pricing must be an object",
            "Each FAQ must be an object",
        ]

    @pytest.mark.asyncio
    async def test_foreign_account_rejected(self, client, auth_headers, other_headers):
        account_id = await _connect(client, auth_headers)
        response = await client.post(URL, json={"instagramAccountId": account_id, "mediaId": "m1"}, headers=other_headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Instagram account not found"

    @pytest.mark.asyncio
    async def test_update_get_delete(self, client, auth_headers):
        account_id = await _connect(client, auth_headers)
        context = await _create(client, auth_headers, account_id)
        url = f"{URL}/{context['id']}"

        response = await client.put(url, json={"responseTone": "playful", "isActive": False}, headers=auth_headers)
        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["responseTone"] == "playful"
        assert updated["isActive"] is False
        assert updated["caption"] == "Summer drop is live"

        assert (await client.get(url, headers=auth_headers)).json()["data"]["responseTone"] == "playful"
        assert (await client.delete(url, headers=auth_headers)).status_code == 200
        assert (await client.get(url, headers=auth_headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_empty_update_rejected(self, client, auth_headers):
        account_id = await _connect(client, auth_headers)
        context = await _create(client, auth_headers, account_id)
        response = await client.put(f"{URL}/{context['id']}", json={}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"] == ["At least one field must be provided for update"]

    @pytest.mark.asyncio
    async def test_other_user_sees_nothing(self, client, auth_headers, other_headers):
        account_id = await _connect(client, auth_headers)
        context = await _create(client, auth_headers, account_id)
        url = f"{URL}/{context['id']}"
        assert (await client.get(url, headers=other_headers)).status_code == 404
        assert (await client.put(url, json={"title": "x"}, headers=other_headers)).status_code == 404
        assert (await client.delete(url, headers=other_headers)).status_code == 404
        listed = (await client.get(URL, headers=other_headers)).json()["data"]
        assert listed["postContexts"] == []
        assert listed["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_list_filters(self, client, auth_headers):
        account_id = await _connect(client, auth_headers)
        first = await _create(client, auth_headers, account_id)
        await _create(client, auth_headers, account_id, mediaId="media-18")
        await client.put(f"{URL}/{first['id']}", json={"isActive": False}, headers=auth_headers)

        by_media = (await client.get(URL, params={"mediaId": "media-18"}, headers=auth_headers)).json()["data"]
        assert [c["mediaId"] for c in by_media["postContexts"]] == ["media-18"]

        inactive = (await client.get(URL, params={"isActive": "false"}, headers=auth_headers)).json()["data"]
        assert [c["id"] for c in inactive["postContexts"]] == [first["id"]]

        paged = (await client.get(URL, params={"limit": 1}, headers=auth_headers)).json()["data"]
        assert len(paged["postContexts"]) == 1
        assert paged["pagination"]["total"] == 2
        assert paged["pagination"]["hasNext"] is True

    @pytest.mark.asyncio
    async def test_list_query_validated(self, client, auth_headers):
        response = await client.get(URL, params={"limit": 500}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"] == ["Limit must be between 1 and 100"]


class TestPostContextInGeneration:

    @pytest.mark.asyncio
    async def test_stored_context_joins_prompt(self, client, auth_headers, use_openai):
        account_id = await _connect(client, auth_headers)
        context = await _create(client, auth_headers, account_id)

        response = await client.post(
            "/crystal/ai/generate", json={"message": "How fast is shipping?", "mediaId": "media-17"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["metadata"]["postContextId"] == context["id"]

        system = use_openai.chat.call_args.args[0][0]["content"]
        assert "Post Context:" in system
        assert "Ships in 2 days" in system
        assert '"responseTone": "friendly"' in system

    @pytest.mark.asyncio
    async def test_caller_context_wins(self, client, auth_headers, use_openai):
        account_id = await _connect(client, auth_headers)
        await _create(client, auth_headers, account_id)

        response = await client.post(
            "/crystal/ai/generate",
            json={"message": "Price?", "mediaId": "media-17", "context": {"postContext": {"caption": "Override"}}},
            headers=auth_headers,
        )
        assert "postContextId" not in response.json()["data"]["metadata"]
        system = use_openai.chat.call_args.args[0][0]["content"]
        assert '"caption": "Override"' in system
        assert "Ships in 2 days" not in system

    @pytest.mark.asyncio
    async def test_inactive_or_foreign_context_ignored(self, client, auth_headers, other_headers, use_openai):
        account_id = await _connect(client, auth_headers)
        context = await _create(client, auth_headers, account_id)

        response = await client.post(
            "/crystal/ai/generate", json={"message": "Hi", "mediaId": "media-17"}, headers=other_headers
        )
        assert "postContextId" not in response.json()["data"]["metadata"]

        await client.put(f"{URL}/{context['id']}", json={"isActive": False}, headers=auth_headers)
        response = await client.post(
            "/crystal/ai/generate", json={"message": "Hi", "mediaId": "media-17"}, headers=auth_headers
        )
        assert "postContextId" not in response.json()["data"]["metadata"]
        assert "Post Context:" not in use_openai.chat.call_args.args[0][0]["content"]
