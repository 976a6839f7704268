"""
AI assistant endpoint tests.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from neuraslide.infrastructure.exceptions import ExternalServiceError
from neuraslide.infrastructure.openai_client import ChatCompletion, OpenAIClient, get_openai_client
from neuraslide.services.ai_service import FALLBACK_REPLIES, build_system_prompt


@pytest.fixture
def configured_openai():
    client = MagicMock(spec=OpenAIClient)
    client.configured = True
    client.default_model = "gpt-test"
    client.chat = AsyncMock(return_value=ChatCompletion(
        content="  We ship worldwide.  ", tokens_used=42, model="gpt-test", finish_reason="stop",
    ))
    return client


@pytest.fixture
def use_openai(client, configured_openai):
    from neuraslide.main import app

    app.dependency_overrides[get_openai_client] = lambda: configured_openai
    return configured_openai


class TestSystemPrompt:

    def test_context_sections(self):
        prompt = build_system_prompt({"businessContext": {"name": "Acme"}, "postContext": {"caption": "Sale"}})
        assert 'Business Context: {"name": "Acme"}' in prompt
        assert 'Post Context: {"caption": "Sale"}' in prompt

    def test_no_context(self):
        assert "Context:" not in build_system_prompt({})


class TestGenerate:

    @pytest.mark.asyncio
    async def test_fallback_without_api_key(self, client, auth_headers):
        response = await client.post("/crystal/ai/generate", json={"message": "Do you ship?"}, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["metadata"]["model"] == "fallback"
        assert data["confidence"] == 0.7
        assert any(data["response"].startswith(reply) for reply in FALLBACK_REPLIES)
        assert data["response"].endswith("[Context: Do you ship?]")

    @pytest.mark.asyncio
    async def test_model_reply(self, client, auth_headers, use_openai):
        response = await client.post(
            "/crystal/ai/generate",
            json={"message": "Do you ship?", "temperature": 0.2, "context": {"businessContext": {"name": "Acme"}}},
            headers=auth_headers,
        )
        data = response.json()["data"]
        assert data["response"] == "We ship worldwide."
        assert data["tokensUsed"] == 42

        messages = use_openai.chat.call_args.args[0]
        assert messages[0]["role"] == "system"
        assert "Acme" in messages[0]["content"]
        assert messages[-1] == {"role": "user", "content": "Do you ship?"}
        assert use_openai.chat.call_args.kwargs["temperature"] == 0.2

    @pytest.mark.asyncio
    async def test_upstream_failure_falls_back(self, client, auth_headers, use_openai):
        use_openai.chat.side_effect = ExternalServiceError("OpenAI")
        response = await client.post("/crystal/ai/generate", json={"message": "hello"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["metadata"]["model"] == "fallback"

    @pytest.mark.asyncio
    async def test_history_is_recorded(self, client, auth_headers, use_openai):
        conversation = (await client.post(
            "/crystal/ai/conversations", json={"title": "Support", "initialMessage": "Hi"}, headers=auth_headers
        )).json()["data"]

        await client.post(
            "/crystal/ai/generate",
            json={"message": "Do you ship?", "conversationId": conversation["id"]},
            headers=auth_headers,
        )
        messages = use_openai.chat.call_args.args[0]
        assert messages[1] == {"role": "user", "content": "Hi"}

        stored = (await client.get(f"/crystal/ai/conversations/{conversation['id']}", headers=auth_headers)).json()["data"]
        assert stored["messageCount"] == 3
        assert sorted(m["role"] for m in stored["messages"]) == ["assistant", "user", "user"]

    @pytest.mark.asyncio
    async def test_message_required(self, client, auth_headers):
        response = await client.post("/crystal/ai/generate", json={}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"] == ["Message is required"]


class TestAIConversations:

    @pytest.mark.asyncio
    async def test_create_update_list(self, client, auth_headers):
        created = await client.post(
            "/crystal/ai/conversations", json={"title": "Launch plan", "tags": ["q3"]}, headers=auth_headers
        )
        assert created.status_code == 201
        conversation_id = created.json()["data"]["id"]

        updated = await client.put(
            f"/crystal/ai/conversations/{conversation_id}",
            json={"summary": "Planning the autumn launch", "isActive": False},
            headers=auth_headers,
        )
        assert updated.json()["data"]["summary"] == "Planning the autumn launch"

        listing = await client.get("/crystal/ai/conversations", params={"query": "autumn"}, headers=auth_headers)
        assert [c["id"] for c in listing.json()["data"]["conversations"]] == [conversation_id]

        listing = await client.get("/crystal/ai/conversations", params={"isActive": "true"}, headers=auth_headers)
        assert listing.json()["data"]["conversations"] == []

    @pytest.mark.asyncio
    async def test_add_messages(self, client, auth_headers):
        conversation_id = (await client.post(
            "/crystal/ai/conversations", json={"title": "Notes"}, headers=auth_headers
        )).json()["data"]["id"]

        nested = await client.post(
            f"/crystal/ai/conversations/{conversation_id}/messages",
            json={"role": "user", "content": "Remember the discount"},
            headers=auth_headers,
        )
        assert nested.status_code == 201

        flat = await client.post(
            "/crystal/ai/messages",
            json={"conversationId": conversation_id, "role": "assistant", "content": "Noted"},
            headers=auth_headers,
        )
        assert flat.status_code == 201

        bad_role = await client.post(
            "/crystal/ai/messages",
            json={"conversationId": conversation_id, "role": "robot", "content": "x"},
            headers=auth_headers,
        )
        assert bad_role.status_code == 400

        stored = (await client.get(f"/crystal/ai/conversations/{conversation_id}", headers=auth_headers)).json()["data"]
        assert stored["messageCount"] == 2

    @pytest.mark.asyncio
    async def test_other_user_conversation(self, client, auth_headers, other_headers):
        conversation_id = (await client.post(
            "/crystal/ai/conversations", json={"title": "Private"}, headers=auth_headers
        )).json()["data"]["id"]
        response = await client.get(f"/crystal/ai/conversations/{conversation_id}", headers=other_headers)
        assert response.status_code == 404
        response = await client.post(
            "/crystal/ai/generate",
            json={"message": "hi", "conversationId": conversation_id},
            headers=other_headers,
        )
        assert response.status_code == 404


class TestTrainingAndPerformance:

    @pytest.mark.asyncio
    async def test_training_data(self, client, auth_headers):
        response = await client.post(
            "/crystal/ai/training",
            json={"input": "Do you ship?", "expectedOutput": "Yes", "category": "shipping"},
            headers=auth_headers,
        )
        assert response.status_code == 201

        listing = await client.get("/crystal/ai/training", params={"category": "shipping"}, headers=auth_headers)
        assert len(listing.json()["data"]["trainingData"]) == 1
        listing = await client.get("/crystal/ai/training", params={"category": "returns"}, headers=auth_headers)
        assert listing.json()["data"]["trainingData"] == []

    @pytest.mark.asyncio
    async def test_performance(self, client, auth_headers):
        empty = (await client.get("/crystal/ai/performance", headers=auth_headers)).json()["data"]
        assert empty["totalRequests"] == 0

        await client.post("/crystal/ai/generate", json={"message": "hello"}, headers=auth_headers)
        await client.post("/crystal/ai/generate", json={"message": "price?"}, headers=auth_headers)

        data = (await client.get("/crystal/ai/performance", headers=auth_headers)).json()["data"]
        assert data["totalRequests"] == 2
        assert data["successRate"] == 0.0
        assert data["errorRate"] == 100.0
        assert data["tokenUsage"]["byModel"]["fallback"] > 0
