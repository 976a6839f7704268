"""
Automation endpoint tests.
"""
import pytest


async def create_automation(client, headers, payload):
    response = await client.post("/crystal/automations", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestAutomationCrud:

    @pytest.mark.asyncio
    async def test_create_expands_shorthand(self, client, auth_headers, sample_automation):
        automation = await create_automation(client, auth_headers, sample_automation)
        assert automation["trigger"] == {
            "type": "keyword",
            "keywords": ["hello"],
            "matchType": "contains",
            "caseSensitive": False,
        }
        assert automation["response"]["type"] == "custom"
        assert automation["response"]["message"] == "Hi there!"
        assert automation["status"] == "DRAFT"
        assert automation["performance"]["totalTriggers"] == 0

    @pytest.mark.asyncio
    async def test_requires_auth(self, client, sample_automation):
        response = await client.post("/crystal/automations", json=sample_automation)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_limit_per_user(self, client, auth_headers, sample_automation):
        for i in range(3):
            await create_automation(client, auth_headers, {**sample_automation, "name": f"Rule {i}"})
        response = await client.post("/crystal/automations", json=sample_automation, headers=auth_headers)
        assert response.status_code == 403
        assert "automation limit" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_list_paginates_and_filters(self, client, auth_headers, sample_automation):
        await create_automation(client, auth_headers, {**sample_automation, "name": "Welcome flow"})
        await create_automation(client, auth_headers, {**sample_automation, "name": "Pricing", "priority": "high"})

        response = await client.get("/crystal/automations", params={"limit": 1}, headers=auth_headers)
        data = response.json()["data"]
        assert len(data["automations"]) == 1
        assert data["pagination"] == {
            "page": 1, "limit": 1, "total": 2, "totalPages": 2, "hasNext": True, "hasPrev": False,
        }

        response = await client.get("/crystal/automations", params={"priority": "HIGH"}, headers=auth_headers)
        names = [a["name"] for a in response.json()["data"]["automations"]]
        assert names == ["Pricing"]

        response = await client.get("/crystal/automations", params={"search": "welcome"}, headers=auth_headers)
        assert [a["name"] for a in response.json()["data"]["automations"]] == ["Welcome flow"]

    @pytest.mark.asyncio
    async def test_list_rejects_bad_query(self, client, auth_headers):
        response = await client.get("/crystal/automations", params={"limit": 500}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"] == ["Limit must be between 1 and 100"]

    @pytest.mark.asyncio
    async def test_list_is_idempotent(self, client, auth_headers, sample_automation):
        await create_automation(client, auth_headers, sample_automation)
        first = await client.get("/crystal/automations", headers=auth_headers)
        second = await client.get("/crystal/automations", headers=auth_headers)
        assert first.json()["data"] == second.json()["data"]

    @pytest.mark.asyncio
    async def test_update_toggle_delete(self, client, auth_headers, sample_automation):
        automation = await create_automation(client, auth_headers, sample_automation)
        url = f"/crystal/automations/{automation['id']}"

        response = await client.put(url, json={"name": "Renamed", "status": "active"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Renamed"
        assert response.json()["data"]["status"] == "ACTIVE"

        response = await client.post(f"{url}/toggle", headers=auth_headers)
        assert response.json()["data"]["status"] == "INACTIVE"
        response = await client.post(f"{url}/toggle", headers=auth_headers)
        assert response.json()["data"]["status"] == "ACTIVE"

        assert (await client.delete(url, headers=auth_headers)).status_code == 200
        assert (await client.get(url, headers=auth_headers)).status_code == 404


class TestOwnership:

    @pytest.mark.asyncio
    async def test_other_users_automation_is_not_found(self, client, auth_headers, other_headers, sample_automation):
        automation = await create_automation(client, auth_headers, sample_automation)
        url = f"/crystal/automations/{automation['id']}"

        for method in ("get", "delete"):
            response = await getattr(client, method)(url, headers=other_headers)
            assert response.status_code == 404
            assert response.json()["success"] is False

        response = await client.put(url, json={"name": "Hijacked"}, headers=other_headers)
        assert response.status_code == 404

        still_there = await client.get(url, headers=auth_headers)
        assert still_there.json()["data"]["name"] == sample_automation["name"]

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_found(self, client, auth_headers):
        response = await client.get("/crystal/automations/does-not-exist", headers=auth_headers)
        assert response.status_code == 404


class TestAutomationTesting:

    @pytest.mark.asyncio
    async def test_saved_automation(self, client, auth_headers, sample_automation):
        automation = await create_automation(client, auth_headers, sample_automation)
        url = f"/crystal/automations/{automation['id']}/test"

        hit = await client.post(url, json={"message": "hello world"}, headers=auth_headers)
        assert hit.status_code == 200
        assert hit.json()["data"]["triggered"] is True
        assert hit.json()["data"]["response"] == "Hi there!"
        assert hit.json()["data"]["automationId"] == automation["id"]

        miss = await client.post(url, json={"message": "goodbye world"}, headers=auth_headers)
        assert miss.json()["data"]["triggered"] is False

    @pytest.mark.asyncio
    async def test_testing_records_nothing(self, client, auth_headers, sample_automation):
        automation = await create_automation(client, auth_headers, sample_automation)
        await client.post(
            f"/crystal/automations/{automation['id']}/test", json={"message": "hello"}, headers=auth_headers
        )
        response = await client.get(f"/crystal/automations/{automation['id']}", headers=auth_headers)
        assert response.json()["data"]["performance"]["totalTriggers"] == 0

    @pytest.mark.asyncio
    async def test_test_message_required(self, client, auth_headers, sample_automation):
        automation = await create_automation(client, auth_headers, sample_automation)
        response = await client.post(
            f"/crystal/automations/{automation['id']}/test", json={}, headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Test message is required"]

    @pytest.mark.asyncio
    async def test_adhoc_template(self, client, auth_headers):
        response = await client.post(
            "/crystal/automations/test",
            json={
                "trigger": {"type": "keyword", "keywords": ["price"]},
                "response": {"type": "template", "template": "From {price}, {name}!", "variables": {"price": "$10"}},
                "testMessage": "what's the price?",
                "context": {"name": "Sam"},
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["response"] == "From $10, Sam!"

    @pytest.mark.asyncio
    async def test_adhoc_bad_timezone_rejected(self, client, auth_headers):
        response = await client.post(
            "/crystal/automations/test",
            json={
                "trigger": {"type": "time", "timeRange": {"start": "00:00", "end": "23:59"}, "timezone": "../etc/passwd"},
                "response": "Open!",
                "testMessage": "hi",
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["errors"] == ["Trigger timezone must be a valid IANA zone"]

    @pytest.mark.asyncio
    async def test_adhoc_non_numeric_message_count(self, client, auth_headers):
        response = await client.post(
            "/crystal/automations/test",
            json={
                "trigger": {"type": "message_count", "count": 2, "timeWindow": 5},
                "response": "Slow down!",
                "testMessage": "hi",
                "context": {"recentMessageCount": "many"},
            },
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["triggered"] is False

    @pytest.mark.asyncio
    async def test_adhoc_delay(self, client, auth_headers):
        response = await client.post(
            "/crystal/automations/test",
            json={
                "trigger": "hi",
                "response": {"type": "delay", "delayMinutes": 5, "fallbackResponse": {"message": "Soon!"}},
                "testMessage": "hi",
            },
            headers=auth_headers,
        )
        data = response.json()["data"]
        assert data["triggered"] is True
        assert data["delayed"] is True
        assert data["response"] == "Delayed response would be queued"

    @pytest.mark.asyncio
    async def test_ai_response_falls_back(self, client, auth_headers):
        response = await client.post(
            "/crystal/automations/test",
            json={
                "trigger": "help",
                "response": {"type": "ai_generated", "prompt": "Be helpful"},
                "testMessage": "help me",
            },
            headers=auth_headers,
        )
        data = response.json()["data"]
        assert data["triggered"] is True
        assert data["response"]


class TestAutomationStats:

    @pytest.mark.asyncio
    async def test_stats_and_performance(self, client, auth_headers, sample_automation):
        automation = await create_automation(client, auth_headers, {**sample_automation, "status": "ACTIVE"})

        stats = await client.get("/crystal/automations/stats", headers=auth_headers)
        assert stats.status_code == 200
        assert stats.json()["data"]["totalAutomations"] == 1

        performance = await client.get(
            f"/crystal/automations/{automation['id']}/performance", headers=auth_headers
        )
        data = performance.json()["data"]
        assert data["automationId"] == automation["id"]
        assert data["performance"]["conversationCount"] == 0
        assert data["performance"]["recentExecutions"] == []
