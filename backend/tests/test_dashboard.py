"""
Dashboard endpoint tests.
"""
import pytest

from neuraslide.infrastructure.circuit_breaker import get_circuit_breaker
from neuraslide.validators.dashboard import parse_instant, validate_dashboard_query


URL = "/crystal/dashboard"
BUSINESS_ID = "ig-business-1"


def _inbound(text="hello there"):
    return {
        "object": "instagram",
        "entry": [{
            "id": BUSINESS_ID,
            "messaging": [{
                "sender": {"id": "ig-customer-9"},
                "recipient": {"id": BUSINESS_ID},
                "message": {"mid": "mid.in.1", "text": text},
            }],
        }],
    }


async def _seed(client, headers, sample_automation, sample_product):
    """One connected account, an active automation that fired once, and a searched product."""
    response = await client.post(
        "/crystal/instagram/accounts",
        json={"instagramUserId": BUSINESS_ID, "username": "shoeshop", "accessToken": "page-token"},
        headers=headers,
    )
    assert response.status_code == 201
    response = await client.post(
        "/crystal/automations", json={**sample_automation, "status": "ACTIVE", "isActive": True}, headers=headers
    )
    assert response.status_code == 201
    response = await client.post("/webhooks/instagram", json=_inbound())
    assert response.json()["data"]["automated"] == 1

    assert (await client.post("/crystal/products", json=sample_product, headers=headers)).status_code == 201
    await client.post("/crystal/products/search", json={"query": "running"}, headers=headers)
    await client.post("/crystal/ai/generate", json={"message": "Do you ship?"}, headers=headers)


class TestDashboardQuery:

    def test_range_rules(self):
        assert validate_dashboard_query(None, None, None).is_valid
        assert validate_dashboard_query("2024-01-01", None, None).errors == [
            "Both start and end dates are required for date range filter"
        ]
        assert validate_dashboard_query("yesterday", "2024-01-02", None).errors == ["Invalid start date format"]
        assert validate_dashboard_query("2024-02-01", "2024-01-01", None).errors == [
            "Start date cannot be after end date"
        ]
        assert validate_dashboard_query("2024-01-01", "2024-06-01", None).errors == [
            "Date range cannot exceed 90 days"
        ]

    def test_module_rule(self):
        assert validate_dashboard_query(None, None, "ai").is_valid
        assert validate_dashboard_query(None, None, "campaigns").errors == [
            "Invalid module filter. Must be one of: conversations, automations, products, ai"
        ]

    def test_parse_instant_normalizes_to_utc(self):
        parsed = parse_instant("2024-03-01T12:00:00+02:00")
        assert parsed.hour == 10
        assert parsed.utcoffset().total_seconds() == 0
        assert parse_instant("2024-03-01").tzinfo is not None
        assert parse_instant("nope") is None


class TestDashboard:

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        assert (await client.get(URL)).status_code == 401

    @pytest.mark.asyncio
    async def test_empty_account(self, client, auth_headers):
        response = await client.get(URL, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["overview"] == {
            "totalConversations": 0,
            "activeAutomations": 0,
            "totalProducts": 0,
            "aiConversations": 0,
            "recentMessages": 0,
            "automationTriggers": 0,
            "aiResponses": 0,
        }
        assert data["recentActivity"] == {"conversations": [], "automations": [], "products": [], "aiResponses": []}
        assert data["performance"]["automationPerformance"]["successRate"] == 0.0
        assert data["systemHealth"]["instagramConnections"] == {"total": 0, "active": 0, "lastSync": None}
        assert data["systemHealth"]["apiStatus"]["ai"] == "fallback"
        assert data["quickActions"]["createAutomation"] == {
            "available": False, "message": "Connect Instagram account first",
        }
        assert data["quickActions"]["connectInstagram"]["available"] is True

    @pytest.mark.asyncio
    async def test_rolls_up_activity(self, client, auth_headers, sample_automation, sample_product):
        await _seed(client, auth_headers, sample_automation, sample_product)

        data = (await client.get(URL, headers=auth_headers)).json()["data"]
        overview = data["overview"]
        assert overview["totalConversations"] == 1
        assert overview["activeAutomations"] == 1
        assert overview["totalProducts"] == 1
        assert overview["recentMessages"] == 2
        assert overview["automationTriggers"] == 1
        assert overview["aiResponses"] == 1

        activity = data["recentActivity"]
        assert activity["conversations"][0]["lastMessage"] == "Hi there!"
        assert activity["automations"][0]["trigger"] == "keyword"
        assert activity["products"][0]["searchCount"] == 1
        assert activity["aiResponses"][0]["conversationId"] is None

        performance = data["performance"]
        assert performance["automationPerformance"]["totalTriggers"] == 1
        assert performance["productPerformance"]["totalSearches"] == 1
        assert performance["productPerformance"]["topSearchedProducts"][0]["name"] == "Running Shoe"
        assert performance["conversationPerformance"] == {"totalMessages": 2, "activeConversations": 1}
        assert performance["aiPerformance"]["totalResponses"] == 1

        assert data["systemHealth"]["instagramConnections"]["active"] == 1
        assert data["quickActions"]["createAutomation"]["available"] is True
        assert data["quickActions"]["connectInstagram"]["message"] == "Instagram already connected"

    @pytest.mark.asyncio
    async def test_window_limits_recent_counts(self, client, auth_headers, sample_automation, sample_product):
        await _seed(client, auth_headers, sample_automation, sample_product)

        response = await client.get(
            f"{URL}/overview", params={"start": "2020-01-01", "end": "2020-02-01"}, headers=auth_headers
        )
        overview = response.json()["data"]
        assert overview["totalConversations"] == 1
        assert overview["recentMessages"] == 0
        assert overview["automationTriggers"] == 0
        assert overview["aiResponses"] == 0

    @pytest.mark.asyncio
    async def test_module_filter(self, client, auth_headers, sample_automation, sample_product):
        await _seed(client, auth_headers, sample_automation, sample_product)

        activity = (await client.get(
            f"{URL}/recent-activity", params={"module": "products"}, headers=auth_headers
        )).json()["data"]
        assert len(activity["products"]) == 1
        assert activity["conversations"] == []
        assert activity["automations"] == []

    @pytest.mark.asyncio
    async def test_bad_filters_rejected(self, client, auth_headers):
        response = await client.get(URL, params={"start": "2024-01-01", "module": "campaigns"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["errors"] == [
            "Both start and end dates are required for date range filter",
            "Invalid module filter. Must be one of: conversations, automations, products, ai",
        ]

    @pytest.mark.asyncio
    async def test_scoped_to_caller(self, client, auth_headers, other_headers, sample_automation, sample_product):
        await _seed(client, auth_headers, sample_automation, sample_product)

        overview = (await client.get(f"{URL}/overview", headers=other_headers)).json()["data"]
        assert overview["totalConversations"] == 0
        assert overview["automationTriggers"] == 0
        performance = (await client.get(f"{URL}/performance", headers=other_headers)).json()["data"]
        assert performance["productPerformance"]["totalSearches"] == 0
        health = (await client.get(f"{URL}/system-health", headers=other_headers)).json()["data"]
        assert health["instagramConnections"]["total"] == 0
        actions = (await client.get(f"{URL}/quick-actions", headers=other_headers)).json()["data"]
        assert actions["createAutomation"]["available"] is False

    @pytest.mark.asyncio
    async def test_open_breaker_reported_down(self, client, auth_headers):
        breaker = get_circuit_breaker("instagram_graph")

        async def failing():
            raise RuntimeError("graph unavailable")

        try:
            for _ in range(breaker.failure_threshold):
                with pytest.raises(RuntimeError):
                    await breaker.call(failing)
            health = (await client.get(f"{URL}/system-health", headers=auth_headers)).json()["data"]
            assert health["apiStatus"]["instagram"] == "down"
        finally:
            await breaker.reset()

        health = (await client.get(f"{URL}/system-health", headers=auth_headers)).json()["data"]
        assert health["apiStatus"]["instagram"] == "healthy"
