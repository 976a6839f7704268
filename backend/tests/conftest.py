"""
Shared test fixtures for NeuraSlide API tests.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from httpx import AsyncClient, ASGITransport

from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database
from neuraslide.infrastructure.instagram_client import InstagramGraphClient, get_instagram_client
from neuraslide.infrastructure.openai_client import OpenAIClient, get_openai_client


@pytest.fixture
def test_settings():
    """In-memory database, no OpenAI key, small per-user limits."""
    return Settings(
        environment="test",
        database_url="sqlite+aiosqlite://",
        create_tables_on_startup=False,
        jwt_secret="test-secret",
        openai_api_key=None,
        instagram_app_secret=None,
        instagram_webhook_verify_token="verify-me",
        max_automations_per_user=3,
        max_products_per_user=5,
        admin_emails="admin@example.com",
    )


@pytest.fixture
async def database(test_settings):
    db = Database(test_settings.database_url)
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
def openai_client(test_settings):
    """Unconfigured client, so every AI path takes the fallback."""
    return OpenAIClient(test_settings)


@pytest.fixture
def instagram_client():
    """Graph API client double."""
    client = MagicMock(spec=InstagramGraphClient)
    client.send_message = AsyncMock(return_value={"recipient_id": "ig-recipient", "message_id": "mid.out.1"})
    client.get_conversations = AsyncMock(return_value={"data": [{"id": "thread-1"}]})
    client.close = AsyncMock()
    return client


@pytest.fixture
async def client(test_settings, database, openai_client, instagram_client):
    """Async HTTP client bound to the app with test dependencies installed.

    The ASGI transport does not run the lifespan, so the database is placed
    on ``app.state`` directly.
    """
    from neuraslide.main import app

    app.state.db = database
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_openai_client] = lambda: openai_client
    app.dependency_overrides[get_instagram_client] = lambda: instagram_client

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.db = None


async def signup(client, email="owner@example.com", password="Secret1", name="Owner", team_name=None):
    """Register a user and return (auth headers, envelope data)."""
    payload = {"email": email, "password": password, "name": name}
    if team_name:
        payload["teamName"] = team_name
    response = await client.post("/crystal/auth/signup", json=payload)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return {"Authorization": f"Bearer {data['accessToken']}"}, data


@pytest.fixture
async def auth_headers(client):
    headers, _ = await signup(client)
    return headers


@pytest.fixture
async def other_headers(client):
    headers, _ = await signup(client, email="intruder@example.com", name="Intruder")
    return headers


@pytest.fixture
async def admin_headers(client):
    """Signs up with an address listed in admin_emails."""
    headers, _ = await signup(client, email="admin@example.com", name="Admin")
    return headers


@pytest.fixture
def sample_automation():
    return {
        "name": "Greeting",
        "description": "Say hi back",
        "trigger": "hello",
        "response": "Hi there!",
    }


@pytest.fixture
def sample_product():
    return {
        "name": "Running Shoe",
        "description": "Lightweight trainer",
        "price": 89.99,
        "currency": "usd",
        "category": "Footwear",
        "tags": ["running", "sport"],
    }
