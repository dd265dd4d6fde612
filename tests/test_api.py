"""Tests for the status API."""

import asyncio
from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from afkguard.api import create_app
from afkguard.bot import AfkCoordinator
from afkguard.models import GuildConfigUpdate


@pytest.fixture
def api_settings(minimal_settings):
    return replace(
        minimal_settings,
        api_enabled=True,
        dashboard_username="admin",
        dashboard_password="testpass",
    )


@pytest.fixture
def mock_coordinator(api_settings, store):
    """Create mock coordinator."""
    coordinator = MagicMock(spec=AfkCoordinator)
    coordinator.settings = api_settings
    coordinator.config_store = store
    coordinator.discord_bot = MagicMock()
    coordinator.discord_bot.guilds = [MagicMock(), MagicMock()]
    coordinator.discord_bot.latency = 0.1
    coordinator.get_health_stats = MagicMock(return_value={
        "uptime_seconds": 3600,
        "uptime_formatted": "1h",
        "error_count": 0,
        "discord_connected": True,
        "pending_relocations": 2,
        "health_status": "healthy",
    })
    return coordinator


@pytest.fixture
def client(mock_coordinator, api_settings):
    return TestClient(create_app(mock_coordinator, api_settings))


@pytest.fixture
def auth_headers(client):
    response = client.post("/api/auth/login", data={"username": "admin", "password": "testpass"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_login_returns_bearer_token(client):
    response = client.post("/api/auth/login", data={"username": "admin", "password": "testpass"})

    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]
    assert data["expires_in"] == 86400


def test_login_failed(client):
    response = client.post("/api/auth/login", data={"username": "admin", "password": "wrong"})
    assert response.status_code == 401


def test_endpoints_require_auth(client):
    assert client.get("/api/health").status_code == 401
    assert client.get("/api/guilds").status_code == 401
    assert client.get("/api/guilds", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_health(client, auth_headers):
    response = client.get("/api/health", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["health_status"] == "healthy"
    assert data["pending_relocations"] == 2
    assert data["guilds"] == 2
    assert data["latency_ms"] == pytest.approx(100.0)


def test_health_before_first_heartbeat(client, auth_headers, mock_coordinator):
    mock_coordinator.discord_bot.latency = float("nan")

    response = client.get("/api/health", headers=auth_headers)
    assert response.json()["latency_ms"] == 0.0


def test_guild_listing_and_detail(client, auth_headers, store):
    update = GuildConfigUpdate(server_name="Test Guild", afk_channel_id="10", afk_channel_name="AFK")
    asyncio.run(store.upsert(1000, update))

    listing = client.get("/api/guilds", headers=auth_headers)
    assert listing.status_code == 200
    assert [guild["guild_id"] for guild in listing.json()["guilds"]] == ["1000"]

    detail = client.get("/api/guilds/1000", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["afk_channel_name"] == "AFK"
    assert detail.json()["allowed_roles"] == []


def test_unknown_guild_is_404(client, auth_headers):
    assert client.get("/api/guilds/42", headers=auth_headers).status_code == 404


def test_login_rate_limited(client):
    for _ in range(5):
        client.post("/api/auth/login", data={"username": "admin", "password": "wrong"})

    response = client.post("/api/auth/login", data={"username": "admin", "password": "wrong"})
    assert response.status_code == 429
