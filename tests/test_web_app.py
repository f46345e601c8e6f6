"""Debug HTTP endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from clients.exceptions import AuthError, FetchError
from logic.scheduler import CycleAlreadyRunning
from models.logic_models import CycleResult, CycleStatus, NormalizedListing
from models.meli_models import AccessTokenResponse
from services.state_store import LeaderStateStore
from utils.config import Settings
from web.app import create_app


@pytest.fixture
def auth_handler():
    handler = MagicMock()
    handler.authorization_url.return_value = "https://auth.mercadolibre.com.ar/authorization?client_id=1"
    handler.exchange_code = AsyncMock(return_value=AccessTokenResponse(access_token="APP_USR-1", expires_in=21600))
    return handler


@pytest.fixture
def meli_service():
    service = MagicMock()
    service.get_competitors = AsyncMock(return_value=[
        NormalizedListing(id="X1", seller_id="S1", title="Uno", price=100),
        NormalizedListing(id="X2", seller_id="S2", title="Dos", price=90),
    ])
    return service


@pytest.fixture
def store(tmp_path):
    return LeaderStateStore(tmp_path / "state.json")


@pytest.fixture
def scheduler():
    scheduler = MagicMock()
    scheduler.run_once = AsyncMock(return_value=CycleResult(status=CycleStatus.UNCHANGED, product_id="MLA1"))
    return scheduler


@pytest.fixture
def client(auth_handler, meli_service, store, scheduler):
    settings = Settings(_env_file=None, PRODUCT_ID="MLA1")
    return TestClient(create_app(settings, auth_handler, meli_service, store, scheduler))


class TestAuthEndpoints:

    def test_index(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "running" in response.text

    def test_auth_redirects(self, client):
        response = client.get("/auth", follow_redirects=False)
        assert response.status_code in (302, 307)
        assert response.headers["location"].startswith("https://auth.mercadolibre.com.ar/authorization")

    def test_auth_without_app_config(self, client, auth_handler):
        auth_handler.authorization_url.side_effect = AuthError("APP_ID missing")
        assert client.get("/auth", follow_redirects=False).status_code == 500

    def test_callback_without_code(self, client):
        assert client.get("/callback").status_code == 400

    def test_callback_exchanges_code(self, client, auth_handler):
        response = client.get("/callback", params={"code": "TG-1"})

        assert response.status_code == 200
        assert "APP_USR-1" in response.text
        auth_handler.exchange_code.assert_awaited_once_with("TG-1")

    def test_callback_failure(self, client, auth_handler):
        auth_handler.exchange_code.side_effect = AuthError("invalid_grant")

        response = client.get("/callback", params={"code": "bad"})

        assert response.status_code == 500
        assert "Error" in response.text


class TestDebugEndpoints:

    def test_state(self, client, store):
        store.record_leader("MLA1", "S2")
        assert client.get("/debug/state").json() == {"MLA1": "S2"}

    def test_competitors_ranked(self, client):
        body = client.get("/debug/competitors").json()

        assert body["product_id"] == "MLA1"
        assert body["leader"]["id"] == "X2"
        assert [listing["id"] for listing in body["ranked"]] == ["X2", "X1"]

    def test_competitors_no_leader(self, client, meli_service):
        meli_service.get_competitors.return_value = []

        body = client.get("/debug/competitors").json()

        assert body["leader"] is None
        assert body["ranked"] == []

    def test_competitors_fetch_error(self, client, meli_service):
        meli_service.get_competitors.side_effect = FetchError("down", status_code=503)
        assert client.get("/debug/competitors").status_code == 502

    def test_check_runs_cycle(self, client, scheduler):
        response = client.post("/debug/check")

        assert response.status_code == 200
        assert response.json()["status"] == "unchanged"
        scheduler.run_once.assert_awaited_once()

    def test_check_while_running(self, client, scheduler):
        scheduler.run_once.side_effect = CycleAlreadyRunning("busy")
        assert client.post("/debug/check").status_code == 409

    def test_check_without_scheduler(self, auth_handler, meli_service, store):
        settings = Settings(_env_file=None)
        client = TestClient(create_app(settings, auth_handler, meli_service, store, None))
        assert client.post("/debug/check").status_code == 503
