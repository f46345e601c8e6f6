"""Shared fixtures: an httpx MockTransport router standing in for the Mercado Libre API."""

import httpx
import pytest

from clients.impl.meli_client import MeliClient
from services.meli_service import MeliService

BASE_URL = "https://api.test"


class FakeMeliApi:
    """Maps request paths to canned responses. A value may be a JSON body, a Response, an Exception or a callable."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, path, value):
        self.routes[path] = value

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        value = self.routes.get(request.url.path)
        if value is None:
            return httpx.Response(404, json={"message": "not_found"})
        if callable(value):
            value = value(request)
            if hasattr(value, "__await__"):
                value = await value
        if isinstance(value, Exception):
            raise value
        if isinstance(value, httpx.Response):
            return value
        return httpx.Response(200, json=value)

    def paths(self):
        return [request.url.path for request in self.requests]


@pytest.fixture
def fake_api():
    return FakeMeliApi()


@pytest.fixture
def meli_client(fake_api):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(fake_api))
    return MeliClient(base_url=BASE_URL, http_client=http_client)


@pytest.fixture
def meli_service(meli_client):
    return MeliService(meli_client=meli_client, competition_source="product", title_lookup_workers=3)
