"""Pytest configuration and fixtures for UTM tracker tests."""

from __future__ import annotations

import asyncio
import os
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio
from pydal import DAL

# Set testing environment
os.environ["FLASK_ENV"] = "testing"

from utm_tracker import create_app  # noqa: E402
from utm_tracker.async_db import shutdown_executor  # noqa: E402
from utm_tracker.config import TestingConfig  # noqa: E402
from utm_tracker.datastore import LinkDatastore  # noqa: E402
from utm_tracker.models import define_tables  # noqa: E402

PUBLIC_IP = "203.0.113.7"

GEO_PAYLOADS: dict[str, dict[str, Any]] = {
    "8.8.8.8": {"ip": "8.8.8.8", "country_code": "US", "city": "Mountain View"},
    "81.2.69.142": {"ip": "81.2.69.142", "country_code": "GB", "city": "London"},
    PUBLIC_IP: {"ip": PUBLIC_IP, "country_code_iso3": "DEU", "city": "Berlin"},
}


class FakeGeoProvider:
    """Geolocation and public-IP endpoints behind an httpx.MockTransport.

    Unknown IPs get the provider's logical error payload.
    """

    def __init__(self) -> None:
        self.payloads = dict(GEO_PAYLOADS)
        self.public_ip = PUBLIC_IP
        self.delay = 0.0
        self.status_code = 200
        self.requests: list[httpx.Request] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        if request.url.host == "public-ip.test":
            return httpx.Response(200, text=self.public_ip)

        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": True})

        ip = request.url.path.strip("/").split("/")[0]
        payload = self.payloads.get(ip)
        if payload is None:
            return httpx.Response(200, json={"ip": ip, "error": True, "reason": "Reserved IP Address"})
        return httpx.Response(200, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def geo_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "geo.test"]


def make_config(tmp_path, **overrides) -> type[TestingConfig]:
    """TestingConfig with its database in ``tmp_path``."""
    attrs = {"DB_FOLDER": str(tmp_path)}
    attrs.update(overrides)
    return type("LocalTestingConfig", (TestingConfig,), attrs)


async def wait_for_tracking(app) -> None:
    """Let detached tracking tasks finish."""
    await app.extensions["tracking_recorder"].drain(timeout=5)


def _teardown_db(db: Optional[DAL]) -> None:
    shutdown_executor()
    if db is not None:
        db.close()


@pytest.fixture
def geo_provider():
    """Fake geolocation provider."""
    return FakeGeoProvider()


@pytest.fixture
def config_overrides():
    """Extra config attributes; override in a test module to change them."""
    return {}


@pytest_asyncio.fixture
async def app(tmp_path, geo_provider, config_overrides):
    """Create test application."""
    app = create_app(
        make_config(tmp_path, **config_overrides),
        geo_transport=geo_provider.transport,
    )
    yield app
    await wait_for_tracking(app)
    _teardown_db(app.config["db"])


@pytest_asyncio.fixture
async def client(app):
    """Create test client."""
    async with app.test_client() as client:
        yield client


@pytest.fixture
def store(tmp_path):
    """LinkDatastore on a fresh SQLite file."""
    db = DAL("sqlite://store_test.db", folder=str(tmp_path), pool_size=0, migrate=True)
    define_tables(db)
    yield LinkDatastore(db)
    _teardown_db(db)


@pytest.fixture
def make_link(store):
    """Insert a link directly through the datastore."""
    counter = {"n": 0}

    def _make_link(**fields):
        counter["n"] += 1
        data = {
            "code": f"code{counter['n']:04d}",
            "destination_url": "https://example.com/page",
            "utm_source": "newsletter",
            "utm_medium": "email",
        }
        data.update(fields)
        return store.create_link(**data)

    return _make_link


@pytest.fixture
def auth_headers():
    """Helper to create auth headers with a token."""
    def _auth_headers(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
