"""Tests for redirect URL building and the redirect endpoint."""

from __future__ import annotations

import asyncio

import pytest

from utm_tracker.dto import Link
from utm_tracker.errors import DestinationUrlError
from utm_tracker.services.redirect_service import build_redirect_url
from utm_tracker.services.tracking_service import TrackingRecorder

from .conftest import wait_for_tracking

BASE = "/api/v1/utm-links"


def link_for(destination: str, **utm) -> Link:
    fields = {"utm_source": "newsletter", "utm_medium": "email"}
    fields.update(utm)
    return Link(id=1, code="aB3dE5fG", destination_url=destination, **fields)


class TestBuildRedirectUrl:
    """Tests for destination URL composition."""

    def test_appends_after_existing_query(self):
        url = build_redirect_url(link_for("https://example.com/page?ref=x"))
        assert url == "https://example.com/page?ref=x&utm_source=newsletter&utm_medium=email"

    def test_all_parameters_in_fixed_order(self):
        url = build_redirect_url(link_for(
            "https://example.com/a",
            utm_campaign="spring sale",
            utm_content="hero",
        ))
        assert url == (
            "https://example.com/a?utm_source=newsletter&utm_medium=email"
            "&utm_campaign=spring+sale&utm_content=hero"
        )

    def test_empty_optional_parameters_omitted(self):
        url = build_redirect_url(link_for("https://example.com/", utm_campaign="", utm_content=None))
        assert "utm_campaign" not in url
        assert "utm_content" not in url

    def test_existing_utm_parameter_not_overwritten(self):
        url = build_redirect_url(link_for("https://example.com/?utm_source=old"))
        assert url == "https://example.com/?utm_source=old&utm_source=newsletter&utm_medium=email"

    def test_bare_host_gets_root_path(self):
        url = build_redirect_url(link_for("https://example.com"))
        assert url == "https://example.com/?utm_source=newsletter&utm_medium=email"

    def test_fragment_kept_after_query(self):
        url = build_redirect_url(link_for("https://example.com/p#top"))
        assert url == "https://example.com/p?utm_source=newsletter&utm_medium=email#top"

    @pytest.mark.parametrize("destination", ["example.com/page", "/relative", "http://[::1"])
    def test_malformed_destination(self, destination):
        with pytest.raises(DestinationUrlError):
            build_redirect_url(link_for(destination))


async def create_link(client, **body):
    payload = {
        "destinationUrl": "https://example.com/page?ref=x",
        "utmSource": "newsletter",
        "utmMedium": "email",
    }
    payload.update(body)
    response = await client.post(BASE, json=payload)
    assert response.status_code == 201
    return await response.get_json()


class TestRedirectEndpoint:
    """Tests for GET /redirect/<code>."""

    @pytest.mark.asyncio
    async def test_redirects_with_utm_parameters(self, app, client):
        link = await create_link(client)

        response = await client.get(f"{BASE}/redirect/{link['code']}")

        assert response.status_code == 302
        assert response.headers["Location"] == (
            "https://example.com/page?ref=x&utm_source=newsletter&utm_medium=email"
        )

    @pytest.mark.asyncio
    async def test_forged_ip_header_is_not_stored_or_looked_up(self, app, client, geo_provider):
        link = await create_link(client)
        forged = "8.8.8.8/../../admin?x="

        response = await client.get(
            f"{BASE}/redirect/{link['code']}",
            headers={"X-Client-Real-IP": forged, "X-Forwarded-For": forged},
        )
        assert response.status_code == 302
        await wait_for_tracking(app)

        [event] = app.extensions["link_store"].list_tracking_events_for_link(link["id"])
        assert event.ip_address != forged
        assert geo_provider.geo_requests() == []

    @pytest.mark.asyncio
    async def test_records_tracking_event(self, app, client):
        link = await create_link(client)

        await client.get(
            f"{BASE}/redirect/{link['code']}",
            headers={
                "X-Forwarded-For": "81.2.69.142, 10.0.0.1",
                "User-Agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) Mobile Safari/604.1",
                "Referer": "https://social.example/post",
            },
        )
        await wait_for_tracking(app)

        store = app.extensions["link_store"]
        [event] = store.list_tracking_events_for_link(link["id"])
        assert event.ip_address == "81.2.69.142"
        assert event.country == "GB"
        assert event.city == "London"
        assert event.device_type == "mobile"
        assert event.os == "iOS"
        assert event.referer == "https://social.example/post"

    @pytest.mark.asyncio
    async def test_unknown_code(self, client):
        response = await client.get(f"{BASE}/redirect/doesnotexist")

        assert response.status_code == 404
        data = await response.get_json()
        assert data == {"status": "error", "message": "UTM link not found or inactive"}

    @pytest.mark.asyncio
    async def test_inactive_link_same_as_missing(self, app, client):
        link = await create_link(client)
        response = await client.put(f"{BASE}/{link['id']}", json={
            "destinationUrl": link["destinationUrl"],
            "utmSource": link["utmSource"],
            "utmMedium": link["utmMedium"],
            "isActive": False,
        })
        assert response.status_code == 200

        inactive = await client.get(f"{BASE}/redirect/{link['code']}")
        missing = await client.get(f"{BASE}/redirect/doesnotexist")

        assert inactive.status_code == missing.status_code == 404
        assert await inactive.get_json() == await missing.get_json()
        await wait_for_tracking(app)
        assert app.extensions["link_store"].list_tracking_events_for_link(link["id"]) == []

    @pytest.mark.asyncio
    async def test_tracking_failure_does_not_affect_redirect(self, app, client, monkeypatch):
        link = await create_link(client)

        def broken(self, visit):
            raise RuntimeError("recorder unavailable")

        monkeypatch.setattr(TrackingRecorder, "schedule", broken)

        response = await client.get(f"{BASE}/redirect/{link['code']}")
        assert response.status_code == 302


class TestSlowGeolocation:
    """Redirect timing is independent of the geolocation provider."""

    @pytest.fixture
    def config_overrides(self):
        return {"GEO_OUTER_TIMEOUT": 0.1}

    @pytest.mark.asyncio
    async def test_slow_provider(self, app, client, geo_provider):
        link = await create_link(client)
        geo_provider.delay = 0.5

        loop = asyncio.get_running_loop()
        started = loop.time()
        response = await client.get(
            f"{BASE}/redirect/{link['code']}",
            headers={"X-Forwarded-For": "8.8.8.8"},
        )
        assert response.status_code == 302
        assert loop.time() - started < 0.5

        await wait_for_tracking(app)
        [event] = app.extensions["link_store"].list_tracking_events_for_link(link["id"])
        assert event.ip_address == "8.8.8.8"
        assert (event.country, event.city, event.geodata) == (None, None, None)

        await asyncio.sleep(0.5)
