"""Tests for the HTTP geolocation service."""

from __future__ import annotations

import httpx
import pytest

from utm_tracker.services.geo_service import (
    GeoIPService,
    GeoLocation,
    init_geo_service,
    normalize_ip,
    parse_country_code,
)


def make_service(handler, **kwargs) -> GeoIPService:
    return GeoIPService(
        provider_url="http://geo.test/{ip}/json/",
        public_ip_url="http://public-ip.test/",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestNormalizeIP:
    """Tests for IP normalization before lookup."""

    @pytest.mark.parametrize("raw,expected", [
        ("8.8.8.8", "8.8.8.8"),
        ("8.8.8.8:443", "8.8.8.8"),
        ("[2001:db8::1]:8080", "2001:db8::1"),
        ("[::1]", "::1"),
        ("::ffff:8.8.4.4", "8.8.4.4"),
        ("2001:4860:4860::8888", "2001:4860:4860::8888"),
        (" 1.1.1.1 ", "1.1.1.1"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_ip(raw) == expected

    def test_full_ipv6_without_double_colon_kept(self):
        ip = "2001:db8:85a3:0:0:8a2e:370:7334"
        assert normalize_ip(ip) == ip

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty(self, raw):
        assert normalize_ip(raw) is None


class TestParseCountryCode:
    """Tests for country code extraction."""

    def test_country_code(self):
        assert parse_country_code({"country_code": "us"}) == "US"

    def test_iso3_fallback(self):
        assert parse_country_code({"country_code_iso3": "DEU"}) == "DE"

    def test_missing(self):
        assert parse_country_code({"city": "Paris"}) is None


class TestGeoIPService:
    """Tests for GeoIPService.lookup and get_public_ip."""

    @pytest.mark.asyncio
    async def test_successful_lookup(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"country_code": "US", "city": "Mountain View"})

        geo = await make_service(handler, user_agent="Tester/2.0").lookup("8.8.8.8")

        assert geo.country == "US"
        assert geo.city == "Mountain View"
        assert geo.full == {"country_code": "US", "city": "Mountain View"}
        assert geo.is_known
        assert str(seen[0].url) == "http://geo.test/8.8.8.8/json/"
        assert seen[0].headers["User-Agent"] == "Tester/2.0"

    @pytest.mark.asyncio
    async def test_lookup_normalizes_address(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"country_code": "GB", "city": "London"})

        await make_service(handler).lookup("::ffff:81.2.69.142")
        assert seen[0].url.path == "/81.2.69.142/json/"

    @pytest.mark.asyncio
    async def test_private_ip_skips_provider(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        geo = await make_service(handler).lookup("192.168.1.10")
        assert geo == GeoLocation.unknown()
        assert seen == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [
        "1.1.1.1/../../admin?x=",
        "evil.example/path",
        "8.8.8.8 8.8.4.4",
    ])
    async def test_non_ip_value_never_reaches_provider(self, value):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"country_code": "US"})

        geo = await make_service(handler).lookup(value)
        assert geo == GeoLocation.unknown()
        assert seen == []

    @pytest.mark.asyncio
    async def test_provider_logical_error(self):
        def handler(request):
            return httpx.Response(200, json={"error": True, "reason": "RateLimited"})

        geo = await make_service(handler).lookup("8.8.8.8")
        assert geo == GeoLocation.unknown()
        assert not geo.is_known

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(429, json={"country_code": "US"})

        assert await make_service(handler).lookup("8.8.8.8") == GeoLocation.unknown()

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_service(handler).lookup("8.8.8.8") == GeoLocation.unknown()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        assert await make_service(handler).lookup("8.8.8.8") == GeoLocation.unknown()

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        def handler(request):
            return httpx.Response(200, text="not json")

        assert await make_service(handler).lookup("8.8.8.8") == GeoLocation.unknown()

    @pytest.mark.asyncio
    async def test_public_ip(self):
        def handler(request):
            return httpx.Response(200, text="203.0.113.7\n")

        assert await make_service(handler).get_public_ip() == "203.0.113.7"

    @pytest.mark.asyncio
    async def test_public_ip_rejects_garbage(self):
        def handler(request):
            return httpx.Response(200, text="<html>oops</html>")

        assert await make_service(handler).get_public_ip() is None

    @pytest.mark.asyncio
    async def test_public_ip_failure(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        assert await make_service(handler).get_public_ip() is None


def test_init_geo_service_reads_config():
    service = init_geo_service({"GEO_REQUEST_TIMEOUT": 0.5, "GEO_PROVIDER_URL": "http://x/{ip}"})
    assert service.timeout == 0.5
