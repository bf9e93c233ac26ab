"""Tests for the OAuth refresh-token grant."""

import time
from urllib.parse import parse_qs

import httpx
import pytest

from taskmirror.core.config import settings
from taskmirror.core.errors import TokenRefreshError
from taskmirror.interface.oauth_client import refresh_access_token


@pytest.fixture
def credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "google_client_id", "client-id")
    monkeypatch.setattr(settings, "google_client_secret", "client-secret")


@pytest.mark.unit
class TestRefreshAccessToken:
    @pytest.mark.asyncio
    async def test_successful_grant(self, credentials: None):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "new-access", "expires_in": 1800})

        before = int(time.time())
        grant = await refresh_access_token("refresh-1", transport=httpx.MockTransport(handler))

        assert grant.access_token == "new-access"
        assert grant.refresh_token is None
        assert before + 1800 <= grant.expires_at <= int(time.time()) + 1800

        form = parse_qs(seen[0].content.decode())
        assert form == {
            "client_id": ["client-id"],
            "client_secret": ["client-secret"],
            "grant_type": ["refresh_token"],
            "refresh_token": ["refresh-1"],
        }

    @pytest.mark.asyncio
    async def test_rotated_refresh_token_is_returned(self, credentials: None):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"access_token": "a", "expires_in": 60, "refresh_token": "r2"})
        )

        grant = await refresh_access_token("r1", transport=transport)

        assert grant.refresh_token == "r2"

    @pytest.mark.asyncio
    async def test_rejected_grant_raises(self, credentials: None):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

        with pytest.raises(TokenRefreshError, match="status 400"):
            await refresh_access_token("revoked", transport=transport)

    @pytest.mark.asyncio
    async def test_missing_credentials_raise(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(settings, "google_client_id", None)

        with pytest.raises(TokenRefreshError, match="GOOGLE_CLIENT_ID"):
            await refresh_access_token("r1")

    @pytest.mark.asyncio
    async def test_empty_refresh_token_raises(self):
        with pytest.raises(TokenRefreshError):
            await refresh_access_token("")

    @pytest.mark.asyncio
    async def test_network_failure_raises(self, credentials: None):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(TokenRefreshError, match="unreachable"):
            await refresh_access_token("r1", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_non_json_success_body_raises(self, credentials: None):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(TokenRefreshError, match="unreadable"):
            await refresh_access_token("r1", transport=transport)

    @pytest.mark.asyncio
    async def test_success_without_access_token_raises(self, credentials: None):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"expires_in": 3600}))

        with pytest.raises(TokenRefreshError, match="unreadable"):
            await refresh_access_token("r1", transport=transport)
