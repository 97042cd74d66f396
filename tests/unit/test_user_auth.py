"""Tests for Google bearer token verification"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from floworx.api.errors import AuthenticationError, FloworxError, ServiceUnavailableError
from floworx.api.middleware import user_auth
from floworx.api.middleware.user_auth import _extract_bearer_token, verify_google_token
from floworx.config import Settings

USERINFO = {"id": "google-123", "email": "owner@acmehvac.com", "name": "Owner"}


@pytest.fixture
def google(monkeypatch):
    """Route the auth module's httpx client to an in-process handler."""
    state = {"tokeninfo_status": 200, "aud": "client-123", "error": None, "requests": []}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        if state["error"] is not None:
            raise state["error"](f"cannot reach {request.url.host}", request=request)
        if request.url.host == "oauth2.googleapis.com":
            return httpx.Response(state["tokeninfo_status"], json={"aud": state["aud"]})
        return httpx.Response(200, json=USERINFO)

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(user_auth.httpx, "AsyncClient", client_factory)
    return state


def _verify(token="ya29.token", **settings):
    settings.setdefault("google_oauth_client_id", "client-123")
    return asyncio.run(verify_google_token(token, Settings(**settings)))


def test_valid_token(google):
    user = _verify()

    assert user.id == "google-123"
    assert user.email == "owner@acmehvac.com"
    assert user.name == "Owner"


def test_identity_cached(google):
    _verify()
    _verify()

    # tokeninfo + userinfo once
    assert len(google["requests"]) == 2


def test_rejected_token(google):
    google["tokeninfo_status"] = 400

    with pytest.raises(AuthenticationError):
        _verify()


def test_audience_mismatch(google):
    google["aud"] = "someone-else"

    with pytest.raises(AuthenticationError, match="not issued for this application"):
        _verify()


def test_audience_check_skipped_in_development(google):
    google["aud"] = "someone-else"

    assert _verify(google_oauth_client_id=None).id == "google-123"


def test_missing_client_id_in_production(google):
    with pytest.raises(FloworxError) as exc_info:
        _verify(google_oauth_client_id=None, env="production")

    assert exc_info.value.code == "INTERNAL_ERROR"


def test_google_unreachable(google):
    google["error"] = httpx.ConnectError

    with pytest.raises(ServiceUnavailableError):
        _verify()


class TestExtractBearerToken:
    def test_bearer(self):
        assert _extract_bearer_token("Bearer abc.def") == "abc.def"

    def test_scheme_case_insensitive(self):
        assert _extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "abc", "Basic abc", "Bearer a b"])
    def test_malformed(self, header):
        with pytest.raises(AuthenticationError):
            _extract_bearer_token(header)
