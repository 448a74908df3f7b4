# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import pytest
import requests

from conftest import FakeResponse, make_credential
from opsdesk.errors import AuthExchangeError
from opsdesk.google_oauth import (
    AUTH_ENDPOINT,
    SCOPES,
    TOKEN_ENDPOINT,
    OAuthConfig,
    OAuthCredential,
    authenticated_client,
    build_authorization_url,
    exchange_code,
)

CONFIG = OAuthConfig(
    client_id="client-123.apps.googleusercontent.com",
    client_secret="shh",
    redirect_uri="http://127.0.0.1:8765/api/auth/google/callback",
)


class FakeTokenSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, data=None, timeout=None):
        self.calls.append({"url": url, "data": data, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def test_authorization_url_requests_offline_consent_with_exact_scopes():
    url = build_authorization_url(CONFIG)
    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == AUTH_ENDPOINT
    query = parse_qs(parts.query)
    assert query["scope"][0].split() == list(SCOPES)
    assert len(SCOPES) == 3
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["consent"]
    assert query["response_type"] == ["code"]
    assert query["client_id"] == [CONFIG.client_id]
    assert query["redirect_uri"] == [CONFIG.redirect_uri]
    assert "state" not in query


def test_authorization_url_carries_state():
    query = parse_qs(urlsplit(build_authorization_url(CONFIG, state="xyz")).query)
    assert query["state"] == ["xyz"]


def test_exchange_code_returns_credential():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    session = FakeTokenSession(
        FakeResponse(
            200,
            {
                "access_token": "ya29.abc",
                "refresh_token": "1//refresh",
                "expires_in": 3599,
                "scope": " ".join(SCOPES),
                "token_type": "Bearer",
            },
        )
    )

    credential = exchange_code(CONFIG, "4/0Abc", timeout=5, session=session, now=now)

    assert credential.access_token == "ya29.abc"
    assert credential.refresh_token == "1//refresh"
    assert credential.expiry == now + timedelta(seconds=3599)
    assert credential.scopes == SCOPES
    call = session.calls[0]
    assert call["url"] == TOKEN_ENDPOINT
    assert call["timeout"] == 5
    assert call["data"]["grant_type"] == "authorization_code"
    assert call["data"]["code"] == "4/0Abc"


def test_exchange_code_rejected_code():
    session = FakeTokenSession(FakeResponse(400, {"error": "invalid_grant"}))
    with pytest.raises(AuthExchangeError, match="invalid_grant"):
        exchange_code(CONFIG, "used-code", session=session)


def test_exchange_code_network_failure():
    session = FakeTokenSession(exc=requests.ConnectionError("boom"))
    with pytest.raises(AuthExchangeError):
        exchange_code(CONFIG, "code", session=session)


def test_exchange_code_without_access_token():
    session = FakeTokenSession(FakeResponse(200, {"token_type": "Bearer"}))
    with pytest.raises(AuthExchangeError):
        exchange_code(CONFIG, "code", session=session)


@pytest.mark.parametrize("code", ["", "   "])
def test_exchange_code_blank_code_skips_request(code):
    session = FakeTokenSession(FakeResponse(200, {"access_token": "x"}))
    with pytest.raises(AuthExchangeError):
        exchange_code(CONFIG, code, session=session)
    assert session.calls == []


def test_authenticated_clients_are_independent():
    first = authenticated_client(CONFIG, make_credential("token-a"))
    second = authenticated_client(CONFIG, make_credential("token-b"))
    again = authenticated_client(CONFIG, make_credential("token-a"))
    try:
        assert first is not second
        assert first is not again
        assert first.credentials is not again.credentials
        assert first.credentials.token == "token-a"
        assert second.credentials.token == "token-b"
        assert first.credentials.refresh_token == "1//refresh"
        assert first.credentials.expiry.tzinfo is None
    finally:
        for client in (first, second, again):
            client.close()


def test_credential_expiry_and_dict_form():
    past = OAuthCredential(access_token="t", expiry=datetime.now(timezone.utc) - timedelta(minutes=1))
    assert past.is_expired()
    assert not OAuthCredential(access_token="t").is_expired()

    restored = OAuthCredential.from_dict(make_credential("t").to_dict())
    assert restored.access_token == "t"
    assert restored.expiry is not None and restored.expiry.tzinfo is not None

    with pytest.raises(ValueError):
        OAuthCredential.from_dict({"refresh_token": "r"})
