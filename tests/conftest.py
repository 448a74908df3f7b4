# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography.fernet import Fernet

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opsdesk.google_oauth import OAuthCredential  # noqa: E402
from opsdesk.settings import Settings  # noqa: E402


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, *, text: str | None = None, reason: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        data_dir=str(tmp_path / "data"),
        google_client_id="client-123.apps.googleusercontent.com",
        google_client_secret="shh",
        google_redirect_uri="http://testserver/api/auth/google/callback",
        credential_secret=Fernet.generate_key().decode("ascii"),
        ai_api_key="test-key",
    )


def make_credential(token: str, *, refresh: str | None = "1//refresh") -> OAuthCredential:
    return OAuthCredential(
        access_token=token,
        refresh_token=refresh,
        expiry=datetime.now(timezone.utc) + timedelta(hours=1),
        scopes=("https://www.googleapis.com/auth/spreadsheets.readonly",),
    )


@pytest.fixture()
def credential() -> OAuthCredential:
    return make_credential("ya29.test-token")
