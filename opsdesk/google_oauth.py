# SPDX-License-Identifier: AGPL-3.0-or-later
"""Google OAuth consent, code exchange and per-request authorized sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Final, Mapping, Optional, Tuple
from urllib.parse import urlencode

import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.credentials import Credentials

from .errors import AuthExchangeError

logger = logging.getLogger(__name__)

AUTH_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"

SCOPES: Final[Tuple[str, ...]] = (
    "https://www.googleapis.com/auth/spreadsheets.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)


@dataclass(frozen=True)
class OAuthConfig:
    """Immutable client registration; safe to share between requests."""

    client_id: str
    client_secret: str
    redirect_uri: str

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


@dataclass(frozen=True)
class OAuthCredential:
    access_token: str
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    scopes: Tuple[str, ...] = field(default_factory=tuple)
    token_type: str = "Bearer"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expiry

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "scopes": list(self.scopes),
            "token_type": self.token_type,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OAuthCredential":
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token is required")
        expiry_raw = data.get("expiry")
        expiry = datetime.fromisoformat(expiry_raw) if isinstance(expiry_raw, str) and expiry_raw else None
        return cls(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or None,
            expiry=expiry,
            scopes=tuple(data.get("scopes") or ()),
            token_type=str(data.get("token_type") or "Bearer"),
        )


def build_authorization_url(config: OAuthConfig, *, state: Optional[str] = None) -> str:
    """Return the consent URL for read-only Sheets access plus basic profile.

    Offline access is requested so a refresh token is issued, and consent is
    forced so Google issues it again on every sign-in.
    """

    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": " ".join(SCOPES),
        "access_type": "offline",
        "prompt": "consent",
    }
    if state:
        params["state"] = state
    return AUTH_ENDPOINT + "?" + urlencode(params)


def exchange_code(
    config: OAuthConfig,
    code: str,
    *,
    timeout: float = 10.0,
    session: Optional[requests.Session] = None,
    now: Optional[datetime] = None,
) -> OAuthCredential:
    """Trade a one-time authorization ``code`` for an :class:`OAuthCredential`.

    Raises:
        AuthExchangeError: The code is blank, rejected by Google (invalid,
            expired or already used), the response has no access token, or the
            request itself failed.
    """

    code = (code or "").strip()
    if not code:
        raise AuthExchangeError("Authorization code is missing.")

    data = {
        "code": code,
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "redirect_uri": config.redirect_uri,
        "grant_type": "authorization_code",
    }
    post = session.post if session is not None else requests.post
    try:
        response = post(TOKEN_ENDPOINT, data=data, timeout=timeout)
    except requests.RequestException as exc:
        raise AuthExchangeError(f"Token request failed: {exc}") from exc

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    if response.status_code >= 400:
        reason = payload.get("error") or response.reason or "unknown_error"
        raise AuthExchangeError(f"Token exchange rejected ({response.status_code}): {reason}")

    access_token = payload.get("access_token")
    if not access_token:
        raise AuthExchangeError("Token response did not include an access token.")

    expiry = None
    expires_in = payload.get("expires_in")
    try:
        if expires_in is not None:
            expiry = (now or datetime.now(timezone.utc)) + timedelta(seconds=int(expires_in))
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric expires_in from token endpoint")

    return OAuthCredential(
        access_token=str(access_token),
        refresh_token=payload.get("refresh_token") or None,
        expiry=expiry,
        scopes=tuple(str(payload.get("scope") or "").split()),
        token_type=str(payload.get("token_type") or "Bearer"),
    )


def authenticated_client(config: OAuthConfig, credential: OAuthCredential) -> AuthorizedSession:
    """Return a new :class:`AuthorizedSession` bound to ``credential`` only."""

    expiry = None
    if credential.expiry is not None:
        # google-auth compares against naive UTC timestamps.
        expiry = credential.expiry.astimezone(timezone.utc).replace(tzinfo=None)
    credentials = Credentials(
        token=credential.access_token,
        refresh_token=credential.refresh_token,
        token_uri=TOKEN_ENDPOINT,
        client_id=config.client_id or None,
        client_secret=config.client_secret or None,
        scopes=list(credential.scopes or SCOPES),
        expiry=expiry,
    )
    return AuthorizedSession(credentials)
