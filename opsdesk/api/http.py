# SPDX-License-Identifier: AGPL-3.0-or-later
from __future__ import annotations

import hmac
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .. import actions
from ..credential_cookie import seal, unseal
from ..google_oauth import OAuthCredential
from ..session_gate import classify, has_valid_marker, redirect_target
from ..settings import Settings
from ..state import AppState, get_state, init_app_state, init_state
from ..version import VERSION
from .errors import action_failure, error_envelope

ACTIONS_PREFIX = "/actions"
CREDENTIAL_MAX_AGE_WITH_REFRESH = 7 * 24 * 3600


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_app_state(app)
    yield


app = FastAPI(title="opsdesk", version=VERSION, lifespan=lifespan)


class SessionGuard(BaseHTTPMiddleware):
    """Redirect anonymous users to login and signed-in users away from it."""

    async def dispatch(self, request, call_next):
        if request.method == "OPTIONS":
            return await call_next(request)
        settings = init_app_state(request.app).settings
        policy = settings.gate_policy()
        marker = request.cookies.get(settings.session_cookie_name)
        decision = classify(request.url.path, has_valid_marker(marker), policy)
        target = redirect_target(decision, policy)
        if target is None:
            return await call_next(request)
        location = request.url.replace(path=target, query="", fragment="")
        return RedirectResponse(url=str(location), status_code=307)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1", "http://localhost"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionGuard)


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    if request.url.path.startswith(ACTIONS_PREFIX):
        return JSONResponse(action_failure(actions.INVALID_INPUT))
    return JSONResponse(error_envelope("validation_error"), status_code=400)


def set_credential_cookie(resp: Response, credential: OAuthCredential, state: AppState) -> None:
    s = state.settings
    if credential.refresh_token:
        max_age = CREDENTIAL_MAX_AGE_WITH_REFRESH
    elif credential.expiry is not None:
        max_age = max(int((credential.expiry - datetime.now(timezone.utc)).total_seconds()), 0)
    else:
        max_age = 3600
    resp.set_cookie(
        key=s.credential_cookie_name,
        value=seal(credential, state.credential_key),
        httponly=True,
        samesite=(s.same_site or "lax").lower(),
        secure=bool(s.secure_cookie),
        path="/",
        max_age=max_age,
    )


def _request_credential(request: Request, state: AppState) -> OAuthCredential | None:
    token = request.cookies.get(state.settings.credential_cookie_name)
    credential = unseal(token, state.credential_key)
    if credential is not None and credential.is_expired() and not credential.refresh_token:
        return None
    return credential


def _set_oauth_state_cookie(resp: Response, nonce: str, state: AppState) -> None:
    s = state.settings
    resp.set_cookie(
        key=s.oauth_state_cookie_name,
        value=nonce,
        httponly=True,
        samesite=(s.same_site or "lax").lower(),
        secure=bool(s.secure_cookie),
        path="/",
        max_age=s.oauth_state_ttl_seconds,
    )


def _check_oauth_state(request: Request, state: AppState) -> bool:
    returned = request.query_params.get("state") or ""
    expected = request.cookies.get(state.settings.oauth_state_cookie_name) or ""
    if not returned or not expected:
        return False
    return hmac.compare_digest(returned.encode("utf-8"), expected.encode("utf-8"))


def _callback_redirect(state: AppState, params: dict) -> RedirectResponse:
    """Redirect to the post-auth page; the one-time state cookie is spent either way."""

    s = state.settings
    response = RedirectResponse(url=f"{s.post_auth_path}?" + urlencode(params), status_code=302)
    response.delete_cookie(s.oauth_state_cookie_name, path="/")
    return response


# ---- Pages (rendered by the UI; the server only anchors the gate)


@app.get("/")
def root():
    return {"ok": True, "message": "opsdesk server running"}


@app.get("/login")
def login_page():
    return {"ok": True, "page": "login"}


# ---- Public API (never gated)

api = APIRouter(prefix="/api", tags=["api"])


@api.get("/health")
def health():
    return {"ok": True, "version": VERSION}


@api.get("/auth/google/callback", response_model=None)
def oauth_google_callback(request: Request, state: AppState = Depends(get_state)):
    code = request.query_params.get("code")
    if not code or not _check_oauth_state(request, state):
        return _callback_redirect(state, {"error": "Authentication failed"})

    outcome = actions.complete_authorization({"code": code}, settings=state.settings)
    if not outcome["success"]:
        return _callback_redirect(state, {"error": outcome["error"]})

    response = _callback_redirect(state, {"import": "true"})
    set_credential_cookie(response, outcome["credential"], state)
    response.headers["Cache-Control"] = "no-store"
    return response


# ---- Actions (gated like any page)

action_router = APIRouter(prefix=ACTIONS_PREFIX, tags=["actions"])


@action_router.post("/smart-search")
def smart_search(body: Any = Body(default=None), state: AppState = Depends(get_state)):
    return actions.smart_search_action(body, backend=state.search_backend)


@action_router.post("/import-clients")
def import_clients(
    request: Request,
    body: Any = Body(default=None),
    state: AppState = Depends(get_state),
):
    credential = _request_credential(request, state)
    return actions.import_clients_action(body, credential, settings=state.settings)


@action_router.post("/validate-email")
def validate_email(body: Any = Body(default=None), state: AppState = Depends(get_state)):
    return actions.validate_email_action(body, backend=state.email_backend)


@action_router.get("/authorization-url", response_model=None)
def authorization_url(state: AppState = Depends(get_state)):
    if not state.settings.oauth_config().is_configured():
        response = JSONResponse(error_envelope("missing_client", "Google OAuth client is not configured."), status_code=400)
    else:
        nonce = secrets.token_urlsafe(24)
        response = JSONResponse({"url": actions.get_authorization_url(state.settings, state=nonce)})
        _set_oauth_state_cookie(response, nonce, state)
    response.headers["Cache-Control"] = "no-store"
    return response


app.include_router(api)
app.include_router(action_router)

APP = app


def create_app(settings: Settings | None = None) -> FastAPI:
    """Attach fresh state built from ``settings`` and return the app."""

    app.state.app_state = init_state(settings or Settings())
    return app


__all__ = ["app", "APP", "SessionGuard", "create_app", "set_credential_cookie"]
