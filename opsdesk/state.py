# SPDX-License-Identifier: AGPL-3.0-or-later
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI, Request

from .adapters.ai_client import ChatJSONBackend
from .credential_cookie import load_key
from .email_check import AIEmailBackend, EmailBackend
from .logging_setup import setup_logging
from .settings import Settings
from .smart_search import AISearchBackend, SearchBackend


@dataclass(frozen=True)
class AppState:
    """Process-wide, read-only collaborators; nothing here holds per-user data."""

    settings: Settings
    logger: logging.Logger
    credential_key: bytes
    search_backend: SearchBackend
    email_backend: EmailBackend


def init_state(settings: Settings) -> AppState:
    data_dir: Path = settings.resolve_data_dir()
    logger = setup_logging(data_dir / "opsdesk.log", settings.log_level)
    key = load_key(settings.credential_secret)
    chat = ChatJSONBackend(
        api_key=settings.ai_api_key,
        base_url=settings.ai_base_url,
        model=settings.ai_model,
        timeout=settings.ai_timeout_seconds,
    )
    return AppState(
        settings=settings,
        logger=logger,
        credential_key=key,
        search_backend=AISearchBackend(chat),
        email_backend=AIEmailBackend(chat),
    )


def get_state(request: Request) -> AppState:
    state = getattr(request.app.state, "app_state", None)
    if state is None:
        raise RuntimeError("AppState not initialized")
    return state


def init_app_state(app: FastAPI, settings: Settings | None = None) -> AppState:
    """Idempotently attach AppState to the FastAPI instance."""

    state = getattr(app.state, "app_state", None)
    if state is None:
        state = init_state(settings or Settings())
        app.state.app_state = state
    return state
