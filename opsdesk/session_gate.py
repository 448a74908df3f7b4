# SPDX-License-Identifier: AGPL-3.0-or-later
"""Route-level session gate.

Every request path is classified before it reaches a handler:

* excluded paths (API routes, static assets, framework internals) are never
  evaluated and always pass through;
* public paths (login, signup, ...) redirect an already signed-in user home;
* every other path redirects an anonymous user to the login page.

``classify`` is pure; the ASGI middleware in :mod:`opsdesk.api.http` only reads
the cookie and turns the decision into a redirect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

EXCLUDED_PREFIXES = ("/api/", "/static/", "/_next/")
EXCLUDED_PATHS = frozenset({"/api", "/favicon.ico", "/robots.txt"})
STATIC_SUFFIXES = (
    ".css",
    ".js",
    ".map",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".webp",
    ".woff",
    ".woff2",
)


class GateDecision(str, Enum):
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"


@dataclass(frozen=True)
class GatePolicy:
    public_paths: FrozenSet[str] = field(default_factory=lambda: frozenset({"/login", "/signup", "/verify-email"}))
    login_path: str = "/login"
    home_path: str = "/"


DEFAULT_POLICY = GatePolicy()


def _normalise(path: str) -> str:
    if not path:
        return "/"
    if len(path) > 1 and path.endswith("/"):
        return path.rstrip("/") or "/"
    return path


def is_excluded(path: str) -> bool:
    if path in EXCLUDED_PATHS:
        return True
    if path.startswith(EXCLUDED_PREFIXES):
        return True
    return path.lower().endswith(STATIC_SUFFIXES)


def has_valid_marker(value: Optional[str]) -> bool:
    """The marker is issued by the identity provider; any non-blank value counts."""

    return bool(value and value.strip())


def classify(path: str, has_session: bool, policy: GatePolicy = DEFAULT_POLICY) -> GateDecision:
    if is_excluded(path):
        return GateDecision.ALLOW
    is_public = _normalise(path) in policy.public_paths
    if is_public and has_session:
        return GateDecision.REDIRECT_HOME
    if not is_public and not has_session:
        return GateDecision.REDIRECT_LOGIN
    return GateDecision.ALLOW


def redirect_target(decision: GateDecision, policy: GatePolicy = DEFAULT_POLICY) -> Optional[str]:
    if decision is GateDecision.REDIRECT_LOGIN:
        return policy.login_path
    if decision is GateDecision.REDIRECT_HOME:
        return policy.home_path
    return None
