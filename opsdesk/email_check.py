# SPDX-License-Identifier: AGPL-3.0-or-later
"""Email address checks: a local format test, then an AI deliverability verdict."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, Field, ValidationError as SchemaError

from .adapters.ai_client import ChatJSONBackend
from .errors import SearchError, ValidationError

EMAIL_FORMAT_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EMAIL_SYSTEM_PROMPT = (
    "You judge whether an email address is likely to exist and accept mail. "
    "Consider syntax, whether the domain is plausible or a known disposable provider, "
    "and common typos of popular domains (for example gmial.com). Reply with a JSON object "
    '{"isValid": true|false, "reason": "<one sentence>"} and nothing else.'
)


def is_email_format(value: str) -> bool:
    return bool(EMAIL_FORMAT_RE.match(value or ""))


@dataclass(frozen=True)
class EmailVerdict:
    is_valid: bool
    reason: str


class EmailBackend(Protocol):
    def check(self, email: str) -> EmailVerdict:
        ...


class _VerdictReply(BaseModel):
    is_valid: bool = Field(alias="isValid")
    reason: str


class AIEmailBackend:
    def __init__(self, chat: ChatJSONBackend) -> None:
        self._chat = chat

    def check(self, email: str) -> EmailVerdict:
        data = self._chat.ask_json(EMAIL_SYSTEM_PROMPT, f"Email to validate: {email}")
        try:
            reply = _VerdictReply.model_validate(data)
        except SchemaError as exc:
            raise SearchError(f"Email verdict is malformed: {exc.error_count()} problem(s)") from exc
        return EmailVerdict(is_valid=reply.is_valid, reason=reply.reason)


def validate_email(email: str, *, backend: EmailBackend) -> EmailVerdict:
    """Return a verdict for ``email``; badly formed addresses never reach the AI."""

    if not isinstance(email, str) or not email.strip():
        raise ValidationError("Email must be a non-empty string.")
    email = email.strip()
    if not is_email_format(email):
        return EmailVerdict(is_valid=False, reason="The email format is invalid.")
    try:
        verdict = backend.check(email)
    except SearchError:
        raise
    except Exception as exc:
        raise SearchError(f"Email check failed: {type(exc).__name__}: {exc}") from exc
    if not isinstance(verdict, EmailVerdict):
        raise SearchError("Email backend returned an unexpected result.")
    return verdict
