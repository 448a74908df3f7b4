# SPDX-License-Identifier: AGPL-3.0-or-later
from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    error: str = Field(...)
    message: str | None = None


def error_envelope(code: str, message: str | None = None) -> dict:
    return {"detail": ErrorBody(error=code, message=message).model_dump()}


def action_failure(message: str) -> dict:
    """Envelope shape shared with :mod:`opsdesk.actions` for failures raised before an action runs."""

    return {"success": False, "error": message}
