# SPDX-License-Identifier: AGPL-3.0-or-later
"""Entry points the dashboard UI calls.

Every action parses its raw input against a declared model first; anything
that does not fit gets ``{"success": False, "error": "Invalid input."}`` and no
component is touched. Component failures are logged here and reported with a
fixed, human-readable message; exception text never reaches the caller.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, Optional, Type, TypeVar

from pydantic import AfterValidator, AnyHttpUrl, BaseModel, ConfigDict, Field, ValidationError as SchemaError

from . import client_import, email_check, google_oauth, smart_search
from .client_import import RecordSink
from .email_check import EmailBackend
from .errors import AuthExchangeError, FetchError, SearchError, ValidationError
from .google_oauth import OAuthCredential
from .settings import Settings
from .smart_search import SearchBackend

logger = logging.getLogger(__name__)

INVALID_INPUT = "Invalid input."
SEARCH_FAILED = "An unexpected error occurred."
IMPORT_FAILED = "An unexpected error occurred during import."
AUTHORIZATION_REQUIRED = "Google authorization required."
AUTHORIZATION_FAILED = "Failed to retrieve tokens."
EMAIL_CHECK_FAILED = "Email validation is unavailable right now."

M = TypeVar("M", bound=BaseModel)


class _ActionInput(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlank = Annotated[str, AfterValidator(_not_blank)]


class SmartSearchInput(_ActionInput):
    query: NonBlank


class ImportClientsInput(_ActionInput):
    sheet_url: AnyHttpUrl = Field(alias="sheetUrl")


class ValidateEmailInput(_ActionInput):
    email: NonBlank


class CompleteAuthorizationInput(_ActionInput):
    code: NonBlank


def _parse(model: Type[M], raw: Any) -> Optional[M]:
    try:
        return model.model_validate(raw)
    except SchemaError:
        return None


def _failure(message: str) -> Dict[str, Any]:
    return {"success": False, "error": message}


def smart_search_action(raw: Any, *, backend: SearchBackend) -> Dict[str, Any]:
    parsed = _parse(SmartSearchInput, raw)
    if parsed is None:
        return _failure(INVALID_INPUT)
    try:
        results = smart_search.search(parsed.query, backend=backend)
    except ValidationError:
        return _failure(INVALID_INPUT)
    except SearchError:
        logger.exception("Smart search failed")
        return _failure(SEARCH_FAILED)
    except Exception:
        logger.exception("Smart search failed unexpectedly")
        return _failure(SEARCH_FAILED)
    return {"success": True, "results": results}


def import_clients_action(
    raw: Any,
    credential: Optional[OAuthCredential],
    *,
    settings: Settings,
    sink: Optional[RecordSink] = None,
) -> Dict[str, Any]:
    """Import clients from the sheet in ``raw["sheetUrl"]``.

    Any row-level error fails the whole action even though the other rows were
    imported; ``importedCount`` is only reported when every row went through.
    """

    parsed = _parse(ImportClientsInput, raw)
    if parsed is None:
        return _failure(INVALID_INPUT)
    if credential is None:
        return _failure(AUTHORIZATION_REQUIRED)
    try:
        result = client_import.import_from_sheet(
            str(parsed.sheet_url),
            credential,
            config=settings.oauth_config(),
            range_a1=settings.sheets_range,
            header_rows=settings.sheets_header_rows,
            timeout=settings.sheets_timeout_seconds,
            sink=sink,
        )
    except FetchError as exc:
        logger.exception("Client import fetch failed")
        return _failure(exc.public_message or IMPORT_FAILED)
    except Exception:
        logger.exception("Client import failed")
        return _failure(IMPORT_FAILED)
    if result.errors:
        return _failure(", ".join(result.errors))
    return {"success": True, "importedCount": result.imported_count}


def get_authorization_url(settings: Settings, *, state: Optional[str] = None) -> str:
    return google_oauth.build_authorization_url(settings.oauth_config(), state=state)


def complete_authorization(raw: Any, *, settings: Settings) -> Dict[str, Any]:
    """Exchange the callback's ``code``; the credential goes back to the caller only."""

    parsed = _parse(CompleteAuthorizationInput, raw)
    if parsed is None:
        return _failure(INVALID_INPUT)
    try:
        credential = google_oauth.exchange_code(
            settings.oauth_config(),
            parsed.code,
            timeout=settings.oauth_timeout_seconds,
        )
    except AuthExchangeError:
        logger.exception("Google token exchange failed")
        return _failure(AUTHORIZATION_FAILED)
    except Exception:
        logger.exception("Google token exchange failed unexpectedly")
        return _failure(AUTHORIZATION_FAILED)
    return {"success": True, "credential": credential}


def validate_email_action(raw: Any, *, backend: EmailBackend) -> Dict[str, Any]:
    parsed = _parse(ValidateEmailInput, raw)
    if parsed is None:
        return _failure(INVALID_INPUT)
    try:
        verdict = email_check.validate_email(parsed.email, backend=backend)
    except ValidationError:
        return _failure(INVALID_INPUT)
    except SearchError:
        logger.exception("Email validation failed")
        return _failure(EMAIL_CHECK_FAILED)
    except Exception:
        logger.exception("Email validation failed unexpectedly")
        return _failure(EMAIL_CHECK_FAILED)
    return {"success": True, "isValid": verdict.is_valid, "reason": verdict.reason}
