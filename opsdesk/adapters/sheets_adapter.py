# SPDX-License-Identifier: AGPL-3.0-or-later
"""Thin Google Sheets REST client helpers used by the client import."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, MutableMapping, Optional, Sequence
from urllib.parse import quote

from google.auth.exceptions import GoogleAuthError
from requests import RequestException, Response, Session

from ..errors import FetchError

logger = logging.getLogger(__name__)

SHEETS_ENDPOINT = "https://sheets.googleapis.com/v4/spreadsheets"

_SHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")

_STATUS_MESSAGES = {
    401: "Google authorization expired. Please sign in with Google again.",
    403: "Permission denied. Make sure the account has access to the Google Sheet.",
    404: "Google Sheet not found. Please check the URL.",
}
GENERIC_FETCH_MESSAGE = "An error occurred while fetching data from Google Sheets."


@dataclass
class SheetsRequestContext:
    """Configuration for issuing authorised Sheets API requests.

    ``session`` is the caller's own authorized session; nothing here is shared
    between requests.
    """

    session: Session
    timeout: float = 30


def extract_spreadsheet_id(url: str) -> Optional[str]:
    match = _SHEET_ID_RE.search(url or "")
    return match.group(1) if match else None


def _perform_get(
    url: str,
    *,
    params: Optional[MutableMapping[str, Any]] = None,
    context: SheetsRequestContext,
) -> Dict[str, Any]:
    try:
        response: Response = context.session.get(
            url,
            params=params,
            timeout=context.timeout,
        )
    except (RequestException, GoogleAuthError) as exc:
        raise FetchError(f"Sheets request failed: {exc}", public_message=GENERIC_FETCH_MESSAGE) from exc
    if response.status_code >= 400:
        detail = response.text.strip() or response.reason
        raise FetchError(
            f"Sheets API error {response.status_code}: {detail}",
            public_message=_STATUS_MESSAGES.get(response.status_code, GENERIC_FETCH_MESSAGE),
            status_code=response.status_code,
        )
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as exc:
        raise FetchError(f"Invalid JSON from Sheets API: {exc}", public_message=GENERIC_FETCH_MESSAGE) from exc


def read_values(
    spreadsheet_id: str,
    range_a1: str,
    *,
    context: SheetsRequestContext,
) -> List[List[str]]:
    """Read ``range_a1`` rows from ``spreadsheet_id`` using the Values API.

    Cells are rendered as formatted strings; empty cells become ``""``. Rows
    keep their sheet order.
    """

    if not spreadsheet_id:
        raise ValueError("Spreadsheet ID is required")
    if not range_a1:
        raise ValueError("Range (A1 notation) is required")

    start_time = time.monotonic()
    params: Dict[str, Any] = {
        "majorDimension": "ROWS",
        "valueRenderOption": "FORMATTED_VALUE",
    }
    encoded_range = quote(range_a1, safe="!:'(),$&=*-_.~")
    payload = _perform_get(
        f"{SHEETS_ENDPOINT}/{spreadsheet_id}/values/{encoded_range}",
        params=params,
        context=context,
    )

    values_raw = payload.get("values")
    values: List[List[str]] = []
    if isinstance(values_raw, Sequence) and not isinstance(values_raw, str):
        for row in values_raw:
            if isinstance(row, Sequence) and not isinstance(row, str):
                values.append(["" if cell is None else str(cell) for cell in row])
            else:
                values.append([str(row)])

    logger.info(
        "Sheets rows read: %d from %s in %.2fs",
        len(values),
        spreadsheet_id,
        time.monotonic() - start_time,
    )
    return values


def read_sheet_rows(
    sheet_url: str,
    range_a1: str,
    *,
    context: SheetsRequestContext,
) -> List[List[str]]:
    """Resolve ``sheet_url`` to a spreadsheet id and read its rows."""

    spreadsheet_id = extract_spreadsheet_id(sheet_url)
    if not spreadsheet_id:
        raise FetchError(
            f"Not a Google Sheets URL: {sheet_url}",
            public_message="Invalid Google Sheet URL.",
        )
    return read_values(spreadsheet_id, range_a1, context=context)
