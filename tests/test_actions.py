# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlsplit

import pytest

from conftest import make_credential
from opsdesk import actions
from opsdesk.email_check import EmailVerdict
from opsdesk.errors import AuthExchangeError, FetchError, SearchError

SHEET_URL = "https://docs.google.com/spreadsheets/d/1AbC/edit#gid=0"


class RecordingSearch:
    def __init__(self, reply="", exc=None):
        self.reply = reply
        self.exc = exc
        self.queries = []

    def search(self, query):
        self.queries.append(query)
        if self.exc is not None:
            raise self.exc
        return self.reply


class RecordingEmail:
    def __init__(self, verdict):
        self.verdict = verdict
        self.emails = []

    def check(self, email):
        self.emails.append(email)
        return self.verdict


@pytest.fixture()
def no_sheet_access(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("sheet should not be read")

    monkeypatch.setattr("opsdesk.client_import.import_from_sheet", fail)


def _rows(monkeypatch, rows):
    seen = []

    def fake_read(sheet_url, range_a1, *, context):
        seen.append((sheet_url, range_a1, context.session.credentials.token))
        return rows

    monkeypatch.setattr("opsdesk.adapters.sheets_adapter.read_sheet_rows", fake_read)
    return seen


@pytest.mark.parametrize("raw", [None, [], {}, "find", {"query": 5}, {"query": ""}, {"query": "   "}])
def test_smart_search_rejects_bad_input(raw):
    backend = RecordingSearch("x")
    assert actions.smart_search_action(raw, backend=backend) == {"success": False, "error": "Invalid input."}
    assert backend.queries == []


def test_smart_search_success():
    backend = RecordingSearch("Loft project is due Friday.")
    result = actions.smart_search_action({"query": "what is due"}, backend=backend)
    assert result == {"success": True, "results": "Loft project is due Friday."}


@pytest.mark.parametrize("exc", [SearchError("upstream 500"), RuntimeError("secret stack detail")])
def test_smart_search_failure_hides_details(exc):
    result = actions.smart_search_action({"query": "q"}, backend=RecordingSearch(exc=exc))
    assert result == {"success": False, "error": actions.SEARCH_FAILED}


@pytest.mark.parametrize(
    "raw",
    [None, [], {}, {"sheetUrl": "not a url"}, {"sheetUrl": 42}, {"sheetUrl": ""}, {"url": SHEET_URL}],
)
def test_import_rejects_bad_input(raw, settings, credential, no_sheet_access):
    result = actions.import_clients_action(raw, credential, settings=settings)
    assert result == {"success": False, "error": "Invalid input."}


def test_import_requires_authorization(settings, no_sheet_access):
    result = actions.import_clients_action({"sheetUrl": SHEET_URL}, None, settings=settings)
    assert result == {"success": False, "error": "Google authorization required."}


def test_import_full_success(monkeypatch, settings, credential):
    seen = _rows(monkeypatch, [["Loft", "Eve"], ["Kitchen", "Dana", "B-12", "1 High St"]])

    result = actions.import_clients_action({"sheetUrl": SHEET_URL}, credential, settings=settings)

    assert result == {"success": True, "importedCount": 2}
    ((url, range_a1, token),) = seen
    assert url.startswith("https://docs.google.com/spreadsheets/d/1AbC/")
    assert (range_a1, token) == ("Sheet1!A1:D", "ya29.test-token")


def test_import_partial_success_is_reported_as_failure(monkeypatch, settings, credential):
    _rows(monkeypatch, [["Alice", "a@x.com"], ["", ""], ["Bob", "b@x.com"]])
    saved = []

    result = actions.import_clients_action({"sheetUrl": SHEET_URL}, credential, settings=settings, sink=saved.append)

    assert result == {"success": False, "error": "row 2: missing required field"}
    assert len(saved) == 2


def test_import_joins_row_errors(monkeypatch, settings, credential):
    _rows(monkeypatch, [["", ""], ["Loft", "Eve"], None])
    result = actions.import_clients_action({"sheetUrl": SHEET_URL}, credential, settings=settings)
    assert result["error"] == "row 1: missing required field, row 3: malformed row"


def test_import_fetch_error_uses_public_message(monkeypatch, settings, credential):
    def fake_read(sheet_url, range_a1, *, context):
        raise FetchError("403 from API", public_message="Google Sheet not found. Please check the URL.")

    monkeypatch.setattr("opsdesk.adapters.sheets_adapter.read_sheet_rows", fake_read)
    result = actions.import_clients_action({"sheetUrl": SHEET_URL}, credential, settings=settings)
    assert result == {"success": False, "error": "Google Sheet not found. Please check the URL."}


def test_import_unexpected_error_is_generic(monkeypatch, settings, credential):
    def fake_read(sheet_url, range_a1, *, context):
        raise RuntimeError("token ya29.leak")

    monkeypatch.setattr("opsdesk.adapters.sheets_adapter.read_sheet_rows", fake_read)
    result = actions.import_clients_action({"sheetUrl": SHEET_URL}, credential, settings=settings)
    assert result == {"success": False, "error": actions.IMPORT_FAILED}


def test_authorization_url_uses_settings(settings):
    query = parse_qs(urlsplit(actions.get_authorization_url(settings, state="s1")).query)
    assert query["client_id"] == [settings.google_client_id]
    assert query["access_type"] == ["offline"]
    assert query["state"] == ["s1"]


def test_complete_authorization(monkeypatch, settings):
    credential = make_credential("fresh")
    calls = []

    def fake_exchange(config, code, *, timeout):
        calls.append((config.client_id, code, timeout))
        return credential

    monkeypatch.setattr("opsdesk.google_oauth.exchange_code", fake_exchange)

    assert actions.complete_authorization({"code": "4/0x"}, settings=settings) == {
        "success": True,
        "credential": credential,
    }
    assert calls == [(settings.google_client_id, "4/0x", settings.oauth_timeout_seconds)]


def test_complete_authorization_failure(monkeypatch, settings):
    def fake_exchange(config, code, *, timeout):
        raise AuthExchangeError("invalid_grant")

    monkeypatch.setattr("opsdesk.google_oauth.exchange_code", fake_exchange)
    result = actions.complete_authorization({"code": "used"}, settings=settings)
    assert result == {"success": False, "error": "Failed to retrieve tokens."}
    assert actions.complete_authorization({}, settings=settings) == {"success": False, "error": "Invalid input."}


def test_validate_email_action():
    backend = RecordingEmail(EmailVerdict(True, "Common provider."))
    assert actions.validate_email_action({"email": "a@gmail.com"}, backend=backend) == {
        "success": True,
        "isValid": True,
        "reason": "Common provider.",
    }
    assert actions.validate_email_action({"email": 7}, backend=backend) == {"success": False, "error": "Invalid input."}
    assert backend.emails == ["a@gmail.com"]


def test_import_fetch_error_is_logged_with_traceback(monkeypatch, settings, credential, caplog):
    def fake_read(sheet_url, range_a1, *, context):
        raise FetchError("Sheets API error 403", public_message="Permission denied.", status_code=403)

    monkeypatch.setattr("opsdesk.adapters.sheets_adapter.read_sheet_rows", fake_read)
    with caplog.at_level(logging.ERROR, logger="opsdesk.actions"):
        actions.import_clients_action({"sheetUrl": SHEET_URL}, credential, settings=settings)

    records = [r for r in caplog.records if r.name == "opsdesk.actions"]
    assert records and records[0].exc_info is not None
    assert isinstance(records[0].exc_info[1], FetchError)
