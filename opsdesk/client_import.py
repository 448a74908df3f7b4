# SPDX-License-Identifier: AGPL-3.0-or-later
"""Import clients from a Google Sheet.

Fetching is all-or-nothing: if the sheet cannot be read, :class:`FetchError`
propagates and no result is produced. Once rows are in hand every row is mapped
on its own; a bad row becomes an entry in :attr:`ImportResult.errors` and the
loop carries on. Errors keep the order of their rows and name the spreadsheet
row number, so ``imported_count + len(errors)`` always equals the number of
data rows read. Configured header rows and a title row naming the mapped
columns are skipped first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from . import google_oauth
from .adapters import sheets_adapter
from .email_check import is_email_format
from .errors import RowMappingError
from .google_oauth import OAuthConfig, OAuthCredential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientRecord:
    project_name: str = ""
    client_name: str = ""
    boq_number: str = ""
    address: str = ""
    email: str = ""


_RECORD_FIELDS = frozenset(f.name for f in fields(ClientRecord))


@dataclass(frozen=True)
class FieldSpec:
    """One spreadsheet column, in position order.

    ``title`` is the column heading as it appears in a sheet's title row.
    """

    name: str
    required: bool = True
    kind: str = "text"
    title: str = ""

    def __post_init__(self) -> None:
        if self.name not in _RECORD_FIELDS:
            raise ValueError(f"Unknown client field: {self.name}")
        if self.kind not in ("text", "email"):
            raise ValueError(f"Unknown field kind: {self.kind}")


def _cell_text(row: Sequence[object], index: int) -> str:
    raw = row[index] if index < len(row) else None
    return "" if raw is None else str(raw).strip()


@dataclass(frozen=True)
class RowMapping:
    columns: Tuple[FieldSpec, ...]

    def is_title_row(self, row: object) -> bool:
        """True when ``row`` holds the column titles (case-insensitive)."""

        if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
            return False
        titled = [(index, column) for index, column in enumerate(self.columns) if column.title]
        if not titled:
            return False
        for index, column in titled:
            text = _cell_text(row, index)
            if not text and not column.required:
                continue
            if text.casefold() != column.title.casefold():
                return False
        return True

    def map_row(self, row: object) -> ClientRecord:
        if isinstance(row, (str, bytes)) or not isinstance(row, Sequence):
            raise RowMappingError("malformed row")
        values = {}
        for index, column in enumerate(self.columns):
            text = _cell_text(row, index)
            if not text:
                if column.required:
                    raise RowMappingError("missing required field")
                continue
            if column.kind == "email" and not is_email_format(text):
                raise RowMappingError(f"invalid email address in {column.name}")
            values[column.name] = text
        return ClientRecord(**values)


CLIENT_MAPPING = RowMapping(
    columns=(
        FieldSpec("project_name", title="Project Name"),
        FieldSpec("client_name", title="Client Name"),
        FieldSpec("boq_number", required=False, title="BOQ Number"),
        FieldSpec("address", required=False, title="Address"),
    )
)


@dataclass
class ImportResult:
    imported_count: int = 0
    errors: List[str] = field(default_factory=list)


RecordSink = Callable[[ClientRecord], None]


def map_rows(
    rows: Iterable[object],
    mapping: RowMapping = CLIENT_MAPPING,
    *,
    first_row_number: int = 1,
    sink: Optional[RecordSink] = None,
) -> ImportResult:
    """Map every row independently and tally the outcome.

    ``sink`` receives each mapped record; if it raises, that row counts as
    failed.
    """

    result = ImportResult()
    for offset, row in enumerate(rows):
        row_number = first_row_number + offset
        try:
            record = mapping.map_row(row)
        except RowMappingError as exc:
            result.errors.append(f"row {row_number}: {exc}")
            continue
        if sink is not None:
            try:
                sink(record)
            except Exception:
                logger.exception("Failed to save client from row %d", row_number)
                result.errors.append(f"row {row_number}: could not be saved")
                continue
        result.imported_count += 1
    return result


def import_from_sheet(
    sheet_url: str,
    credential: OAuthCredential,
    *,
    config: OAuthConfig,
    range_a1: str = "Sheet1!A1:D",
    header_rows: int = 0,
    timeout: float = 30.0,
    mapping: RowMapping = CLIENT_MAPPING,
    sink: Optional[RecordSink] = None,
) -> ImportResult:
    """Read ``sheet_url`` with ``credential`` and map its rows to clients.

    Raises:
        FetchError: The sheet could not be read.
    """

    client = google_oauth.authenticated_client(config, credential)
    context = sheets_adapter.SheetsRequestContext(session=client, timeout=timeout)
    try:
        rows = sheets_adapter.read_sheet_rows(sheet_url, range_a1, context=context)
    finally:
        client.close()

    skip = header_rows
    if len(rows) > skip and mapping.is_title_row(rows[skip]):
        skip += 1
    result = map_rows(
        rows[skip:],
        mapping,
        first_row_number=skip + 1,
        sink=sink,
    )
    logger.info(
        "Client import from %s: %d imported, %d failed",
        sheet_url,
        result.imported_count,
        len(result.errors),
    )
    return result
