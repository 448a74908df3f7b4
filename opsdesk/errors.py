# SPDX-License-Identifier: AGPL-3.0-or-later
"""Error kinds raised by the action layer."""

from __future__ import annotations

from typing import Optional


class OpsdeskError(Exception):
    """Base class; ``public_message`` is safe to show to the caller."""

    def __init__(self, message: str, *, public_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.public_message = public_message


class ValidationError(OpsdeskError):
    """Malformed or missing input, detected before any I/O."""


class AuthExchangeError(OpsdeskError):
    """The OAuth authorization code could not be exchanged for tokens."""


class FetchError(OpsdeskError):
    """The spreadsheet could not be read; fatal to the whole import."""

    def __init__(
        self,
        message: str,
        *,
        public_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, public_message=public_message)
        self.status_code = status_code


class RowMappingError(OpsdeskError):
    """A single row failed to map; collected into the import result, never propagated."""


class SearchError(OpsdeskError):
    """The AI capability failed or answered with something unusable."""
