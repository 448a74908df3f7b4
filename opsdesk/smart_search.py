# SPDX-License-Identifier: AGPL-3.0-or-later
"""Free-text search relayed to the AI capability."""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import BaseModel, ValidationError as SchemaError

from .adapters.ai_client import ChatJSONBackend
from .errors import SearchError, ValidationError

logger = logging.getLogger(__name__)

SEARCH_SYSTEM_PROMPT = (
    "You are the search assistant of an operations dashboard for a fabrication and "
    "installation business. Interpret the user's query and answer with the relevant "
    "information, concisely. Reply with a JSON object of the form "
    '{"results": "<your answer as plain text>"} and nothing else.'
)


class SearchBackend(Protocol):
    def search(self, query: str) -> str:
        ...


class _SearchReply(BaseModel):
    results: str


class AISearchBackend:
    def __init__(self, chat: ChatJSONBackend) -> None:
        self._chat = chat

    def search(self, query: str) -> str:
        data = self._chat.ask_json(SEARCH_SYSTEM_PROMPT, f"User query: {query}")
        try:
            return _SearchReply.model_validate(data).results
        except SchemaError as exc:
            raise SearchError(f"Search reply is missing 'results': {exc.error_count()} problem(s)") from exc


def search(query: str, *, backend: SearchBackend) -> str:
    """Forward ``query`` and return the capability's text unmodified.

    Raises:
        ValidationError: ``query`` is not a non-blank string.
        SearchError: Anything went wrong on the capability side.
    """

    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Search query must be a non-empty string.")
    try:
        results = backend.search(query)
    except SearchError:
        raise
    except Exception as exc:
        raise SearchError(f"Search backend failed: {type(exc).__name__}: {exc}") from exc
    if not isinstance(results, str):
        raise SearchError("Search backend returned a non-text result.")
    return results
