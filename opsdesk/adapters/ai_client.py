# SPDX-License-Identifier: AGPL-3.0-or-later
"""OpenAI-compatible chat client that answers with a JSON object."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict

from openai import OpenAI

from ..errors import SearchError

logger = logging.getLogger(__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


def build_openai_client(*, api_key: str, base_url: str, timeout: float) -> OpenAI:
    return OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)


def extract_json_object(text: str) -> str:
    """Return the first JSON object in a model reply, fenced or bare."""

    match = _JSON_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()

    stripped = text.strip()
    if stripped.startswith("{") and stripped.endswith("}"):
        return stripped

    start = stripped.find("{")
    end = stripped.rfind("}")
    if 0 <= start < end:
        return stripped[start : end + 1]
    return stripped


class ChatJSONBackend:
    """Sends one system/user exchange and parses the reply as JSON.

    A new SDK client is built per call so no connection state outlives the
    request that needed it.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        model: str,
        timeout: float,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def ask_json(self, system: str, user: str) -> Dict[str, Any]:
        if not self.is_configured():
            raise SearchError("AI provider API key is not configured.")
        client = build_openai_client(api_key=self.api_key or "", base_url=self.base_url, timeout=self.timeout)
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=0.2,
                response_format={"type": "json_object"},
            )
        finally:
            client.close()

        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not content:
            raise SearchError("AI provider returned an empty reply.")
        try:
            data = json.loads(extract_json_object(content))
        except json.JSONDecodeError as exc:
            raise SearchError(f"AI provider returned invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SearchError("AI provider reply is not a JSON object.")
        return data
