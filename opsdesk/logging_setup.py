# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_REDACTIONS = [
    (re.compile(r"(?i)bearer\s+[A-Za-z0-9._~+/=-]+"), "Bearer ***"),
    (re.compile(r"(?i)\b(access_token|refresh_token|id_token|client_secret|code)=[^&\s]+"), r"\1=***"),
    (
        re.compile(r"(?i)([\"'])(access_token|refresh_token|id_token|client_secret)\1\s*:\s*([\"'])[^\"']*\3"),
        r'"\2": "***"',
    ),
]


def redact(text: str) -> str:
    for rx, replacement in _REDACTIONS:
        text = rx.sub(replacement, text)
    return text


class RedactingFilter(logging.Filter):
    """Mask OAuth tokens and secrets before a record is written."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True


class RedactingFormatter(logging.Formatter):
    """Apply :func:`redact` to the rendered line, traceback and stack included."""

    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


def setup_logging(log_path: Path, level: str = "INFO") -> logging.Logger:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger("opsdesk")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        formatter = RedactingFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        handler.setFormatter(formatter)
        handler.addFilter(RedactingFilter())
        logger.addHandler(handler)
    return logger
