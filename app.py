# SPDX-License-Identifier: AGPL-3.0-or-later
"""opsdesk server entry point."""

from __future__ import annotations

import sys

import uvicorn

from opsdesk.api.http import APP as app
from opsdesk.settings import Settings
from opsdesk.version import VERSION


def main() -> int:
    settings = Settings()
    print(f"opsdesk version {VERSION}")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")
    return 0


__all__ = ["app", "main"]


if __name__ == "__main__":
    sys.exit(main())
