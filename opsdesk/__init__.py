# SPDX-License-Identifier: AGPL-3.0-or-later
"""opsdesk: server-side actions for the operations dashboard."""

from .version import VERSION

__all__ = ["VERSION"]
