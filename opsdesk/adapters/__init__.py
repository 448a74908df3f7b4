# SPDX-License-Identifier: AGPL-3.0-or-later
"""Thin clients for the external services the action layer talks to."""
