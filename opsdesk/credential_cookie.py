# SPDX-License-Identifier: AGPL-3.0-or-later
"""Seal an OAuth credential into an opaque cookie value.

The browser carries the credential between the OAuth callback and the import
action; the server never stores it.
"""

from __future__ import annotations

import json
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from .google_oauth import OAuthCredential


def new_key() -> bytes:
    return Fernet.generate_key()


def load_key(secret: Optional[str]) -> bytes:
    """Return ``secret`` as a Fernet key, or a fresh key when it is unset.

    Raises:
        ValueError: ``secret`` is not a url-safe base64 encoded 32-byte key.
    """

    if not secret:
        return new_key()
    key = secret.strip().encode("ascii")
    Fernet(key)
    return key


def seal(credential: OAuthCredential, key: bytes) -> str:
    blob = json.dumps(credential.to_dict(), separators=(",", ":")).encode("utf-8")
    return Fernet(key).encrypt(blob).decode("ascii")


def unseal(token: Optional[str], key: bytes, *, ttl: Optional[int] = None) -> Optional[OAuthCredential]:
    """Return the credential in ``token``, or ``None`` if it is missing, tampered or older than ``ttl``.

    A key that is not a valid Fernet key also yields ``None``.
    """

    if not token:
        return None
    try:
        blob = Fernet(key).decrypt(token.encode("ascii"), ttl=ttl)
    except (InvalidToken, ValueError):
        return None
    try:
        return OAuthCredential.from_dict(json.loads(blob.decode("utf-8")))
    except (ValueError, TypeError, AttributeError):
        return None
