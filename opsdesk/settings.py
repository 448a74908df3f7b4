# SPDX-License-Identifier: AGPL-3.0-or-later
from __future__ import annotations

from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from platformdirs import PlatformDirs

from .credential_cookie import load_key
from .google_oauth import OAuthConfig
from .session_gate import GatePolicy


class Settings(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8765
    data_dir: str | None = None
    log_level: str = "INFO"

    # Session gate
    session_cookie_name: str = "session"
    same_site: str = "lax"
    secure_cookie: bool = False
    login_path: str = "/login"
    home_path: str = "/"
    public_paths: List[str] = Field(default_factory=lambda: ["/login", "/signup", "/verify-email"])

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://127.0.0.1:8765/api/auth/google/callback"
    oauth_timeout_seconds: float = Field(default=10.0, gt=0)
    post_auth_path: str = "/clients"
    oauth_state_cookie_name: str = "google_oauth_state"
    oauth_state_ttl_seconds: int = Field(default=600, gt=0)

    # Google Sheets
    sheets_range: str = "Sheet1!A1:D"
    sheets_header_rows: int = Field(default=0, ge=0)
    sheets_timeout_seconds: float = Field(default=30.0, gt=0)

    # Sealed credential cookie; a fresh key is generated per process when unset.
    credential_cookie_name: str = "google_credential"
    credential_secret: str | None = None

    # AI search (OpenAI compatible)
    ai_api_key: str | None = None
    ai_base_url: str = "https://api.openai.com/v1"
    ai_model: str = "gpt-4o-mini"
    ai_timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = {
        "env_prefix": "OPSDESK_",
        "env_file": ".env",
        "extra": "ignore",
    }

    @field_validator("credential_secret")
    @classmethod
    def check_credential_secret(cls, value: str | None) -> str | None:
        if value:
            load_key(value)
        return value

    def dirs(self) -> PlatformDirs:
        return PlatformDirs(appname="opsdesk", appauthor="opsdesk", ensure_exists=True)

    def resolve_data_dir(self) -> Path:
        base = Path(self.data_dir) if self.data_dir else Path(self.dirs().user_data_path)
        base.mkdir(parents=True, exist_ok=True)
        return base

    def oauth_config(self) -> OAuthConfig:
        return OAuthConfig(
            client_id=self.google_client_id,
            client_secret=self.google_client_secret,
            redirect_uri=self.google_redirect_uri,
        )

    def gate_policy(self) -> GatePolicy:
        return GatePolicy(
            public_paths=frozenset(self.public_paths),
            login_path=self.login_path,
            home_path=self.home_path,
        )
