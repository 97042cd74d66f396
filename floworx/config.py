"""Centralized configuration for the FloWorx backend.

Module-level constants hold the defaults (with environment variable
overrides).  ``Settings`` is the explicit configuration struct built once at
process start by ``create_app()`` and handed to the components that need it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

# --- App ---
APP_NAME: str = "FloWorx API"
APP_VERSION: str = "1.0.0"

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("FLOWORX_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("FLOWORX_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("FLOWORX_DB_CONNECT_TIMEOUT", "30.0"))
DB_TEMP_CONN_MAX: int = int(os.getenv("FLOWORX_DB_TEMP_CONN_MAX", "10"))
DB_RETRY_MAX: int = int(os.getenv("FLOWORX_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("FLOWORX_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("FLOWORX_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("FLOWORX_DB_RETRY_JITTER", "0.1"))

# --- Client config ---
CONFIG_INITIAL_VERSION: int = 1
CLIENT_ID_MAX_LENGTH: int = 128
SIGNATURE_MAX_LENGTH: int = 2000

# --- Locked AI defaults (never client-writable) ---
AI_MODEL: str = os.getenv("FLOWORX_AI_MODEL", "gpt-4o-mini")
AI_TEMPERATURE: float = float(os.getenv("FLOWORX_AI_TEMPERATURE", "0.2"))
AI_MAX_TOKENS: int = int(os.getenv("FLOWORX_AI_MAX_TOKENS", "800"))

# --- Mailbox ---
PROVISION_MAX_ITEMS: int = 50
PROVISION_MAX_PATH_DEPTH: int = 5
PROVISION_MAX_SEGMENT_LENGTH: int = 100

# --- Security ---
CSRF_COOKIE_NAME: str = "fx_csrf"
CSRF_HEADER_NAME: str = "X-CSRF-Token"
TOKEN_CACHE_MAX_SIZE: int = 1000
TOKEN_CACHE_TTL_SECONDS: int = 600

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "workflows" / "templates"


@dataclass(frozen=True)
class AISettings:
    """Server-held AI parameters that overwrite any client-submitted values."""

    model: str = AI_MODEL
    temperature: float = AI_TEMPERATURE
    max_tokens: int = AI_MAX_TOKENS


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, built once and passed explicitly."""

    env: str = "development"
    google_oauth_client_id: str | None = None
    csrf_cookie_name: str = CSRF_COOKIE_NAME
    csrf_header_name: str = CSRF_HEADER_NAME
    templates_dir: Path = DEFAULT_TEMPLATES_DIR
    ai: AISettings = field(default_factory=AISettings)

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``FLOWORX_*`` environment variables."""
        env = os.getenv("FLOWORX_ENV", "development")

        templates_dir = os.getenv("FLOWORX_TEMPLATES_DIR")

        return cls(
            env=env,
            google_oauth_client_id=os.getenv("GOOGLE_OAUTH_CLIENT_ID") or None,
            templates_dir=Path(templates_dir) if templates_dir else DEFAULT_TEMPLATES_DIR,
            ai=AISettings(
                model=os.getenv("FLOWORX_AI_MODEL", AI_MODEL),
                temperature=float(os.getenv("FLOWORX_AI_TEMPERATURE", str(AI_TEMPERATURE))),
                max_tokens=int(os.getenv("FLOWORX_AI_MAX_TOKENS", str(AI_MAX_TOKENS))),
            ),
        )
