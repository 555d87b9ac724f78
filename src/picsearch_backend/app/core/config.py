# src/picsearch_backend/app/core/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

logger = logging.getLogger(__name__)

CookieMode = Literal["same_origin", "cross_origin"]

DEFAULT_SESSION_TTL = 24 * 60 * 60      # 24h
MAX_SESSION_TTL     = 7 * 24 * 60 * 60  # 7d
MIN_SESSION_TTL     = 60


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name, default) or "").strip()


def _env_opt(name: str) -> Optional[str]:
    return _env(name) or None


def _env_bool(name: str, default: bool = False) -> bool:
    val = _env(name).lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


@dataclass(frozen=True)
class ProviderCredentials:
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class Settings:
    # Where the browser lands after login/logout
    client_url: str
    # Public URL of this API; callback URLs are built from it
    api_base_url: str

    # Session cookie
    session_secret: str
    session_cookie_name: str
    session_ttl_seconds: int
    cookie_mode: CookieMode
    cookie_secure: bool

    # Storage (None => in-memory stores)
    database_url: Optional[str]
    db_echo: bool

    # Providers (None => provider not registered)
    google: Optional[ProviderCredentials]
    facebook: Optional[ProviderCredentials]
    github: Optional[ProviderCredentials]

    # Image search
    unsplash_access_key: Optional[str]

    # Dev only: put internal error detail into 500 bodies
    expose_errors: bool = False

    @property
    def cookie_samesite(self) -> str:
        """`none` when client and API live on different origins, else `lax`."""
        return "none" if self.cookie_mode == "cross_origin" else "lax"

    @property
    def login_url(self) -> str:
        return f"{self.client_url}/login"

    @property
    def home_url(self) -> str:
        return f"{self.client_url}/"

    def callback_url(self, provider: str) -> str:
        return f"{self.api_base_url}/auth/{provider}/callback"


def _credentials(id_var: str, secret_var: str) -> Optional[ProviderCredentials]:
    client_id = _env(id_var)
    client_secret = _env(secret_var)
    if not client_id or not client_secret:
        return None
    return ProviderCredentials(client_id=client_id, client_secret=client_secret)


def _session_ttl() -> int:
    raw = _env("SESSION_TTL_SECONDS", str(DEFAULT_SESSION_TTL)) or str(DEFAULT_SESSION_TTL)
    try:
        ttl = int(float(raw))
    except ValueError:
        logger.warning("SESSION_TTL_SECONDS=%r is not a number; using %s", raw, DEFAULT_SESSION_TTL)
        return DEFAULT_SESSION_TTL
    if ttl > MAX_SESSION_TTL:
        logger.warning("SESSION_TTL_SECONDS=%s exceeds 7 days; clamped", ttl)
        return MAX_SESSION_TTL
    return max(ttl, MIN_SESSION_TTL)


def _cookie_mode() -> CookieMode:
    mode = _env("COOKIE_MODE", "same_origin").lower().replace("-", "_")
    if mode not in ("same_origin", "cross_origin"):
        raise ValueError(f"COOKIE_MODE must be same_origin or cross_origin, got {mode!r}")
    return mode  # type: ignore[return-value]


def load_settings_from_env() -> Settings:
    """
    Build Settings from environment variables (call load_dotenv() first).

    cross_origin deployments always get Secure cookies because browsers drop
    SameSite=None cookies without it. same_origin defaults to Secure only when
    API_BASE_URL is https, overridable with COOKIE_SECURE.
    """
    api_base_url = _env("API_BASE_URL", "http://localhost:5000").rstrip("/")
    mode = _cookie_mode()
    if mode == "cross_origin":
        secure = True
    else:
        secure = _env_bool("COOKIE_SECURE", default=api_base_url.startswith("https://"))

    secret = _env("SESSION_SECRET")
    if not secret:
        logger.warning("SESSION_SECRET not set; using an insecure development secret")
        secret = "dev-session-secret-do-not-use-in-prod"

    return Settings(
        client_url=_env("CLIENT_URL", "http://localhost:5173").rstrip("/"),
        api_base_url=api_base_url,
        session_secret=secret,
        session_cookie_name=_env("SESSION_COOKIE_NAME", "picsearch_session"),
        session_ttl_seconds=_session_ttl(),
        cookie_mode=mode,
        cookie_secure=secure,
        database_url=_env_opt("DATABASE_URL"),
        db_echo=_env_bool("DB_ECHO"),
        google=_credentials("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET"),
        facebook=_credentials("FACEBOOK_APP_ID", "FACEBOOK_APP_SECRET"),
        github=_credentials("GITHUB_CLIENT_ID", "GITHUB_CLIENT_SECRET"),
        unsplash_access_key=_env_opt("UNSPLASH_ACCESS_KEY"),
        expose_errors=_env_bool("EXPOSE_ERRORS"),
    )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Process-wide settings, read once."""
    return load_settings_from_env()
