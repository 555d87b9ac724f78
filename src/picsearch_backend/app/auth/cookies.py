# src/picsearch_backend/app/auth/cookies.py
from __future__ import annotations

import secrets
from typing import Any, Dict, Optional

from fastapi import Response
from itsdangerous import BadSignature, URLSafeSerializer, URLSafeTimedSerializer

from picsearch_backend.app.core.config import Settings

SESSION_SALT = "picsearch-session-v1"
STATE_SALT = "picsearch-oauth-state-v1"
STATE_COOKIE_NAME = "picsearch_oauth_state"
STATE_MAX_AGE = 600  # 10m to finish consent


class SessionCookie:
    """
    Signed cookie carrying only the server-side session id.

    The signature keeps forged ids from ever reaching the session store;
    validity and revocation live server-side.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._session = URLSafeSerializer(settings.session_secret, salt=SESSION_SALT)
        self._state = URLSafeTimedSerializer(settings.session_secret, salt=STATE_SALT)

    @property
    def name(self) -> str:
        return self.settings.session_cookie_name

    def _attrs(self) -> Dict[str, Any]:
        return {
            "httponly": True,
            "secure": self.settings.cookie_secure,
            "samesite": self.settings.cookie_samesite,
            "path": "/",
        }

    # -------------------------
    # session id
    # -------------------------
    def session_id(self, raw: Optional[str]) -> Optional[str]:
        """Unsigned session id, or None for a missing/tampered cookie."""
        if not raw:
            return None
        try:
            value = self._session.loads(raw)
        except BadSignature:
            return None
        return value if isinstance(value, str) and value else None

    def set_session(self, response: Response, session_id: str) -> None:
        response.set_cookie(
            self.name,
            self._session.dumps(session_id),
            max_age=self.settings.session_ttl_seconds,
            **self._attrs(),
        )

    def clear_session(self, response: Response) -> None:
        response.delete_cookie(self.name, **self._attrs())

    # -------------------------
    # OAuth state (anti-forgery for the callback)
    # -------------------------
    @staticmethod
    def new_state() -> str:
        return secrets.token_urlsafe(24)

    def set_state(self, response: Response, provider: str, state: str) -> None:
        response.set_cookie(
            STATE_COOKIE_NAME,
            self._state.dumps({"p": provider, "s": state}),
            max_age=STATE_MAX_AGE,
            **self._attrs(),
        )

    def check_state(self, raw: Optional[str], provider: str, state: Optional[str]) -> bool:
        if not raw or not state:
            return False
        try:
            data = self._state.loads(raw, max_age=STATE_MAX_AGE)
        except BadSignature:  # also covers SignatureExpired
            return False
        if not isinstance(data, dict):
            return False
        return data.get("p") == provider and secrets.compare_digest(str(data.get("s", "")), state)

    def clear_state(self, response: Response) -> None:
        response.delete_cookie(STATE_COOKIE_NAME, **self._attrs())
