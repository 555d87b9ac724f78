# src/picsearch_backend/app/core/trace.py
from __future__ import annotations
import logging
import os
import time
from datetime import datetime
from typing import Any, Mapping

from .logging import setup_logging

setup_logging()

_log = logging.getLogger("picsearch.auth")

# never printed, even with tracing on
_REDACT = frozenset({"code", "state", "access_token", "session_id", "cookie"})


def _enabled() -> bool:
    # read per call so tests and ops can flip it without a restart
    return (os.getenv("AUTH_TRACE", "")).lower() in ("1", "true", "yes", "on")


def _value(key: str, v: Any) -> str:
    if key in _REDACT:
        return "***"
    if isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, bool):
        return "1" if v else "0"
    return str(v)


def _fmt_kv(d: Mapping[str, Any]) -> str:
    return " ".join(f"{k}={_value(k, d[k])}" for k in d)


def auth_trace(event: str, **kv: Any) -> None:
    """
    One-line login/session trace, emitted only when AUTH_TRACE is on:

      [auth] flow.callback.ok ts=1717000000 provider=github account_id=... created=1
    """
    if not _enabled():
        return
    _log.info("[auth] %s %s", event, _fmt_kv({"ts": int(time.time()), **kv}))
