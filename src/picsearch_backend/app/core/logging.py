# src/picsearch_backend/app/core/logging.py
from __future__ import annotations
import logging
import os

# third-party loggers that are too chatty at INFO
_NOISY = ("httpx", "httpcore", "sqlalchemy.engine", "uvicorn.access")


def _level_from_env(var: str, default: str = "INFO") -> int:
    name = (os.getenv(var, default) or "").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.getLevelName(default)


def setup_logging() -> None:
    """
    Configure root logging once; later calls only re-apply LOG_LEVEL.

    httpx would otherwise log every provider call at INFO, token endpoint
    URLs included, so noisy libraries are held at WARNING unless LOG_LEVEL
    is stricter. DB_ECHO still works because it sets the engine's own logger.
    """
    root = logging.getLogger()
    level = _level_from_env("LOG_LEVEL")
    root.setLevel(level)
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if root.handlers:
        # pytest / uvicorn already installed handlers
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    ))
    root.addHandler(handler)
