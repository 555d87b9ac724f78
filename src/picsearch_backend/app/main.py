# src/picsearch_backend/app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load .env before any module reads environment variables
load_dotenv()

from picsearch_backend import __version__
from picsearch_backend.app.core.logging import setup_logging
setup_logging()

from picsearch_backend.app.api.routes.history import router as history_router
from picsearch_backend.app.api.routes.search import router as search_router
from picsearch_backend.app.auth.federation import router as federation_router
from picsearch_backend.app.auth.providers import ProviderRegistry
from picsearch_backend.app.auth.routes import router as session_router
from picsearch_backend.app.core.config import Settings, load_settings
from picsearch_backend.app.core.errors import AuthenticationRequired
from picsearch_backend.app.services.container import AppServices, build_services
from picsearch_backend.app.services.image_search import UnsplashClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    services: Optional[AppServices] = None,
    providers: Optional[ProviderRegistry] = None,
    images: Optional[UnsplashClient] = None,
) -> FastAPI:
    """
    Build the API. Tests pass their own settings/providers/services;
    the module-level `app` below uses the environment.
    """
    settings = settings or (services.settings if services else load_settings())
    services = services or build_services(settings, providers=providers, images=images)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "picsearch starting: providers=%s cookie_mode=%s ttl=%ss store=%s",
            ",".join(p.value for p in services.providers) or "<none>",
            settings.cookie_mode,
            settings.session_ttl_seconds,
            "sql" if services.database else "memory",
        )
        try:
            yield
        finally:
            await services.close()

    app = FastAPI(title="picsearch API", version=__version__, lifespan=lifespan)
    app.state.services = services

    # Browser client (Vite dev server by default) calls with credentials
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    # ------------------------
    # Error envelopes: {"error": ...}
    # ------------------------
    @app.exception_handler(AuthenticationRequired)
    async def _auth_required(_request: Request, exc: AuthenticationRequired):
        return JSONResponse({"error": exc.message}, status_code=401)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _bad_request(_request: Request, exc: RequestValidationError):
        fields = {str(err.get("loc", ())[-1]) for err in exc.errors() if err.get("loc")}
        message = "Invalid page number" if "page" in fields else "Invalid request"
        return JSONResponse({"error": message}, status_code=400)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        body = {"error": "Internal server error"}
        if settings.expose_errors:
            body["message"] = str(exc)
        return JSONResponse(body, status_code=500)

    # Health check (open)
    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    # /auth/user + /auth/logout must win over /auth/{provider}
    app.include_router(session_router)
    app.include_router(federation_router)
    app.include_router(search_router)
    app.include_router(history_router)

    return app


app = create_app()
