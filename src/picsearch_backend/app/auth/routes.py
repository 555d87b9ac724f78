# src/picsearch_backend/app/auth/routes.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from picsearch_backend.app.auth.deps import get_services, require_account
from picsearch_backend.app.core.errors import SessionStoreError
from picsearch_backend.app.models import Account
from picsearch_backend.app.schemas import UserEnvelope, UserOut

logger = logging.getLogger(__name__)

# Registered BEFORE the federation router so /auth/user is not read as a provider.
router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/user", response_model=UserEnvelope)
async def get_user(account: Account = Depends(require_account)) -> UserEnvelope:
    """Who is logged in on this browser."""
    return UserEnvelope(user=UserOut.from_account(account))


@router.post("/logout")
async def logout(request: Request):
    """
    Revoke the server-side session and clear the cookie.
    Logging out without a session, or twice, still succeeds.
    """
    services = get_services(request)
    session_id = services.cookies.session_id(request.cookies.get(services.cookies.name))
    try:
        await services.sessions.revoke(session_id)
    except SessionStoreError:
        logger.error("logout: session revoke failed", exc_info=True)
        return JSONResponse({"error": "Logout failed"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    resp = JSONResponse({"message": "Logged out successfully"})
    services.cookies.clear_session(resp)
    return resp
