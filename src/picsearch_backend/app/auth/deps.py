# src/picsearch_backend/app/auth/deps.py
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from fastapi import Request

from picsearch_backend.app.core.errors import AuthenticationRequired
from picsearch_backend.app.core.trace import auth_trace
from picsearch_backend.app.models import Account

if TYPE_CHECKING:
    from picsearch_backend.app.services.container import AppServices


def get_services(request: Request) -> "AppServices":
    return request.app.state.services


async def current_account_or_none(request: Request) -> Optional[Account]:
    """
    Resolve the session cookie to an Account, or None for anonymous.
    The result is cached on request.state for the rest of the request.
    """
    if hasattr(request.state, "account"):
        return request.state.account

    services = get_services(request)
    session_id = services.cookies.session_id(request.cookies.get(services.cookies.name))
    account = await services.sessions.resolve(session_id)
    request.state.account = account
    request.state.session_id = session_id if account is not None else None
    return account


async def require_account(request: Request) -> Account:
    """
    Authorization gate for every route that needs a logged-in user.

    Missing cookie, bad signature, unknown/expired/revoked session all end
    the same way: AuthenticationRequired -> 401 {"error": ...}.
    """
    account = await current_account_or_none(request)
    if account is None:
        auth_trace("gate.reject", path=request.url.path)
        raise AuthenticationRequired()
    return account
