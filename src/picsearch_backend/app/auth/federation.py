# src/picsearch_backend/app/auth/federation.py
"""
Federated login routes, one generic flow for every provider:

    GET /auth/{provider}           INITIATED        -> 302 to provider consent
    (provider consent page)        PENDING_CONSENT
    GET /auth/{provider}/callback  CALLBACK_RECEIVED -> 302 to client app

Every failure after the redirect lands on {CLIENT_URL}/login with no
session created; the browser never sees a raw error page.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from picsearch_backend.app.auth.cookies import STATE_COOKIE_NAME
from picsearch_backend.app.auth.deps import get_services
from picsearch_backend.app.auth.providers import IdentityProviderClient
from picsearch_backend.app.core.errors import (
    AccountStoreError,
    ProviderExchangeError,
    ProviderProfileError,
    SessionStoreError,
)
from picsearch_backend.app.core.trace import auth_trace
from picsearch_backend.app.models import Provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _provider_or_404(provider: str) -> Provider:
    prov = Provider.parse(provider)
    if prov is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"unknown provider: {provider}")
    return prov


def _client_for(request: Request, prov: Provider) -> Optional[IdentityProviderClient]:
    """None when the provider is known but its credentials are not configured."""
    client = get_services(request).providers.get(prov)
    if client is None:
        logger.warning("%s login requested but the provider is not configured", prov.value)
    return client


def _fail(request: Request, provider: str, reason: str) -> RedirectResponse:
    services = get_services(request)
    auth_trace("flow.failed", provider=provider, reason=reason)
    resp = RedirectResponse(services.settings.login_url, status_code=status.HTTP_302_FOUND)
    services.cookies.clear_state(resp)
    return resp


# ------------------------
# INITIATED
# ------------------------
@router.get("/{provider}")
async def begin_login(request: Request, provider: str):
    """Redirect the browser to the provider's consent screen."""
    prov = _provider_or_404(provider)
    client = _client_for(request, prov)
    if client is None:
        return _fail(request, prov.value, "not_configured")
    services = get_services(request)

    state = services.cookies.new_state()
    resp = RedirectResponse(client.build_authorization_redirect(state), status_code=status.HTTP_302_FOUND)
    services.cookies.set_state(resp, prov.value, state)

    auth_trace("flow.initiated", provider=prov.value)
    return resp


# ------------------------
# CALLBACK_RECEIVED
# ------------------------
@router.get("/{provider}/callback")
async def finish_login(
    request: Request,
    provider: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    prov = _provider_or_404(provider)
    name = prov.value
    client = _client_for(request, prov)
    if client is None:
        return _fail(request, name, "not_configured")
    services = get_services(request)

    if error:
        # user pressed "cancel" or the provider refused
        logger.info("%s login denied by provider: %s", name, error)
        return _fail(request, name, f"provider_error:{error}")
    if not code:
        return _fail(request, name, "missing_code")
    if not services.cookies.check_state(request.cookies.get(STATE_COOKIE_NAME), name, state):
        logger.warning("%s callback with missing or mismatched state", name)
        return _fail(request, name, "state_mismatch")

    try:
        profile = await client.exchange_grant_for_profile(code)
        account, created = await services.resolver.resolve_with_status(prov, profile)
        session = await services.sessions.create(account)
    except ProviderExchangeError as ex:
        logger.warning("%s grant exchange failed: %s (status=%s)", name, ex, ex.status)
        return _fail(request, name, "exchange_failed")
    except ProviderProfileError as ex:
        logger.warning("%s profile unusable: %s", name, ex)
        return _fail(request, name, "profile_unusable")
    except AccountStoreError:
        # already logged with provider/external id by the resolver
        return _fail(request, name, "account_store")
    except SessionStoreError:
        logger.error("%s session create failed", name, exc_info=True)
        return _fail(request, name, "session_store")
    except Exception:
        # the browser is mid-redirect; it gets the login page, never a 500 body
        logger.error("%s callback failed unexpectedly", name, exc_info=True)
        return _fail(request, name, "internal")

    logger.info("%s login ok account=%s new=%s", name, account.id, created)
    auth_trace("flow.callback.ok", provider=name, account_id=account.id, created=created)

    resp = RedirectResponse(services.settings.home_url, status_code=status.HTTP_302_FOUND)
    services.cookies.clear_state(resp)
    services.cookies.set_session(resp, session.id)
    return resp
