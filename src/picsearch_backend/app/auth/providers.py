# src/picsearch_backend/app/auth/providers.py
"""
Identity provider integrations (OAuth2 authorization-code flow).

Each provider is one `OAuth2Provider` configured from `ProviderEndpoints`
data plus a small profile normalizer; there is no per-provider control flow.
A `ProviderRegistry` is built once at startup and handed to the federation
routes through app.state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Protocol
from urllib.parse import urlencode

import httpx

from picsearch_backend.app.core.config import ProviderCredentials, Settings
from picsearch_backend.app.core.errors import ProviderExchangeError
from picsearch_backend.app.core.trace import auth_trace
from picsearch_backend.app.models import Provider
from picsearch_backend.app.schemas import ProviderProfile

logger = logging.getLogger(__name__)


class IdentityProviderClient(Protocol):
    """What the federation flow needs from a provider."""

    provider: Provider

    def build_authorization_redirect(self, state: str) -> str: ...

    async def exchange_grant_for_profile(self, code: str) -> ProviderProfile: ...


# ------------------------
# Profile normalizers: provider JSON -> ProviderProfile
# ------------------------
def _google_profile(user: Dict[str, Any], _extra: List[Any]) -> ProviderProfile:
    return ProviderProfile.from_payload({
        "id": user.get("sub"),
        "displayName": user.get("name"),
        "emails": [user.get("email")],
        "photos": [user.get("picture")],
        "_json": user,
    })


def _facebook_profile(user: Dict[str, Any], _extra: List[Any]) -> ProviderProfile:
    # picture lives at picture.data.url in the raw payload
    return ProviderProfile.from_payload({
        "id": user.get("id"),
        "displayName": user.get("name"),
        "emails": [user.get("email")],
        "_json": user,
    })


def _github_profile(user: Dict[str, Any], extra: List[Any]) -> ProviderProfile:
    emails: List[Any] = []
    if user.get("email"):
        emails.append(user["email"])
    # /user/emails: primary+verified first, then any verified address
    ranked = sorted(
        (e for e in extra if isinstance(e, Mapping) and e.get("verified")),
        key=lambda e: not e.get("primary"),
    )
    for e in ranked:
        if e.get("email") and e["email"] not in emails:
            emails.append(e["email"])
    return ProviderProfile.from_payload({
        "id": user.get("id"),
        "username": user.get("login"),
        "displayName": user.get("name"),
        "emails": emails,
        "_json": user,
    })


@dataclass(frozen=True)
class ProviderEndpoints:
    provider: Provider
    authorize_url: str
    token_url: str
    profile_url: str
    scope: str
    normalize: Callable[[Dict[str, Any], List[Any]], ProviderProfile]
    # GitHub keeps emails behind a second call
    emails_url: Optional[str] = None
    token_method: str = "POST"
    profile_params: Optional[Dict[str, str]] = None


GOOGLE = ProviderEndpoints(
    provider=Provider.GOOGLE,
    authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
    token_url="https://oauth2.googleapis.com/token",
    profile_url="https://www.googleapis.com/oauth2/v3/userinfo",
    scope="profile email",
    normalize=_google_profile,
)

FACEBOOK = ProviderEndpoints(
    provider=Provider.FACEBOOK,
    authorize_url="https://www.facebook.com/v19.0/dialog/oauth",
    token_url="https://graph.facebook.com/v19.0/oauth/access_token",
    profile_url="https://graph.facebook.com/v19.0/me",
    scope="email",
    normalize=_facebook_profile,
    token_method="GET",
    profile_params={"fields": "id,name,email,picture.type(large)"},
)

GITHUB = ProviderEndpoints(
    provider=Provider.GITHUB,
    authorize_url="https://github.com/login/oauth/authorize",
    token_url="https://github.com/login/oauth/access_token",
    profile_url="https://api.github.com/user",
    emails_url="https://api.github.com/user/emails",
    scope="user:email",
    normalize=_github_profile,
)

ENDPOINTS: Dict[Provider, ProviderEndpoints] = {e.provider: e for e in (GOOGLE, FACEBOOK, GITHUB)}


class OAuth2Provider:
    """Authorization-code exchange + profile fetch for one provider."""

    def __init__(
        self,
        endpoints: ProviderEndpoints,
        credentials: ProviderCredentials,
        redirect_uri: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ) -> None:
        self.endpoints = endpoints
        self.provider = endpoints.provider
        self.credentials = credentials
        self.redirect_uri = redirect_uri
        self._client = client
        self._timeout = timeout

    def build_authorization_redirect(self, state: str) -> str:
        params = {
            "client_id": self.credentials.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.endpoints.scope,
            "state": state,
        }
        return f"{self.endpoints.authorize_url}?{urlencode(params)}"

    async def exchange_grant_for_profile(self, code: str) -> ProviderProfile:
        own = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            token = await self._exchange_code(own, code)
            user = await self._get_json(own, self.endpoints.profile_url, token, self.endpoints.profile_params)
            if not isinstance(user, dict):
                raise ProviderExchangeError(self.provider.value, "profile response is not an object")
            extra: List[Any] = []
            if self.endpoints.emails_url:
                extra = await self._optional_list(own, self.endpoints.emails_url, token)
        except httpx.HTTPError as ex:
            raise ProviderExchangeError(self.provider.value, f"http error: {ex.__class__.__name__}") from ex
        finally:
            if self._client is None:
                await own.aclose()

        profile = self.endpoints.normalize(user, extra)
        auth_trace("provider.profile", provider=self.provider.value, has_id=bool(profile.id),
                   emails=len(profile.emails))
        return profile

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
            "redirect_uri": self.redirect_uri,
        }
        headers = {"Accept": "application/json"}
        if self.endpoints.token_method == "GET":
            r = await client.get(self.endpoints.token_url, params=data, headers=headers)
        else:
            r = await client.post(self.endpoints.token_url, data=data, headers=headers)

        if r.status_code != 200:
            # Avoid leaking provider detail; status is enough to diagnose.
            auth_trace("provider.exchange_failed", provider=self.provider.value, status=r.status_code)
            raise ProviderExchangeError(self.provider.value, "token exchange failed", status=r.status_code)
        try:
            body = r.json()
        except ValueError as ex:
            raise ProviderExchangeError(self.provider.value, "token response is not JSON") from ex
        access = body.get("access_token") if isinstance(body, dict) else None
        if not access:
            # GitHub answers 200 {"error": "bad_verification_code"}
            err = body.get("error") if isinstance(body, dict) else None
            raise ProviderExchangeError(self.provider.value, f"no access_token in token response ({err or 'unknown'})")
        return str(access)

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        token: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        r = await client.get(
            url,
            params=params,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        if r.status_code != 200:
            raise ProviderExchangeError(self.provider.value, f"GET {url} failed", status=r.status_code)
        try:
            return r.json()
        except ValueError as ex:
            raise ProviderExchangeError(self.provider.value, f"GET {url} returned non-JSON") from ex

    async def _optional_list(self, client: httpx.AsyncClient, url: str, token: str) -> List[Any]:
        """Secondary profile data: failure leaves the profile usable."""
        try:
            data = await self._get_json(client, url, token)
        except ProviderExchangeError as ex:
            logger.info("%s: optional profile call skipped: %s", self.provider.value, ex)
            return []
        return data if isinstance(data, list) else []


class ProviderRegistry(Mapping[Provider, IdentityProviderClient]):
    """Provider tag -> client. Only configured providers are present."""

    def __init__(self, clients: Optional[Mapping[Provider, IdentityProviderClient]] = None) -> None:
        self._clients: Dict[Provider, IdentityProviderClient] = dict(clients or {})

    def __getitem__(self, key: Provider) -> IdentityProviderClient:
        return self._clients[key]

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._clients)

    def __len__(self) -> int:
        return len(self._clients)

    def register(self, client: IdentityProviderClient) -> None:
        self._clients[client.provider] = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        registry = cls()
        creds = {
            Provider.GOOGLE: settings.google,
            Provider.FACEBOOK: settings.facebook,
            Provider.GITHUB: settings.github,
        }
        for provider, cred in creds.items():
            if cred is None:
                logger.info("%s login disabled (credentials not configured)", provider.value)
                continue
            registry.register(OAuth2Provider(ENDPOINTS[provider], cred, settings.callback_url(provider.value)))
        return registry
