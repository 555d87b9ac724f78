# tests/auth/test_providers.py
import re
import urllib.parse as urlparse

import pytest

from picsearch_backend.app.auth.providers import (
    ENDPOINTS,
    OAuth2Provider,
    ProviderRegistry,
)
from picsearch_backend.app.core.config import ProviderCredentials
from picsearch_backend.app.core.errors import ProviderExchangeError
from picsearch_backend.app.models import Provider

CREDS = ProviderCredentials(client_id="cid", client_secret="csecret")
REDIRECT = "http://testserver/auth/{}/callback"


def _client(provider: Provider) -> OAuth2Provider:
    return OAuth2Provider(ENDPOINTS[provider], CREDS, REDIRECT.format(provider.value))


@pytest.mark.parametrize(
    "provider,host,scope",
    [
        (Provider.GOOGLE, "accounts.google.com", "profile email"),
        (Provider.FACEBOOK, "www.facebook.com", "email"),
        (Provider.GITHUB, "github.com", "user:email"),
    ],
)
def test_authorization_redirect(provider, host, scope):
    url = _client(provider).build_authorization_redirect("st4te")
    parts = urlparse.urlparse(url)
    qs = dict(urlparse.parse_qsl(parts.query))

    assert parts.scheme == "https"
    assert parts.netloc == host
    assert qs == {
        "client_id": "cid",
        "redirect_uri": f"http://testserver/auth/{provider.value}/callback",
        "response_type": "code",
        "scope": scope,
        "state": "st4te",
    }


@pytest.mark.asyncio
async def test_google_exchange_maps_userinfo(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://oauth2.googleapis.com/token",
        json={"access_token": "ya29.tok", "token_type": "Bearer", "expires_in": 3599},
    )
    httpx_mock.add_response(
        method="GET",
        url="https://www.googleapis.com/oauth2/v3/userinfo",
        json={"sub": "g1", "name": "Ann", "email": "ann@x.io", "picture": "https://img/ann.png"},
    )

    profile = await _client(Provider.GOOGLE).exchange_grant_for_profile("auth-code")

    assert profile.id == "g1"
    assert profile.display_name == "Ann"
    assert profile.emails == ["ann@x.io"]
    assert profile.photos == ["https://img/ann.png"]

    token_req, userinfo_req = httpx_mock.get_requests()
    form = dict(urlparse.parse_qsl(token_req.content.decode()))
    assert form["code"] == "auth-code"
    assert form["grant_type"] == "authorization_code"
    assert form["redirect_uri"] == "http://testserver/auth/google/callback"
    assert userinfo_req.headers["Authorization"] == "Bearer ya29.tok"


@pytest.mark.asyncio
async def test_github_exchange_collects_verified_emails(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://github.com/login/oauth/access_token",
        json={"access_token": "gho_tok", "scope": "user:email"},
    )
    httpx_mock.add_response(
        method="GET",
        url="https://api.github.com/user",
        json={"id": 4242, "login": "octo", "name": None, "email": None,
              "avatar_url": "https://avatars/octo.png"},
    )
    httpx_mock.add_response(
        method="GET",
        url="https://api.github.com/user/emails",
        json=[
            {"email": "unverified@x.io", "primary": False, "verified": False},
            {"email": "alt@x.io", "primary": False, "verified": True},
            {"email": "octo@x.io", "primary": True, "verified": True},
        ],
    )

    profile = await _client(Provider.GITHUB).exchange_grant_for_profile("c0de")

    assert profile.id == "4242"
    assert profile.username == "octo"
    assert profile.display_name is None
    assert profile.emails == ["octo@x.io", "alt@x.io"]
    assert profile.raw["avatar_url"] == "https://avatars/octo.png"


@pytest.mark.asyncio
async def test_github_emails_failure_keeps_profile(httpx_mock):
    httpx_mock.add_response(
        method="POST", url="https://github.com/login/oauth/access_token", json={"access_token": "t"}
    )
    httpx_mock.add_response(method="GET", url="https://api.github.com/user", json={"id": 1, "login": "bob"})
    httpx_mock.add_response(method="GET", url="https://api.github.com/user/emails", status_code=403)

    profile = await _client(Provider.GITHUB).exchange_grant_for_profile("c0de")
    assert profile.id == "1"
    assert profile.emails == []


@pytest.mark.asyncio
async def test_facebook_exchange_uses_graph_fields(httpx_mock):
    httpx_mock.add_response(
        method="GET",
        url=re.compile(r"https://graph\.facebook\.com/v19\.0/oauth/access_token\?.*"),
        json={"access_token": "EAAB"},
    )
    httpx_mock.add_response(
        method="GET",
        url=re.compile(r"https://graph\.facebook\.com/v19\.0/me\?.*"),
        json={"id": "f1", "name": "Fay", "picture": {"data": {"url": "https://fb/pic.jpg"}}},
    )

    profile = await _client(Provider.FACEBOOK).exchange_grant_for_profile("fbcode")

    assert profile.id == "f1"
    assert profile.emails == []
    assert profile.raw["picture"]["data"]["url"] == "https://fb/pic.jpg"
    me_req = httpx_mock.get_requests()[-1]
    assert me_req.url.params["fields"] == "id,name,email,picture.type(large)"


@pytest.mark.asyncio
async def test_token_endpoint_rejection_raises(httpx_mock):
    httpx_mock.add_response(
        method="POST", url="https://oauth2.googleapis.com/token", status_code=400, json={"error": "invalid_grant"}
    )
    with pytest.raises(ProviderExchangeError) as ei:
        await _client(Provider.GOOGLE).exchange_grant_for_profile("used-code")
    assert ei.value.status == 400


@pytest.mark.asyncio
async def test_github_error_body_with_200_raises(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://github.com/login/oauth/access_token",
        json={"error": "bad_verification_code"},
    )
    with pytest.raises(ProviderExchangeError):
        await _client(Provider.GITHUB).exchange_grant_for_profile("stale")


@pytest.mark.asyncio
async def test_profile_endpoint_failure_raises(httpx_mock):
    httpx_mock.add_response(method="POST", url="https://oauth2.googleapis.com/token", json={"access_token": "t"})
    httpx_mock.add_response(method="GET", url="https://www.googleapis.com/oauth2/v3/userinfo", status_code=401)
    with pytest.raises(ProviderExchangeError):
        await _client(Provider.GOOGLE).exchange_grant_for_profile("code")


def test_registry_only_holds_configured_providers(settings_factory):
    settings = settings_factory(github=CREDS, google=CREDS)
    registry = ProviderRegistry.from_settings(settings)

    assert set(registry) == {Provider.GOOGLE, Provider.GITHUB}
    assert registry.get(Provider.FACEBOOK) is None
    assert registry[Provider.GITHUB].redirect_uri == "http://testserver/auth/github/callback"
