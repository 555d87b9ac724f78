# tests/conftest.py
from __future__ import annotations

import urllib.parse as urlparse
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Union

import pytest
from fastapi.testclient import TestClient

from picsearch_backend.app.auth.providers import ProviderRegistry
from picsearch_backend.app.core.config import Settings
from picsearch_backend.app.core.errors import ProviderExchangeError
from picsearch_backend.app.main import create_app
from picsearch_backend.app.models import Provider
from picsearch_backend.app.schemas import ProviderProfile
from picsearch_backend.app.services.container import AppServices, build_services
from picsearch_backend.app.services.image_search import UnsplashClient

CLIENT_URL = "http://localhost:5173"
API_BASE_URL = "http://testserver"
SECRET = "unit-test-secret"


class FakeProvider:
    """
    Stand-in for a real OAuth2 provider: the "grant" is looked up in a
    dict of code -> profile, or raises like a failed exchange.
    """

    def __init__(self, provider: Provider) -> None:
        self.provider = provider
        self.grants: Dict[str, Union[ProviderProfile, Mapping[str, Any]]] = {}
        self.exchanged: list[str] = []

    def build_authorization_redirect(self, state: str) -> str:
        q = urlparse.urlencode({"state": state, "scope": "fake"})
        return f"https://idp.example/{self.provider.value}/authorize?{q}"

    async def exchange_grant_for_profile(self, code: str) -> ProviderProfile:
        self.exchanged.append(code)
        if code not in self.grants:
            raise ProviderExchangeError(self.provider.value, "bad code", status=400)
        return ProviderProfile.from_payload(self.grants[code])


def make_settings(**overrides: Any) -> Settings:
    base = Settings(
        client_url=CLIENT_URL,
        api_base_url=API_BASE_URL,
        session_secret=SECRET,
        session_cookie_name="picsearch_session",
        session_ttl_seconds=24 * 60 * 60,
        cookie_mode="same_origin",
        cookie_secure=False,
        database_url=None,
        db_echo=False,
        google=None,
        facebook=None,
        github=None,
        unsplash_access_key="unsplash-test-key",
    )
    return replace(base, **overrides)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_providers() -> Dict[Provider, FakeProvider]:
    return {p: FakeProvider(p) for p in Provider}


@pytest.fixture
def services(settings: Settings, fake_providers: Dict[Provider, FakeProvider]) -> AppServices:
    return build_services(
        settings,
        providers=ProviderRegistry(fake_providers),
        images=UnsplashClient(settings.unsplash_access_key),
    )


@pytest.fixture
def app_instance(services: AppServices):
    return create_app(services=services)


@pytest.fixture
def client(app_instance) -> TestClient:
    # Redirects point at the provider or the client app; never follow them.
    return TestClient(app_instance, follow_redirects=False)


def _start_login(client: TestClient, provider: str) -> str:
    r = client.get(f"/auth/{provider}")
    assert r.status_code == 302, r.text
    qs = dict(urlparse.parse_qsl(urlparse.urlparse(r.headers["location"]).query))
    return qs["state"]


@pytest.fixture
def start_login():
    """GET /auth/{provider}; returns the state the provider would echo back."""
    return _start_login


@pytest.fixture
def login(client: TestClient, fake_providers: Dict[Provider, FakeProvider]):
    """
    Run the whole federation flow for `profile` and return the callback
    response. The client keeps the session cookie afterwards.
    """

    def _login(provider: str, profile: Optional[Mapping[str, Any]] = None, code: str = "good-code"):
        if profile is not None:
            fake_providers[Provider(provider)].grants[code] = profile
        state = _start_login(client, provider)
        return client.get(f"/auth/{provider}/callback", params={"code": code, "state": state})

    return _login
