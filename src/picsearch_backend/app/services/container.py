# src/picsearch_backend/app/services/container.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from picsearch_backend.app.auth.cookies import SessionCookie
from picsearch_backend.app.auth.providers import ProviderRegistry
from picsearch_backend.app.core.config import Settings
from picsearch_backend.app.db.session import Database
from picsearch_backend.app.services.accounts import AccountStore, MemoryAccountStore, SqlAccountStore
from picsearch_backend.app.services.identity import IdentityResolver
from picsearch_backend.app.services.image_search import UnsplashClient
from picsearch_backend.app.services.searches import MemorySearchStore, SearchStore, SqlSearchStore
from picsearch_backend.app.services.sessions import (
    MemorySessionStore,
    SessionManager,
    SessionStore,
    SqlSessionStore,
)

logger = logging.getLogger(__name__)


@dataclass
class AppServices:
    """Everything a request handler needs, built once per process."""

    settings: Settings
    cookies: SessionCookie
    providers: ProviderRegistry
    accounts: AccountStore
    sessions: SessionManager
    resolver: IdentityResolver
    searches: SearchStore
    images: UnsplashClient
    database: Optional[Database] = None

    async def close(self) -> None:
        if self.database is not None:
            await self.database.dispose()


def build_services(
    settings: Settings,
    *,
    providers: Optional[ProviderRegistry] = None,
    images: Optional[UnsplashClient] = None,
) -> AppServices:
    database: Optional[Database] = None
    accounts: AccountStore
    session_store: SessionStore
    searches: SearchStore

    if settings.database_url:
        database = Database(settings.database_url, echo=settings.db_echo)
        accounts = SqlAccountStore(database)
        session_store = SqlSessionStore(database)
        searches = SqlSearchStore(database)
    else:
        logger.warning("DATABASE_URL not set; using in-memory stores (data is lost on restart)")
        accounts = MemoryAccountStore()
        session_store = MemorySessionStore()
        searches = MemorySearchStore()

    return AppServices(
        settings=settings,
        cookies=SessionCookie(settings),
        providers=providers if providers is not None else ProviderRegistry.from_settings(settings),
        accounts=accounts,
        sessions=SessionManager(session_store, accounts, ttl_seconds=settings.session_ttl_seconds),
        resolver=IdentityResolver(accounts),
        searches=searches,
        images=images or UnsplashClient(settings.unsplash_access_key),
        database=database,
    )
