# src/picsearch_backend/app/services/sessions.py
from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from sqlalchemy import delete, or_, update

from picsearch_backend.app.core.errors import AccountStoreError, SessionStoreError
from picsearch_backend.app.core.trace import auth_trace
from picsearch_backend.app.db.models import SessionRow
from picsearch_backend.app.db.session import Database
from picsearch_backend.app.models import Account, Session
from picsearch_backend.app.services.accounts import STORE_ERRORS, AccountStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------
# Stores
# ------------------------
class SessionStore(ABC):
    """Server-side session records. Failures surface as SessionStoreError."""

    @abstractmethod
    async def insert(self, session: Session) -> None: ...

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Session]: ...

    @abstractmethod
    async def mark_revoked(self, session_id: str) -> None:
        """No-op when the session does not exist."""

    @abstractmethod
    async def purge(self, now: datetime) -> int:
        """Delete revoked and expired sessions; returns how many went."""


class MemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def insert(self, session: Session) -> None:
        self._sessions[session.id] = session

    async def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    async def mark_revoked(self, session_id: str) -> None:
        s = self._sessions.get(session_id)
        if s is not None and not s.revoked:
            self._sessions[session_id] = replace(s, revoked=True)

    async def purge(self, now: datetime) -> int:
        dead = [sid for sid, s in self._sessions.items() if not s.is_live(now)]
        for sid in dead:
            del self._sessions[sid]
        return len(dead)


class SqlSessionStore(SessionStore):
    def __init__(self, database: Database) -> None:
        self.database = database

    async def insert(self, session: Session) -> None:
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                db.add(SessionRow(
                    id=session.id,
                    account_id=session.account_id,
                    created_at=session.created_at,
                    expires_at=session.expires_at,
                    revoked=session.revoked,
                ))
                await db.commit()
        except STORE_ERRORS as ex:
            raise SessionStoreError(f"session insert failed: {ex.__class__.__name__}") from ex

    async def get(self, session_id: str) -> Optional[Session]:
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                row = await db.get(SessionRow, session_id)
                return row.to_domain() if row else None
        except STORE_ERRORS as ex:
            raise SessionStoreError(f"session lookup failed: {ex.__class__.__name__}") from ex

    async def mark_revoked(self, session_id: str) -> None:
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                await db.execute(
                    update(SessionRow).where(SessionRow.id == session_id).values(revoked=True)
                )
                await db.commit()
        except STORE_ERRORS as ex:
            raise SessionStoreError(f"session revoke failed: {ex.__class__.__name__}") from ex

    async def purge(self, now: datetime) -> int:
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                result = await db.execute(
                    delete(SessionRow).where(or_(SessionRow.revoked.is_(True), SessionRow.expires_at <= now))
                )
                await db.commit()
                return result.rowcount or 0
        except STORE_ERRORS as ex:
            raise SessionStoreError(f"session purge failed: {ex.__class__.__name__}") from ex


# ------------------------
# Manager
# ------------------------
class SessionManager:
    """
    Creates, reattaches and revokes server-side sessions.

    expires_at is fixed at creation (no sliding renewal). A session id is
    only ever bound to the account it was created for.
    """

    def __init__(
        self,
        store: SessionStore,
        accounts: AccountStore,
        *,
        ttl_seconds: int,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.accounts = accounts
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    async def create(self, account: Account) -> Session:
        """
        Persist a fresh session for `account`. Raises SessionStoreError.

        Each login also drops revoked and expired sessions, so the store
        only holds live ones plus whatever ended since the last login.
        """
        now = self.clock()
        await self.purge(now)
        session = Session(
            id=secrets.token_urlsafe(32),
            account_id=account.id,
            created_at=now,
            expires_at=now + self.ttl,
        )
        await self.store.insert(session)
        auth_trace("session.create", account_id=account.id, expires_at=session.expires_at.isoformat())
        return session

    async def purge(self, now: Optional[datetime] = None) -> int:
        """Best effort: a failed purge is logged and retried on the next login."""
        try:
            removed = await self.store.purge(now or self.clock())
        except SessionStoreError:
            logger.warning("session purge failed", exc_info=True)
            return 0
        if removed:
            auth_trace("session.purge", removed=removed)
        return removed

    async def resolve(self, session_id: Optional[str]) -> Optional[Account]:
        """
        Account for a live session, None otherwise.

        None covers: no id, unknown id, expired, revoked, dangling account,
        and datastore failures (logged) since callers treat all of them as
        anonymous.
        """
        if not session_id:
            return None
        try:
            session = await self.store.get(session_id)
            if session is None:
                auth_trace("session.resolve.unknown")
                return None
            if not session.is_live(self.clock()):
                auth_trace("session.resolve.dead", revoked=session.revoked, expires_at=session.expires_at.isoformat())
                return None
            account = await self.accounts.get(session.account_id)
        except (SessionStoreError, AccountStoreError):
            logger.warning("session resolve failed; treating request as anonymous", exc_info=True)
            return None
        if account is None:
            logger.warning("session %s... points at missing account %s", session_id[:6], session.account_id)
        return account

    async def revoke(self, session_id: Optional[str]) -> None:
        """Idempotent. Raises SessionStoreError when the store is down."""
        if not session_id:
            return
        await self.store.mark_revoked(session_id)
        auth_trace("session.revoke")
