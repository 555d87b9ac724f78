# src/picsearch_backend/app/services/accounts.py
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from picsearch_backend.app.core.errors import AccountStoreError, DuplicateAccountError
from picsearch_backend.app.db.models import AccountRow
from picsearch_backend.app.db.session import Database
from picsearch_backend.app.models import Account, NewAccount, Provider

logger = logging.getLogger(__name__)

# connection refused / DNS failures escape SQLAlchemy as OSError while the engine opens
STORE_ERRORS = (SQLAlchemyError, OSError)

_EXTERNAL_ID_COLUMNS = {
    Provider.GOOGLE: AccountRow.google_id,
    Provider.FACEBOOK: AccountRow.facebook_id,
    Provider.GITHUB: AccountRow.github_id,
}


class AccountStore(ABC):
    """
    Persistence for Account records.

    Implementations must make (provider, external id) unique and report a
    collision on create as DuplicateAccountError; any other datastore
    failure surfaces as AccountStoreError.
    """

    @abstractmethod
    async def get(self, account_id: str) -> Optional[Account]: ...

    @abstractmethod
    async def find_by_external_id(self, provider: Provider, external_id: str) -> Optional[Account]: ...

    @abstractmethod
    async def create(self, new: NewAccount) -> Account: ...


class MemoryAccountStore(AccountStore):
    """Dict-backed store for dev and tests. Good for a single process only."""

    def __init__(self) -> None:
        self._by_id: Dict[str, Account] = {}
        self._by_external: Dict[Tuple[Provider, str], str] = {}

    def __len__(self) -> int:
        return len(self._by_id)

    async def get(self, account_id: str) -> Optional[Account]:
        return self._by_id.get(account_id)

    async def find_by_external_id(self, provider: Provider, external_id: str) -> Optional[Account]:
        account_id = self._by_external.get((provider, external_id))
        return self._by_id.get(account_id) if account_id else None

    async def create(self, new: NewAccount) -> Account:
        key = (new.provider, new.external_id)
        if key in self._by_external:
            raise DuplicateAccountError(new.provider.value, new.external_id)
        account = Account(
            id=str(uuid.uuid4()),
            email=new.email,
            display_name=new.display_name,
            provider=new.provider,
            avatar_url=new.avatar_url,
            created_at=datetime.now(timezone.utc),
            **{f"{new.provider.value}_id": new.external_id},
        )
        self._by_id[account.id] = account
        self._by_external[key] = account.id
        return account


class SqlAccountStore(AccountStore):
    """SQLAlchemy (async) store; uniqueness comes from the accounts table constraints."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def get(self, account_id: str) -> Optional[Account]:
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                row = await db.get(AccountRow, account_id)
                return row.to_domain() if row else None
        except STORE_ERRORS as ex:
            raise AccountStoreError(f"account lookup failed: {ex.__class__.__name__}") from ex

    async def find_by_external_id(self, provider: Provider, external_id: str) -> Optional[Account]:
        column = _EXTERNAL_ID_COLUMNS[provider]
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                result = await db.execute(select(AccountRow).where(column == external_id).limit(1))
                row = result.scalar_one_or_none()
                return row.to_domain() if row else None
        except STORE_ERRORS as ex:
            raise AccountStoreError(f"account lookup failed: {ex.__class__.__name__}") from ex

    async def create(self, new: NewAccount) -> Account:
        row = AccountRow(
            id=str(uuid.uuid4()),
            email=new.email,
            display_name=new.display_name,
            avatar_url=new.avatar_url,
            provider=new.provider.value,
            created_at=datetime.now(timezone.utc),
        )
        setattr(row, f"{new.provider.value}_id", new.external_id)
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                db.add(row)
                await db.commit()
                await db.refresh(row)
                return row.to_domain()
        except IntegrityError as ex:
            raise DuplicateAccountError(new.provider.value, new.external_id) from ex
        except STORE_ERRORS as ex:
            raise AccountStoreError(f"account create failed: {ex.__class__.__name__}") from ex
