# src/picsearch_backend/app/services/searches.py
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime, timezone
from typing import List

from sqlalchemy import desc, func, select

from picsearch_backend.app.core.errors import SearchStoreError
from picsearch_backend.app.db.models import SearchRow
from picsearch_backend.app.db.session import Database
from picsearch_backend.app.models import SearchRecord, TermCount
from picsearch_backend.app.services.accounts import STORE_ERRORS

HISTORY_LIMIT = 50
TOP_LIMIT = 5


class SearchStore(ABC):
    @abstractmethod
    async def record(self, account_id: str, term: str) -> SearchRecord: ...

    @abstractmethod
    async def history(self, account_id: str, limit: int = HISTORY_LIMIT) -> List[SearchRecord]:
        """Newest first."""

    @abstractmethod
    async def top_terms(self, limit: int = TOP_LIMIT) -> List[TermCount]:
        """Most searched terms across all accounts, count descending."""


class MemorySearchStore(SearchStore):
    def __init__(self) -> None:
        self._rows: List[SearchRecord] = []

    async def record(self, account_id: str, term: str) -> SearchRecord:
        rec = SearchRecord(
            id=str(uuid.uuid4()),
            account_id=account_id,
            term=term,
            created_at=datetime.now(timezone.utc),
        )
        self._rows.append(rec)
        return rec

    async def history(self, account_id: str, limit: int = HISTORY_LIMIT) -> List[SearchRecord]:
        mine = [r for r in reversed(self._rows) if r.account_id == account_id]
        return mine[:limit]

    async def top_terms(self, limit: int = TOP_LIMIT) -> List[TermCount]:
        counts = Counter(r.term for r in self._rows)
        return [TermCount(term=t, count=c) for t, c in counts.most_common(limit)]


class SqlSearchStore(SearchStore):
    def __init__(self, database: Database) -> None:
        self.database = database

    async def record(self, account_id: str, term: str) -> SearchRecord:
        row = SearchRow(
            id=str(uuid.uuid4()),
            account_id=account_id,
            term=term,
            created_at=datetime.now(timezone.utc),
        )
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                db.add(row)
                await db.commit()
                return row.to_domain()
        except STORE_ERRORS as ex:
            raise SearchStoreError(f"search insert failed: {ex.__class__.__name__}") from ex

    async def history(self, account_id: str, limit: int = HISTORY_LIMIT) -> List[SearchRecord]:
        stmt = (
            select(SearchRow)
            .where(SearchRow.account_id == account_id)
            .order_by(desc(SearchRow.created_at))
            .limit(limit)
        )
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                result = await db.execute(stmt)
                return [r.to_domain() for r in result.scalars().all()]
        except STORE_ERRORS as ex:
            raise SearchStoreError(f"history query failed: {ex.__class__.__name__}") from ex

    async def top_terms(self, limit: int = TOP_LIMIT) -> List[TermCount]:
        n = func.count(SearchRow.id).label("n")
        stmt = (
            select(SearchRow.term, n)
            .group_by(SearchRow.term)
            .order_by(desc(n), SearchRow.term)
            .limit(limit)
        )
        try:
            maker = await self.database.sessionmaker()
            async with maker() as db:
                result = await db.execute(stmt)
                return [TermCount(term=term, count=int(count)) for term, count in result.all()]
        except STORE_ERRORS as ex:
            raise SearchStoreError(f"top searches query failed: {ex.__class__.__name__}") from ex
