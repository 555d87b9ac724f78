# src/picsearch_backend/app/db/models.py

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)

from picsearch_backend.app.models import Account, Provider, SearchRecord, Session

from .session import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we write is UTC
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


class AccountRow(Base):
    """
    One local account per (provider, external id).

    Each external id column is unique on its own; NULLs do not collide, so
    an account only occupies the slot of the provider that created it.
    """

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_uuid)

    google_id = Column(String(255), nullable=True)
    facebook_id = Column(String(255), nullable=True)
    github_id = Column(String(255), nullable=True)

    email = Column(String(320), nullable=False)
    display_name = Column(String(255), nullable=False)
    avatar_url = Column(String(2048), nullable=False, default="")
    # provider used at creation; never updated
    provider = Column(String(16), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("google_id", name="uq_accounts_google_id"),
        UniqueConstraint("facebook_id", name="uq_accounts_facebook_id"),
        UniqueConstraint("github_id", name="uq_accounts_github_id"),
    )

    def to_domain(self) -> Account:
        return Account(
            id=self.id,
            email=self.email,
            display_name=self.display_name,
            provider=Provider(self.provider),
            avatar_url=self.avatar_url or "",
            google_id=self.google_id,
            facebook_id=self.facebook_id,
            github_id=self.github_id,
            created_at=_aware(self.created_at) if self.created_at else None,
        )


class SessionRow(Base):
    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)

    def to_domain(self) -> Session:
        return Session(
            id=self.id,
            account_id=self.account_id,
            created_at=_aware(self.created_at),
            expires_at=_aware(self.expires_at),
            revoked=bool(self.revoked),
        )


class SearchRow(Base):
    __tablename__ = "searches"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=False)
    term = Column(String(512), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("ix_searches_account_created", "account_id", "created_at"),
        Index("ix_searches_term", "term"),
    )

    def to_domain(self) -> SearchRecord:
        return SearchRecord(
            id=self.id,
            account_id=self.account_id,
            term=self.term,
            created_at=_aware(self.created_at),
        )
