# src/picsearch_backend/app/models.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Provider(str, Enum):
    GOOGLE = "google"
    FACEBOOK = "facebook"
    GITHUB = "github"

    @classmethod
    def parse(cls, value: str) -> Optional["Provider"]:
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Account:
    """
    Local identity record.

    Exactly one of the *_id fields is normally set: the one for `provider`,
    the provider used at creation time. Accounts are never refreshed from
    later logins.
    """

    id: str
    email: str
    display_name: str
    provider: Provider
    avatar_url: str = ""
    google_id: Optional[str] = None
    facebook_id: Optional[str] = None
    github_id: Optional[str] = None
    created_at: Optional[datetime] = None

    def external_id(self, provider: Provider) -> Optional[str]:
        return getattr(self, f"{provider.value}_id")


@dataclass(frozen=True)
class NewAccount:
    """Fields for an account that does not exist yet (id assigned by the store)."""

    provider: Provider
    external_id: str
    email: str
    display_name: str
    avatar_url: str = ""


@dataclass(frozen=True)
class Session:
    id: str
    account_id: str
    created_at: datetime
    expires_at: datetime
    revoked: bool = False

    def is_live(self, now: datetime) -> bool:
        return not self.revoked and now < self.expires_at


@dataclass(frozen=True)
class SearchRecord:
    id: str
    account_id: str
    term: str
    created_at: datetime


@dataclass(frozen=True)
class TermCount:
    term: str
    count: int
