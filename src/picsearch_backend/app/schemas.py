# src/picsearch_backend/app/schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from .models import Account


def _text(value: Any) -> Optional[str]:
    """str/int -> stripped string, anything else (or blank) -> None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        s = str(value).strip()
        return s or None
    return None


def _values(items: Any) -> List[str]:
    """
    Accept ["a", ...] or [{"value": "a"}, ...] (the shape passport-style
    profiles use for emails/photos). Unusable entries are dropped.
    """
    if isinstance(items, (str, dict)):
        items = [items]
    if not isinstance(items, (list, tuple)):
        return []
    out: List[str] = []
    for it in items:
        if isinstance(it, Mapping):
            it = it.get("value")
        s = _text(it)
        if s:
            out.append(s)
    return out


class ProviderProfile(BaseModel):
    """
    Provider-neutral view of what an identity provider disclosed.

    Only `id` is required for login; everything else is optional and may be
    missing depending on the provider and the user's privacy settings.
    `raw` keeps the provider's own payload for secondary fields.
    """

    id: Optional[str] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    emails: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> "ProviderProfile":
        """Lenient constructor: never raises on odd field types."""
        if isinstance(data, ProviderProfile):
            return data
        if not isinstance(data, Mapping):
            return cls()
        raw = data.get("_json", data.get("raw"))
        return cls(
            id=_text(data.get("id")),
            username=_text(data.get("username")),
            display_name=_text(data.get("display_name", data.get("displayName"))),
            emails=_values(data.get("emails", data.get("email"))),
            photos=_values(data.get("photos")),
            raw=dict(raw) if isinstance(raw, Mapping) else {},
        )


# -------------------------
# API bodies
# -------------------------
class UserOut(BaseModel):
    id: str
    name: str
    email: str
    avatar: str
    provider: str

    @classmethod
    def from_account(cls, account: Account) -> "UserOut":
        return cls(
            id=account.id,
            name=account.display_name,
            email=account.email,
            avatar=account.avatar_url,
            provider=account.provider.value,
        )


class UserEnvelope(BaseModel):
    user: UserOut


class SearchRequest(BaseModel):
    term: str = ""
    page: int = 1


class ImageOut(BaseModel):
    id: str
    url: str
    thumb: str
    alt: str
    author: str
    authorUrl: str


class SearchResponse(BaseModel):
    term: str
    total: int
    totalPages: int
    currentPage: int
    images: List[ImageOut]
