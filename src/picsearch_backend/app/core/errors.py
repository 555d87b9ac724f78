# src/picsearch_backend/app/core/errors.py
from __future__ import annotations

from typing import Optional


class PicsearchError(Exception):
    """Base class for every error raised by this service."""


class ProviderProfileError(PicsearchError):
    """The provider profile carries no usable external id."""

    def __init__(self, provider: str, message: str = "provider profile has no usable id"):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderExchangeError(PicsearchError):
    """Grant exchange or profile fetch against the provider failed."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status


class AccountStoreError(PicsearchError):
    """Account datastore unavailable or rejected the operation."""


class DuplicateAccountError(AccountStoreError):
    """Another account already owns this (provider, external id) pair."""

    def __init__(self, provider: str, external_id: str):
        super().__init__(f"account exists for {provider}:{external_id}")
        self.provider = provider
        self.external_id = external_id


class SessionStoreError(PicsearchError):
    """Session datastore unavailable during create/resolve/revoke."""


class SearchStoreError(PicsearchError):
    """Search history datastore unavailable."""


class ImageSearchError(PicsearchError):
    """Upstream image-search API failed.

    `status` is the upstream HTTP status when the API answered, None when it
    could not be reached at all.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthenticationRequired(PicsearchError):
    """No valid session is attached to the request. Always a 401."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)
        self.message = message
