# src/picsearch_backend/app/services/identity.py
# Maps provider profiles -> local accounts. JIT-provisions on first login.
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from picsearch_backend.app.core.errors import (
    AccountStoreError,
    DuplicateAccountError,
    ProviderProfileError,
)
from picsearch_backend.app.core.trace import auth_trace
from picsearch_backend.app.models import Account, NewAccount, Provider
from picsearch_backend.app.schemas import ProviderProfile
from picsearch_backend.app.services.accounts import AccountStore

logger = logging.getLogger(__name__)


def _dig(raw: Mapping[str, Any], *path: str) -> Optional[str]:
    cur: Any = raw
    for key in path:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    if isinstance(cur, str) and cur.strip():
        return cur.strip()
    return None


@dataclass(frozen=True)
class ProviderRules:
    """
    Per-provider field extraction and fallback policy.

    email_prefix/email_domain build the synthetic address used when the
    provider does not disclose one: "<prefix>_<external id>@<domain>".
    secondary_avatar reads a provider-specific field out of the raw payload.
    """

    provider: Provider
    email_prefix: str
    email_domain: str
    secondary_avatar: Callable[[Mapping[str, Any]], Optional[str]]

    def synthetic_email(self, external_id: str) -> str:
        return f"{self.email_prefix}_{external_id}@{self.email_domain}"

    def new_account(self, external_id: str, profile: ProviderProfile) -> NewAccount:
        email = profile.emails[0] if profile.emails else self.synthetic_email(external_id)
        display_name = profile.display_name or profile.username or external_id
        if profile.photos:
            avatar = profile.photos[0]
        else:
            avatar = self.secondary_avatar(profile.raw) or ""
        return NewAccount(
            provider=self.provider,
            external_id=external_id,
            email=email,
            display_name=display_name,
            avatar_url=avatar,
        )


PROVIDER_RULES: Dict[Provider, ProviderRules] = {
    Provider.GOOGLE: ProviderRules(
        provider=Provider.GOOGLE,
        email_prefix="gg",
        email_domain="google.com",
        secondary_avatar=lambda raw: _dig(raw, "picture"),
    ),
    Provider.FACEBOOK: ProviderRules(
        provider=Provider.FACEBOOK,
        email_prefix="fb",
        email_domain="facebook.com",
        secondary_avatar=lambda raw: _dig(raw, "picture", "data", "url"),
    ),
    Provider.GITHUB: ProviderRules(
        provider=Provider.GITHUB,
        email_prefix="gh",
        email_domain="github.com",
        secondary_avatar=lambda raw: _dig(raw, "avatar_url"),
    ),
}


class IdentityResolver:
    """
    find-or-create: (provider, external id) -> Account.

    Existing accounts come back untouched (no profile refresh). The lookup
    and the insert are not atomic; the store's uniqueness constraint decides
    the winner of a concurrent first login and the loser re-reads it.
    """

    def __init__(self, accounts: AccountStore, rules: Optional[Mapping[Provider, ProviderRules]] = None):
        self.accounts = accounts
        self.rules = dict(rules or PROVIDER_RULES)

    async def resolve(
        self,
        provider: Union[Provider, str],
        profile: Union[ProviderProfile, Mapping[str, Any]],
    ) -> Account:
        account, _created = await self.resolve_with_status(provider, profile)
        return account

    async def resolve_with_status(
        self,
        provider: Union[Provider, str],
        profile: Union[ProviderProfile, Mapping[str, Any]],
    ) -> Tuple[Account, bool]:
        """Same as resolve(); also reports whether the account was just created."""
        prov = provider if isinstance(provider, Provider) else Provider.parse(provider)
        if prov is None:
            raise ProviderProfileError(str(provider), "unsupported provider")
        rules = self.rules[prov]

        prof = ProviderProfile.from_payload(profile)
        external_id = prof.id
        if not external_id:
            raise ProviderProfileError(prov.value)

        try:
            existing = await self.accounts.find_by_external_id(prov, external_id)
            if existing is not None:
                auth_trace("identity.resolve.existing", provider=prov.value, account_id=existing.id)
                return existing, False

            new = rules.new_account(external_id, prof)
            try:
                created = await self.accounts.create(new)
            except DuplicateAccountError:
                # lost a first-login race; the winner's row is the account
                winner = await self.accounts.find_by_external_id(prov, external_id)
                if winner is None:
                    raise
                logger.info("concurrent first login for %s:%s; using existing account", prov.value, external_id)
                return winner, False
        except AccountStoreError:
            logger.error("account store failed for %s:%s", prov.value, external_id, exc_info=True)
            raise

        logger.info("created account %s for %s:%s", created.id, prov.value, external_id)
        auth_trace("identity.resolve.created", provider=prov.value, account_id=created.id)
        return created, True
