"""Identity resolution for the current client session.

A client is either anonymous, identified by a random id persisted through a
key-value port, or authenticated, identified by the principal's uid and a
profile record fetched (or lazily created) from the profile store.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Collection
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from retrolog.core.security import AuthorizationPolicy
from retrolog.core.settings import settings
from retrolog.db.time import now_ms
from retrolog.schemas.user import Principal, UserProfile
from retrolog.services.errors import StoreError
from retrolog.services.rate_limit import RateLimiter
from retrolog.services.store import DocumentStore

# Configure logger for this module
logger = logging.getLogger(__name__)

ANON_ID_KEY = "anon_log_user_id"
LAST_READ_KEY = "anon_log_last_read"

SHORT_ID_EDGE = 4


class KeyValueStore(Protocol):
    """Durable client-local storage for small string values."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryKeyValueStore:
    """Dictionary-backed key-value store for embedded use and tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class PrincipalSource(Protocol):
    """Authentication collaborator reporting the logged-in principal."""

    def current_principal(self) -> Principal | None:
        ...

    def on_change(self, callback: Callable[[Principal | None], None]) -> Callable[[], None]:
        ...


class StaticPrincipalSource:
    """Principal source holding a principal set by the host application."""

    def __init__(self, principal: Principal | None = None) -> None:
        self._principal = principal
        self._callbacks: list[Callable[[Principal | None], None]] = []

    def current_principal(self) -> Principal | None:
        return self._principal

    def set_principal(self, principal: Principal | None) -> None:
        """Replace the principal (login or logout) and notify listeners."""
        self._principal = principal
        for callback in list(self._callbacks):
            callback(principal)

    def on_change(self, callback: Callable[[Principal | None], None]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _remove() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _remove


class ProfileStore(Protocol):
    """Profile persistence collaborator."""

    async def get_profile(self, uid: str) -> UserProfile | None:
        ...

    async def create_profile(self, uid: str, profile: UserProfile) -> None:
        ...


class DocumentProfileStore:
    """Profile store keeping one document per uid in the users collection."""

    def __init__(self, store: DocumentStore, collection: str | None = None) -> None:
        self._store = store
        self._collection = collection or settings.users_collection

    async def get_profile(self, uid: str) -> UserProfile | None:
        data = await self._store.get(self._collection, uid)
        if data is None:
            return None
        return UserProfile.model_validate({**data, "uid": uid})

    async def create_profile(self, uid: str, profile: UserProfile) -> None:
        await self._store.set(
            self._collection,
            uid,
            profile.model_dump(by_alias=True, exclude_none=True),
        )


@dataclass(frozen=True)
class Identity:
    """Resolved identity of the current client."""

    id: str
    policy: AuthorizationPolicy
    profile: UserProfile | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.profile is None

    @property
    def is_admin(self) -> bool:
        return self.policy.is_admin

    @property
    def display_name(self) -> str | None:
        return self.profile.display_name if self.profile else None

    @property
    def avatar(self) -> str | None:
        return self.profile.photo_url if self.profile else None


def short_id(identity_id: str) -> str:
    """Format an id for display, e.g. ``A1B2•••99X0``."""
    if len(identity_id) <= SHORT_ID_EDGE * 2:
        return identity_id.upper()
    return f"{identity_id[:SHORT_ID_EDGE]}•••{identity_id[-SHORT_ID_EDGE:]}".upper()


def fallback_display_name(principal: Principal) -> str:
    """Derive a display name locally when no stored profile is available."""
    if principal.display_name:
        return principal.display_name
    if principal.email and "@" in principal.email:
        local_part = principal.email.split("@", 1)[0]
        if local_part:
            return local_part
    return f"USER-{principal.uid[:SHORT_ID_EDGE].upper()}"


def profile_from_principal(principal: Principal, created_at: int) -> UserProfile:
    return UserProfile(
        uid=principal.uid,
        display_name=fallback_display_name(principal),
        photo_url=principal.photo_url,
        email=principal.email,
        karma=0,
        created_at=created_at,
        email_verified=principal.email_verified,
    )


class IdentityProvider:
    """Resolves who the current client is.

    Authenticated principals win over the anonymous id. Profile store
    failures never surface: a locally derived profile is substituted.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        principals: PrincipalSource | None = None,
        profiles: ProfileStore | None = None,
        *,
        admin_emails: Collection[str] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._storage = storage
        self._principals = principals
        self._profiles = profiles
        self._admin_emails = frozenset(
            settings.admin_emails if admin_emails is None else admin_emails
        )
        self._clock = clock
        self._cached: Identity | None = None
        self._remove_listener: Callable[[], None] | None = None
        if principals is not None:
            self._remove_listener = principals.on_change(self._on_principal_change)

    def _on_principal_change(self, principal: Principal | None) -> None:
        logger.debug("Principal changed; identity will be re-resolved")
        self._cached = None

    def close(self) -> None:
        """Stop listening for principal changes."""
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def anonymous_id(self) -> str:
        """Return the persisted anonymous id, generating it on first use."""
        stored = self._storage.get(ANON_ID_KEY)
        if stored:
            return stored
        generated = str(uuid.uuid4())
        self._storage.set(ANON_ID_KEY, generated)
        logger.info("Generated new anonymous identity %s", short_id(generated))
        return generated

    async def current_identity(self) -> Identity:
        """Return the current identity, resolving it if needed."""
        if self._cached is None:
            self._cached = await self._resolve()
        return self._cached

    async def _resolve(self) -> Identity:
        principal = self._principals.current_principal() if self._principals else None
        if principal is None:
            anon_id = self.anonymous_id()
            return Identity(id=anon_id, policy=AuthorizationPolicy.for_anonymous(anon_id))

        profile = await self._load_profile(principal)
        policy = AuthorizationPolicy.for_principal(principal, self._admin_emails)
        return Identity(id=principal.uid, policy=policy, profile=profile)

    async def _load_profile(self, principal: Principal) -> UserProfile:
        if self._profiles is None:
            return profile_from_principal(principal, self._clock())

        try:
            profile = await self._profiles.get_profile(principal.uid)
            if profile is None:
                profile = profile_from_principal(principal, self._clock())
                await self._profiles.create_profile(principal.uid, profile)
                logger.info("Created profile for %s", principal.uid)
            return profile
        except (StoreError, ValidationError) as e:
            logger.warning("Profile store unavailable for %s, using fallback: %s", principal.uid, e)
            return profile_from_principal(principal, self._clock())


@dataclass
class SessionContext:
    """Explicit per-session state handed to the feed facade."""

    storage: KeyValueStore
    identity: IdentityProvider
    rate_limiter: RateLimiter

    @classmethod
    def create(
        cls,
        storage: KeyValueStore | None = None,
        principals: PrincipalSource | None = None,
        profiles: ProfileStore | None = None,
        *,
        cooldown_seconds: float | None = None,
        rate_limiter: RateLimiter | None = None,
        admin_emails: Collection[str] | None = None,
    ) -> SessionContext:
        storage = storage if storage is not None else MemoryKeyValueStore()
        if rate_limiter is None:
            rate_limiter = RateLimiter(
                settings.send_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
            )
        return cls(
            storage=storage,
            identity=IdentityProvider(storage, principals, profiles, admin_emails=admin_emails),
            rate_limiter=rate_limiter,
        )

    def last_read_at(self) -> int | None:
        raw = self.storage.get(LAST_READ_KEY)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def mark_read(self, when: int) -> None:
        self.storage.set(LAST_READ_KEY, str(when))
