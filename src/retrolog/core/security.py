"""Bearer token handling and the authorization policy for moderation actions."""
from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import jwt

from retrolog.core.settings import settings
from retrolog.schemas.message import Message
from retrolog.schemas.user import Principal

DEFAULT_TOKEN_TTL = timedelta(hours=1)


@dataclass(frozen=True)
class AuthorizationPolicy:
    """Capabilities of one resolved identity.

    Computed once per identity resolution and passed to every moderation
    action instead of re-checking roles at each call site.
    """

    subject_id: str
    is_admin: bool = False

    @classmethod
    def for_anonymous(cls, subject_id: str) -> AuthorizationPolicy:
        return cls(subject_id=subject_id, is_admin=False)

    @classmethod
    def for_principal(
        cls,
        principal: Principal,
        admin_emails: Collection[str],
    ) -> AuthorizationPolicy:
        """Build the policy for an authenticated principal.

        Admin requires a verified email that is an exact member of the
        allow-list. Nothing else elevates privilege.
        """
        is_admin = bool(
            principal.email_verified
            and principal.email is not None
            and principal.email in admin_emails
        )
        return cls(subject_id=principal.uid, is_admin=is_admin)

    def can_delete(self, message: Message) -> bool:
        """Admins may delete anything; senders may delete their own messages."""
        return self.is_admin or message.sender_id == self.subject_id

    def can_ban(self) -> bool:
        return self.is_admin


def decode_principal(token: str) -> Principal:
    """Decode a bearer token into a principal.

    Args:
        token: Encoded JWT issued by the authentication collaborator.

    Returns:
        The principal described by the token claims.

    Raises:
        JWTError: If the token is malformed, expired or badly signed.
        ValueError: If the token carries no subject.
    """
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.jwt_algorithm],
    )
    subject = payload.get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    return Principal(
        uid=str(subject),
        email=payload.get("email"),
        display_name=payload.get("name"),
        photo_url=payload.get("picture"),
        email_verified=bool(payload.get("email_verified", False)),
    )


def create_access_token(principal: Principal, ttl: timedelta = DEFAULT_TOKEN_TTL) -> str:
    """Create a signed bearer token carrying the principal's claims."""
    to_encode: dict[str, object] = {
        "sub": principal.uid,
        "email_verified": principal.email_verified,
        "exp": datetime.now(UTC) + ttl,
    }
    if principal.email is not None:
        to_encode["email"] = principal.email
    if principal.display_name is not None:
        to_encode["name"] = principal.display_name
    if principal.photo_url is not None:
        to_encode["picture"] = principal.photo_url
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt
