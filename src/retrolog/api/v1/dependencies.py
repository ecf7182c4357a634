"""Shared API dependencies for identity resolution and the feed facade."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from retrolog.core.security import decode_principal
from retrolog.services.feed_service import FeedCore, FeedService
from retrolog.services.identity import IdentityProvider, SessionContext, StaticPrincipalSource

# Bearer tokens are optional; without one the caller is anonymous.
bearer_scheme = HTTPBearer(auto_error=False)


class CookieKeyValueStore:
    """Key-value port persisting session values in client cookies."""

    def __init__(self, request: Request, response: Response, *, max_age: int) -> None:
        self._request = request
        self._response = response
        self._max_age = max_age
        self._pending: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        if key in self._pending:
            return self._pending[key]
        return self._request.cookies.get(key)

    def set(self, key: str, value: str) -> None:
        self._pending[key] = value
        self._response.set_cookie(
            key,
            value,
            max_age=self._max_age,
            httponly=True,
            samesite="lax",
        )


def get_feed_core(request: Request) -> FeedCore:
    """Return the process-wide feed core created at startup."""
    core: FeedCore = request.app.state.feed_core
    return core


FeedCoreDep = Annotated[FeedCore, Depends(get_feed_core)]


def get_principal_source(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> StaticPrincipalSource:
    """Decode the optional bearer token into a principal source.

    Raises:
        HTTPException: If a token is present but invalid
    """
    if credentials is None:
        return StaticPrincipalSource(None)
    try:
        principal = decode_principal(credentials.credentials)
    except (JWTError, ValueError) as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err
    return StaticPrincipalSource(principal)


PrincipalSourceDep = Annotated[StaticPrincipalSource, Depends(get_principal_source)]


async def get_feed_service(
    request: Request,
    response: Response,
    core: FeedCoreDep,
    principals: PrincipalSourceDep,
) -> FeedService:
    """Bind the feed core to the calling client's session."""
    storage = CookieKeyValueStore(
        request,
        response,
        max_age=core.settings.anon_cookie_max_age_seconds,
    )
    identity = IdentityProvider(
        storage,
        principals,
        core.profiles,
        admin_emails=core.settings.admin_emails,
    )
    resolved = await identity.current_identity()
    session = SessionContext(
        storage=storage,
        identity=identity,
        rate_limiter=core.limiters.get(resolved.id),
    )
    return FeedService(core, session)


FeedServiceDep = Annotated[FeedService, Depends(get_feed_service)]
