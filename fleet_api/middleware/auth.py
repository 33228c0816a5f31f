"""Auth gate and role guard for protected routes.

The gate runs as a FastAPI dependency so each router opts in explicitly:

    router = APIRouter(dependencies=[Depends(require_roles(Role.ADMIN))])

Order of checks: bearer credential present, not blacklisted, signature and
expiry valid, subject resolves to a live user. The resolved identity is
attached to ``request.state.user`` and reused for the rest of the request.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_api.core.database import get_db
from fleet_api.core.errors import (
    AuthenticationError,
    Forbidden,
    TokenRevoked,
    Unauthenticated,
    UserNotFound,
)
from fleet_api.core.request_utils import get_bearer_token
from fleet_api.models.user import Role, User
from fleet_api.services.auth import subject_id, validate_access_token
from fleet_api.services.token_blacklist import TokenBlacklist, get_token_blacklist
from fleet_api.services.user_repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserIdentity:
    """Who is making the request. Immutable once attached."""

    id: UUID
    role: Role
    name: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "UserIdentity":
        return cls(id=user.id, role=Role(user.role), name=user.name, email=user.email)


def get_user_repository(db: AsyncSession = Depends(get_db)) -> UserRepository:
    """Dependency to get the user store."""
    return UserRepository(db)


async def authenticate_token(
    token: str | None,
    blacklist: TokenBlacklist,
    users: UserRepository,
) -> tuple[UserIdentity, dict]:
    """Run the gate's checks for a raw credential.

    Returns the identity and the verified token payload.
    """
    if not token:
        raise Unauthenticated("Not authorized to access this route")

    if await blacklist.is_revoked(token):
        raise TokenRevoked()

    payload = validate_access_token(token)
    user = await users.get_by_id(subject_id(payload))
    if user is None:
        raise UserNotFound()
    if not user.is_active:
        raise Forbidden("Your account has been deactivated. Please contact support.")

    return UserIdentity.from_user(user), payload


async def get_current_identity(
    request: Request,
    blacklist: TokenBlacklist = Depends(get_token_blacklist),
    users: UserRepository = Depends(get_user_repository),
) -> UserIdentity:
    """Dependency: authenticate the request and attach its identity."""
    existing = getattr(request.state, "user", None)
    if isinstance(existing, UserIdentity):
        return existing

    try:
        identity, payload = await authenticate_token(get_bearer_token(request), blacklist, users)
    except AuthenticationError as e:
        logger.warning(f"{e.kind} for {request.method} {request.url.path}")
        raise

    request.state.user = identity
    request.state.token_payload = payload
    return identity


def principal_role(request: Request) -> Role:
    """The request's role in the closed set, ``unauthenticated`` if none."""
    identity = getattr(request.state, "user", None)
    if isinstance(identity, UserIdentity):
        return identity.role
    return Role.UNAUTHENTICATED


def check_role(identity: UserIdentity, allowed: frozenset[Role]) -> None:
    """Raise Forbidden unless the identity's role is in ``allowed``."""
    if identity.role not in allowed:
        raise Forbidden(
            f"User role '{identity.role.value}' is not authorized to access this route"
        )


def require_roles(*roles: Role | str) -> Callable[..., Awaitable[UserIdentity]]:
    """Build a dependency permitting only the given roles.

    Usage: ``Depends(require_roles(Role.OWNER, Role.ADMIN))``
    """
    if not roles:
        raise ValueError("require_roles needs at least one role")
    allowed = frozenset(Role(r) for r in roles)

    async def role_guard(identity: UserIdentity = Depends(get_current_identity)) -> UserIdentity:
        check_role(identity, allowed)
        return identity

    return role_guard
