"""Administrative endpoints (admin role only)."""

import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from fleet_api.core.errors import BadRequest, NotFound
from fleet_api.middleware.auth import UserIdentity, get_user_repository, require_roles
from fleet_api.middleware.rate_limit import RateLimitRegistry, get_rate_limit_registry
from fleet_api.models.user import USER_ROLES, Role
from fleet_api.schemas.auth import RevokeTokenRequest
from fleet_api.schemas.common import ApiResponse, MessageResponse
from fleet_api.schemas.user import UserResponse, UserRoleRequest, UserStatusRequest
from fleet_api.services.auth import AuthService, token_expiry
from fleet_api.services.rate_limit_store import FallbackRateLimitStore
from fleet_api.services.token_blacklist import TokenBlacklist, get_token_blacklist
from fleet_api.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

require_admin = require_roles(Role.ADMIN)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin)],
)


@router.get("/users", response_model=ApiResponse[list[UserResponse]])
async def list_users(
    role: Role | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    users: UserRepository = Depends(get_user_repository),
) -> ApiResponse[list[UserResponse]]:
    if role is not None and role not in USER_ROLES:
        raise BadRequest(f"Unknown user role '{role.value}'")
    records = await users.list_users(
        role=role.value if role else None,
        limit=limit,
        offset=offset,
    )
    return ApiResponse[list[UserResponse]](
        data=[UserResponse.model_validate(user) for user in records]
    )


@router.patch("/users/{user_id}/status", response_model=ApiResponse[UserResponse])
async def set_user_status(
    user_id: UUID,
    request: UserStatusRequest,
    admin: UserIdentity = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
) -> ApiResponse[UserResponse]:
    if user_id == admin.id and not request.is_active:
        raise BadRequest("Administrators cannot deactivate their own account")
    user = await users.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    user = await AuthService(users).set_active(user, request.is_active)
    return ApiResponse[UserResponse](
        message="User status updated",
        data=UserResponse.model_validate(user),
    )


@router.patch("/users/{user_id}/role", response_model=ApiResponse[UserResponse])
async def set_user_role(
    user_id: UUID,
    request: UserRoleRequest,
    admin: UserIdentity = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
) -> ApiResponse[UserResponse]:
    if user_id == admin.id:
        raise BadRequest("Administrators cannot change their own role")
    user = await users.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    user = await AuthService(users).set_role(user, request.role)
    return ApiResponse[UserResponse](
        message="User role updated successfully",
        data=UserResponse.model_validate(user),
    )


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    admin: UserIdentity = Depends(require_admin),
    users: UserRepository = Depends(get_user_repository),
) -> MessageResponse:
    """Soft-delete a non-admin user."""
    user = await users.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    user = await AuthService(users).soft_delete(user)
    logger.info(f"User {user.email} deleted by {admin.email}")
    return MessageResponse(message="User deleted successfully")


@router.post("/tokens/revoke", response_model=MessageResponse)
async def revoke_token(
    request: RevokeTokenRequest,
    admin: UserIdentity = Depends(require_admin),
    blacklist: TokenBlacklist = Depends(get_token_blacklist),
) -> MessageResponse:
    """Revoke any access or refresh token before its natural expiry."""
    expires_at = token_expiry(request.token)
    if expires_at is None:
        raise BadRequest("Token is invalid or already expired")
    if not await blacklist.revoke(request.token, expires_at):
        raise BadRequest("Token store is disabled; tokens cannot be revoked")
    logger.info(f"Token revoked by {admin.email}")
    return MessageResponse(message="Token revoked")


@router.get("/rate-limits", response_model=ApiResponse[dict[str, Any]])
async def get_rate_limits(
    registry: RateLimitRegistry = Depends(get_rate_limit_registry),
) -> ApiResponse[dict[str, Any]]:
    store = registry.store
    return ApiResponse[dict[str, Any]](
        data={
            "store": type(store).__name__,
            "degraded": store.degraded if isinstance(store, FallbackRateLimitStore) else False,
            "groups": [limiter.describe() for limiter in registry.limiters.values()],
        }
    )


@router.delete("/rate-limits/{group}/{client_key}", response_model=MessageResponse)
async def reset_rate_limit(
    group: str,
    client_key: str,
    registry: RateLimitRegistry = Depends(get_rate_limit_registry),
) -> MessageResponse:
    """Clear a client's counter, e.g. ``/rate-limits/auth/ip:203.0.113.7``."""
    limiter = registry.get(group)
    if limiter is None:
        raise NotFound(f"Unknown rate limit group '{group}'")
    await limiter.reset(client_key)
    return MessageResponse(message=f"Rate limit reset for {client_key}")
