"""User profile endpoints. Every route requires authentication."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends

from fleet_api.api.auth import get_current_user
from fleet_api.core.errors import Conflict, Forbidden, NotFound
from fleet_api.middleware.auth import UserIdentity, get_current_identity, get_user_repository
from fleet_api.models.user import Role, User
from fleet_api.schemas.common import ApiResponse
from fleet_api.schemas.user import UserResponse, UserUpdateRequest
from fleet_api.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(get_current_identity)],
)


async def _load_accessible_user(
    user_id: UUID,
    identity: UserIdentity,
    users: UserRepository,
) -> User:
    """Users may read and edit themselves; admins may touch anyone."""
    if identity.id != user_id and identity.role != Role.ADMIN:
        raise Forbidden(f"User role '{identity.role.value}' cannot access another user's profile")
    user = await users.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return user


# Declared before /{user_id} so "profile" is not parsed as an id
@router.get("/profile", response_model=ApiResponse[UserResponse])
async def get_profile(current_user: User = Depends(get_current_user)) -> ApiResponse[UserResponse]:
    return ApiResponse[UserResponse](data=UserResponse.model_validate(current_user))


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user_profile(
    user_id: UUID,
    identity: UserIdentity = Depends(get_current_identity),
    users: UserRepository = Depends(get_user_repository),
) -> ApiResponse[UserResponse]:
    user = await _load_accessible_user(user_id, identity, users)
    return ApiResponse[UserResponse](data=UserResponse.model_validate(user))


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user_profile(
    user_id: UUID,
    request: UserUpdateRequest,
    identity: UserIdentity = Depends(get_current_identity),
    users: UserRepository = Depends(get_user_repository),
) -> ApiResponse[UserResponse]:
    user = await _load_accessible_user(user_id, identity, users)

    updates = request.model_dump(exclude_unset=True, exclude_none=True)
    if user.role != Role.DRIVER.value:
        for field in ("license_number", "license_expiry", "experience"):
            updates.pop(field, None)
    if user.role != Role.OWNER.value:
        updates.pop("business_name", None)

    license_number = updates.get("license_number")
    if license_number and license_number != user.license_number:
        holder = await users.get_by_license_number(license_number)
        if holder is not None and holder.id != user.id:
            raise Conflict("License number already registered")

    for field, value in updates.items():
        setattr(user, field, value)
    user = await users.save(user)

    logger.info(f"Profile updated for {user.email} by {identity.email}")
    return ApiResponse[UserResponse](
        message="Profile updated successfully",
        data=UserResponse.model_validate(user),
    )
