"""Pydantic schemas for user records."""

from datetime import date, datetime
from uuid import UUID

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from fleet_api.models.user import Role
from fleet_api.schemas.common import CamelModel

PHONE_PATTERN = r"^[0-9]{10}$"


class UserResponse(CamelModel):
    """Public view of a user (never includes the password hash)."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: UUID
    name: str
    email: str
    role: Role
    phone: str | None = None
    is_verified: bool
    is_active: bool
    license_number: str | None = None
    license_expiry: date | None = None
    experience: int = 0
    business_name: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None


class UserUpdateRequest(CamelModel):
    """Profile fields editable through /api/users/{id}."""

    name: str | None = Field(None, min_length=1, max_length=50)
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    business_name: str | None = Field(None, max_length=255)
    license_number: str | None = Field(None, max_length=50)
    license_expiry: date | None = None
    experience: int | None = Field(None, ge=0)


class UserStatusRequest(CamelModel):
    is_active: bool


class UserRoleRequest(CamelModel):
    # Checked by AuthService.set_role
    role: str
