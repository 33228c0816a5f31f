"""Pydantic schemas for authentication API."""

from datetime import date

from pydantic import EmailStr, Field

from fleet_api.models.user import Role
from fleet_api.schemas.common import CamelModel
from fleet_api.schemas.user import PHONE_PATTERN, UserResponse


class RegisterRequest(CamelModel):
    """Request for self-service registration."""

    name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: Role = Role.CUSTOMER
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    license_number: str | None = Field(None, max_length=50)
    license_expiry: date | None = None
    business_name: str | None = Field(None, max_length=255)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    """Optional body for logout; the refresh token is revoked too when given."""

    refresh_token: str | None = None


class UpdateDetailsRequest(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    email: EmailStr | None = None
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    business_name: str | None = Field(None, max_length=255)


class UpdatePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class RevokeTokenRequest(CamelModel):
    token: str = Field(..., min_length=1)


class SessionData(CamelModel):
    """Credentials handed to the client at login, register and password change."""

    user: UserResponse
    access_token: str
    refresh_token: str | None = None


class AccessTokenData(CamelModel):
    access_token: str
