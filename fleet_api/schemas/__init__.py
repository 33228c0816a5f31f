# Fleet API Pydantic Schemas
from fleet_api.schemas.auth import (
    AccessTokenData,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    RevokeTokenRequest,
    SessionData,
    UpdateDetailsRequest,
    UpdatePasswordRequest,
)
from fleet_api.schemas.common import ApiResponse, CamelModel, MessageResponse
from fleet_api.schemas.user import UserResponse, UserStatusRequest, UserUpdateRequest

__all__ = [
    "AccessTokenData",
    "ApiResponse",
    "CamelModel",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "RefreshRequest",
    "RegisterRequest",
    "RevokeTokenRequest",
    "SessionData",
    "UpdateDetailsRequest",
    "UpdatePasswordRequest",
    "UserResponse",
    "UserStatusRequest",
    "UserUpdateRequest",
]
