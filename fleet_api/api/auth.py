"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Body, Depends, Request, status

from fleet_api.core.errors import TokenRevoked, UserNotFound
from fleet_api.core.request_utils import get_bearer_token
from fleet_api.middleware.auth import UserIdentity, get_current_identity, get_user_repository
from fleet_api.models.user import User
from fleet_api.schemas.auth import (
    AccessTokenData,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    SessionData,
    UpdateDetailsRequest,
    UpdatePasswordRequest,
)
from fleet_api.schemas.common import ApiResponse, MessageResponse
from fleet_api.schemas.user import UserResponse
from fleet_api.services.auth import (
    AuthService,
    create_access_token,
    subject_id,
    validate_refresh_token,
)
from fleet_api.services.session import Session, SessionService
from fleet_api.services.token_blacklist import TokenBlacklist, get_token_blacklist
from fleet_api.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(users: UserRepository = Depends(get_user_repository)) -> AuthService:
    """Dependency to get auth service."""
    return AuthService(users)


def get_session_service(
    blacklist: TokenBlacklist = Depends(get_token_blacklist),
) -> SessionService:
    return SessionService(blacklist)


async def get_current_user(
    identity: UserIdentity = Depends(get_current_identity),
    users: UserRepository = Depends(get_user_repository),
) -> User:
    """Dependency: the full user record behind the request identity."""
    user = await users.get_by_id(identity.id)
    if user is None:
        raise UserNotFound()
    return user


def _session_response(session: Session, message: str) -> ApiResponse[SessionData]:
    return ApiResponse[SessionData](
        message=message,
        data=SessionData(
            user=UserResponse.model_validate(session.user),
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        ),
    )


@router.post(
    "/register",
    response_model=ApiResponse[SessionData],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse[SessionData]:
    """Create a customer, driver or owner account and sign it in."""
    user = await auth_service.register(
        name=request.name,
        email=request.email,
        password=request.password,
        role=request.role,
        phone=request.phone,
        license_number=request.license_number,
        license_expiry=request.license_expiry,
        business_name=request.business_name,
    )
    return _session_response(sessions.issue(user), "User registered successfully")


@router.post("/login", response_model=ApiResponse[SessionData])
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse[SessionData]:
    """Authenticate with email and password.

    Failed attempts count against the auth rate limit; successful ones do not.
    """
    user = await auth_service.authenticate(email=request.email, password=request.password)
    return _session_response(sessions.issue(user), "Login successful")


@router.post("/logout", response_model=MessageResponse)
async def logout(
    http_request: Request,
    request: LogoutRequest | None = Body(None),
    current_user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
) -> MessageResponse:
    """Log out the current user.

    Blacklists the presented access token (and the refresh token, if sent)
    for the remainder of its validity.
    """
    session = Session(
        user=current_user,
        access_token=get_bearer_token(http_request) or "",
        refresh_token=request.refresh_token if request else None,
    )
    await sessions.invalidate(session)
    logger.info(f"User logged out: {current_user.email}")
    return MessageResponse(message="Logout successful")


@router.post("/refresh", response_model=ApiResponse[AccessTokenData])
async def refresh_token(
    request: RefreshRequest,
    users: UserRepository = Depends(get_user_repository),
    blacklist: TokenBlacklist = Depends(get_token_blacklist),
) -> ApiResponse[AccessTokenData]:
    """Exchange a refresh token for a new access token."""
    if await blacklist.is_revoked(request.refresh_token):
        raise TokenRevoked()

    payload = validate_refresh_token(request.refresh_token)
    user = await users.get_by_id(subject_id(payload))
    if user is None or not user.is_active:
        raise UserNotFound("User not found")

    return ApiResponse[AccessTokenData](
        message="Token refreshed successfully",
        data=AccessTokenData(access_token=create_access_token(user.id)),
    )


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_me(current_user: User = Depends(get_current_user)) -> ApiResponse[UserResponse]:
    """Get the current user's information."""
    return ApiResponse[UserResponse](data=UserResponse.model_validate(current_user))


@router.put("/updatedetails", response_model=ApiResponse[UserResponse])
async def update_details(
    request: UpdateDetailsRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> ApiResponse[UserResponse]:
    user = await auth_service.update_details(
        current_user,
        name=request.name,
        email=request.email,
        phone=request.phone,
        business_name=request.business_name,
    )
    return ApiResponse[UserResponse](
        message="Details updated successfully",
        data=UserResponse.model_validate(user),
    )


@router.put("/updatepassword", response_model=ApiResponse[SessionData])
async def update_password(
    http_request: Request,
    request: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    sessions: SessionService = Depends(get_session_service),
) -> ApiResponse[SessionData]:
    """Change the password and rotate the session.

    The access token used for this request is revoked; the client continues
    with the new session in the response.
    """
    user = await auth_service.change_password(
        current_user,
        current_password=request.current_password,
        new_password=request.new_password,
    )
    await sessions.invalidate(
        Session(user=user, access_token=get_bearer_token(http_request) or "")
    )
    return _session_response(sessions.issue(user), "Password updated successfully")
