"""Authentication service for JWT-based authentication."""

import logging
import secrets
import uuid
from datetime import UTC, date, datetime, timedelta
from typing import Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jwt.exceptions import PyJWTError

from fleet_api.core.config import settings
from fleet_api.core.errors import (
    BadRequest,
    Conflict,
    Forbidden,
    InvalidCredentials,
    TokenInvalid,
)
from fleet_api.models.user import SELF_SERVICE_ROLES, Role, User
from fleet_api.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

# Argon2id: 64 MiB memory, 3 iterations, parallelism 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError):
        logger.warning("Stored password hash could not be verified")
        return False


def _create_token(user_id: uuid.UUID, token_type: str, secret: str, lifetime: timedelta) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        # Unique per token so two tokens issued in the same second differ
        "jti": secrets.token_hex(16),
    }
    token = jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)
    return str(token)


def create_access_token(user_id: uuid.UUID) -> str:
    """Create a short-lived access token."""
    return _create_token(
        user_id,
        ACCESS_TOKEN_TYPE,
        settings.jwt_access_secret,
        timedelta(minutes=settings.jwt_access_expire_minutes),
    )


def create_refresh_token(user_id: uuid.UUID) -> str:
    """Create a long-lived refresh token."""
    return _create_token(
        user_id,
        REFRESH_TOKEN_TYPE,
        settings.jwt_refresh_secret,
        timedelta(days=settings.jwt_refresh_expire_days),
    )


def decode_token(token: str, secret: str, expected_type: str) -> dict[str, Any]:
    """Decode and validate a JWT token of the given type."""
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenInvalid("Token has expired") from e
    except PyJWTError as e:
        raise TokenInvalid(f"Invalid token: {e}") from e

    if payload.get("type") != expected_type:
        raise TokenInvalid(f"Expected a {expected_type} token")
    return payload


def validate_access_token(token: str) -> dict[str, Any]:
    """Validate an access token and return its payload."""
    return decode_token(token, settings.jwt_access_secret, ACCESS_TOKEN_TYPE)


def validate_refresh_token(token: str) -> dict[str, Any]:
    """Validate a refresh token and return its payload."""
    return decode_token(token, settings.jwt_refresh_secret, REFRESH_TOKEN_TYPE)


def subject_id(payload: dict[str, Any]) -> uuid.UUID:
    """Parse the ``sub`` claim into a user id."""
    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError as e:
        raise TokenInvalid("Token subject is not a valid user id") from e


def token_expiry(token: str) -> float | None:
    """Read the ``exp`` claim of a token issued by this service.

    Accepts access and refresh tokens. Returns None for tokens that are
    forged, malformed, or already expired.
    """
    for secret in (settings.jwt_access_secret, settings.jwt_refresh_secret):
        try:
            payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
        except PyJWTError:
            continue
        exp = payload.get("exp")
        return float(exp) if exp is not None else None
    return None


class AuthService:
    """Service for authentication operations."""

    def __init__(self, users: UserRepository):
        self.users = users

    async def register(
        self,
        name: str,
        email: str,
        password: str,
        role: Role = Role.CUSTOMER,
        phone: str | None = None,
        license_number: str | None = None,
        license_expiry: date | None = None,
        business_name: str | None = None,
    ) -> User:
        """Create a new customer, driver or owner account."""
        if role not in SELF_SERVICE_ROLES:
            raise BadRequest("Invalid role")
        if role == Role.DRIVER and not license_number:
            raise BadRequest("License number is required for drivers")

        email = email.strip().lower()
        if await self.users.get_by_email(email, include_deleted=True) is not None:
            raise BadRequest("Email already registered")
        if role == Role.DRIVER and await self.users.get_by_license_number(license_number):
            raise Conflict("License number already registered")

        user = User(
            id=uuid.uuid4(),
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=role.value,
            phone=phone,
            is_verified=False,
            is_active=True,
            is_deleted=False,
            experience=0,
            license_number=license_number if role == Role.DRIVER else None,
            license_expiry=license_expiry if role == Role.DRIVER else None,
            business_name=business_name if role == Role.OWNER else None,
        )
        user = await self.users.add(user)
        logger.info(f"New user registered: {user.email} ({user.role})")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Authenticate a user and return the user object.

        Raises InvalidCredentials for both "user not found" and
        "wrong password" to prevent user enumeration.
        """
        user = await self.users.get_by_email(email.strip().lower())

        if user is None:
            # Dummy hash keeps response timing uniform
            verify_password(password, hash_password("dummy-password"))
            raise InvalidCredentials()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentials()

        if not user.is_active:
            raise Forbidden("Your account has been deactivated. Please contact support.")

        user.last_login_at = datetime.now(UTC)
        await self.users.save(user)

        logger.info(f"User logged in: {user.email}")
        return user

    async def update_details(
        self,
        user: User,
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        business_name: str | None = None,
    ) -> User:
        """Update profile fields the user may change themselves."""
        if email is not None:
            email = email.strip().lower()
            if email != user.email:
                existing = await self.users.get_by_email(email, include_deleted=True)
                if existing is not None and existing.id != user.id:
                    raise BadRequest("Email already registered")
                user.email = email
        if name is not None:
            user.name = name.strip()
        if phone is not None:
            user.phone = phone
        if business_name is not None and user.role == Role.OWNER.value:
            user.business_name = business_name
        return await self.users.save(user)

    async def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """Change a user's password after re-checking the current one."""
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentials("Current password is incorrect")

        user.password_hash = hash_password(new_password)
        user = await self.users.save(user)
        logger.info(f"Password changed for user: {user.email}")
        return user

    async def set_active(self, user: User, is_active: bool) -> User:
        user.is_active = is_active
        user = await self.users.save(user)
        logger.info(f"User {user.email} {'activated' if is_active else 'deactivated'}")
        return user

    async def set_role(self, user: User, role: str) -> User:
        """Move a user between the self-service roles; admin is never granted."""
        if role not in {r.value for r in SELF_SERVICE_ROLES}:
            raise BadRequest("Invalid role")
        previous = user.role
        user.role = role
        user = await self.users.save(user)
        logger.info(f"User {user.email} role changed: {previous} -> {user.role}")
        return user

    async def soft_delete(self, user: User) -> User:
        """Hide a user from every lookup and block further logins.

        The row is kept, so its e-mail and licence number stay reserved.
        """
        if user.role == Role.ADMIN.value:
            raise Forbidden("Cannot delete admin users")
        user.is_deleted = True
        user.deleted_at = datetime.now(UTC)
        user.is_active = False
        user = await self.users.save(user)
        logger.info(f"User soft deleted: {user.email}")
        return user
