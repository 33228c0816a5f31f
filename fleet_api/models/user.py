"""User model for customers, drivers, vehicle owners and administrators."""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import Boolean, Date, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from fleet_api.models.base import BaseModel


class Role(str, Enum):
    """Closed set of principals a request can act as.

    UNAUTHENTICATED is never stored; it is the role of a request that
    carries no verified identity.
    """

    ADMIN = "admin"
    CUSTOMER = "customer"
    DRIVER = "driver"
    OWNER = "owner"
    UNAUTHENTICATED = "unauthenticated"


# Roles a stored user can hold
USER_ROLES = (Role.ADMIN, Role.CUSTOMER, Role.DRIVER, Role.OWNER)

# Roles a client may pick at registration; admins are provisioned separately
SELF_SERVICE_ROLES = (Role.CUSTOMER, Role.DRIVER, Role.OWNER)


class User(BaseModel):
    """Platform user.

    Soft-deleted users (is_deleted) are excluded from every lookup the
    auth gate performs.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Role.CUSTOMER.value, index=True
    )
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Drivers
    license_number: Mapped[str | None] = mapped_column(String(50), nullable=True, unique=True)
    license_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Owners
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Soft delete
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
