"""User store access."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_api.models.user import User


class UserRepository:
    """Queries against the users table.

    Lookups skip soft-deleted rows unless asked otherwise; uniqueness
    checks must see them because the unique indexes do.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.is_deleted.is_(False))
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str, include_deleted: bool = False) -> User | None:
        query = select(User).where(User.email == email)
        if not include_deleted:
            query = query.where(User.is_deleted.is_(False))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_license_number(self, license_number: str) -> User | None:
        result = await self.session.execute(
            select(User).where(User.license_number == license_number)
        )
        return result.scalar_one_or_none()

    async def list_users(
        self,
        role: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[User]:
        query = select(User).where(User.is_deleted.is_(False))
        if role is not None:
            query = query.where(User.role == role)
        query = query.order_by(User.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def add(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def save(self, user: User) -> User:
        await self.session.commit()
        await self.session.refresh(user)
        return user
