"""Explicit session context issued at login and invalidated at logout."""

import logging
from dataclasses import dataclass

from fleet_api.models.user import User
from fleet_api.services.auth import create_access_token, create_refresh_token, token_expiry
from fleet_api.services.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """The credentials a client holds for one signed-in user."""

    user: User
    access_token: str
    refresh_token: str | None = None

    @property
    def tokens(self) -> list[str]:
        return [t for t in (self.access_token, self.refresh_token) if t]


class SessionService:
    """Issues sessions and revokes every token they hold."""

    def __init__(self, blacklist: TokenBlacklist):
        self.blacklist = blacklist

    def issue(self, user: User) -> Session:
        return Session(
            user=user,
            access_token=create_access_token(user.id),
            refresh_token=create_refresh_token(user.id),
        )

    async def invalidate(self, session: Session) -> int:
        """Blacklist the session's tokens. Returns how many were stored."""
        revoked = 0
        for token in session.tokens:
            expires_at = token_expiry(token)
            if expires_at is None:
                continue
            if await self.blacklist.revoke(token, expires_at):
                revoked += 1
        logger.info(f"Session invalidated for {session.user.email}: {revoked} token(s) revoked")
        return revoked
