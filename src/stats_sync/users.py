"""Local user accounts created from a verified external identity."""

import logging
from typing import Protocol

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stats_shared.db.base import utc_now
from stats_shared.db.models.user import User

logger = logging.getLogger(__name__)


class VerifiedIdentity(BaseModel):
    """What the identity provider vouches for after checking an assertion."""

    model_config = {"frozen": True}

    subject_id: str
    email: str
    display_name: str
    avatar_url: str | None = None


class IdentityVerifier(Protocol):
    """Checks an identity assertion (e.g. a Google ID token).

    Implementations raise :class:`stats_sync.exceptions.InvalidIdentityError`
    for assertions they cannot verify.
    """

    async def verify(self, assertion: str) -> VerifiedIdentity: ...


class UserService:
    """Find-or-create users keyed by the identity provider's subject id."""

    def __init__(self, verifier: IdentityVerifier) -> None:
        self._verifier = verifier

    async def sign_in(self, assertion: str, session: AsyncSession) -> tuple[User, bool]:
        """Verify *assertion* and upsert the matching user. Returns (user, is_new).

        Raises:
            InvalidIdentityError: If the verifier rejects the assertion.
        """
        identity = await self._verifier.verify(assertion)
        return await self.upsert_from_identity(identity, session)

    @staticmethod
    async def upsert_from_identity(identity: VerifiedIdentity, session: AsyncSession) -> tuple[User, bool]:
        """Insert or update a User from a verified identity. Returns (user, is_new).

        The avatar is only replaced when the identity carries one.
        """
        result = await session.execute(select(User).where(User.google_subject_id == identity.subject_id))
        user = result.scalar_one_or_none()
        if user is None:
            user = User(
                google_subject_id=identity.subject_id,
                email=identity.email,
                display_name=identity.display_name,
                avatar_url=identity.avatar_url,
            )
            session.add(user)
            await session.flush()
            logger.info("Created user %d", user.id, extra={"user_id": user.id})
            return user, True

        changed = user.email != identity.email or user.display_name != identity.display_name
        user.email = identity.email
        user.display_name = identity.display_name
        if identity.avatar_url and identity.avatar_url != user.avatar_url:
            user.avatar_url = identity.avatar_url
            changed = True
        if changed:
            user.updated_at = utc_now()
            await session.flush()
        return user, False

    @staticmethod
    async def get_user(user_id: int, session: AsyncSession) -> User | None:
        return await session.get(User, user_id)
