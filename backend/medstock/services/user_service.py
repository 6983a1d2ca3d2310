from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medstock.core.errors import FailedPreconditionError, PermissionDeniedError
from medstock.models.identity_claim import IdentityClaim
from medstock.models.user import User, UserStatus
from medstock.services.auth import VerifiedIdentity

logger = logging.getLogger(__name__)


def _current_time() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def clean_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = " ".join(value.strip().split())
    return cleaned or None


async def get_user_by_id(
    session: AsyncSession,
    user_id: str,
    *,
    fresh: bool = False,
) -> User | None:
    stmt = select(User).where(User.id == user_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(
        select(User).where(User.email == email.lower().strip()).order_by(User.created_at.asc())
    )
    return result.scalars().first()


async def require_user_profile(session: AsyncSession, user_id: str) -> User:
    user = await get_user_by_id(session, user_id)
    if not user:
        raise FailedPreconditionError("User profile not found.")
    return user


async def require_approved_user(session: AsyncSession, user_id: str) -> User:
    user = await require_user_profile(session, user_id)
    if user.status != UserStatus.APPROVED:
        raise PermissionDeniedError("User is not approved.")
    return user


async def ensure_user_profile(
    session: AsyncSession,
    identity: VerifiedIdentity,
) -> tuple[User, bool]:
    """Return the caller's profile, creating a pending one on first contact."""
    existing = await get_user_by_id(session, identity.subject_id)
    if existing:
        return existing, False

    now = _current_time()
    user = User(
        id=identity.subject_id,
        email=identity.email.lower().strip() if identity.email else None,
        display_name=clean_optional_text(identity.display_name),
        photo_url=identity.photo_url,
        status=UserStatus.PENDING,
        family_id=None,
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent first-contact call inserted the row first.
        await session.rollback()
        existing = await get_user_by_id(session, identity.subject_id, fresh=True)
        if existing is None:
            raise
        return existing, False
    await session.refresh(user)
    logger.info("Created pending profile for %s", user.id)
    return user, True


async def update_user_profile(
    session: AsyncSession,
    *,
    user_id: str,
    display_name: str | None = None,
    photo_url: str | None = None,
    fields_set: set[str] | None = None,
) -> User:
    user = await require_user_profile(session, user_id)
    fields = fields_set if fields_set is not None else {"display_name", "photo_url"}

    if "display_name" in fields:
        user.display_name = clean_optional_text(display_name)
    if "photo_url" in fields:
        user.photo_url = clean_optional_text(photo_url)

    user.updated_at = _current_time()
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def has_admin_grant(session: AsyncSession, subject_id: str) -> bool:
    result = await session.execute(
        select(IdentityClaim.is_admin).where(IdentityClaim.subject_id == subject_id)
    )
    return bool(result.scalar_one_or_none())
