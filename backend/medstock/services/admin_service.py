from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medstock.core.errors import InvalidArgumentError, NotFoundError, PermissionDeniedError
from medstock.models.identity_claim import IdentityClaim
from medstock.models.user import User, UserStatus
from medstock.services.auth import VerifiedIdentity
from medstock.services.user_service import get_user_by_email, get_user_by_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalResult:
    uid: str
    status: UserStatus
    message: str


@dataclass(frozen=True)
class AdminGrantResult:
    uid: str
    message: str


def _current_time() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _require_admin(caller: VerifiedIdentity, message: str) -> None:
    if not caller.is_admin:
        raise PermissionDeniedError(message)


async def approve_user(
    session: AsyncSession,
    *,
    caller: VerifiedIdentity,
    uid: object,
    approve: object,
) -> ApprovalResult:
    _require_admin(caller, "Only administrators can approve users.")
    if not isinstance(uid, str) or not uid.strip() or not isinstance(approve, bool):
        raise InvalidArgumentError("uid and approve are required.")

    user = await get_user_by_id(session, uid.strip())
    if not user:
        raise NotFoundError("User not found.")

    next_status = UserStatus.APPROVED if approve else UserStatus.REJECTED
    user.status = next_status
    user.updated_at = _current_time()
    session.add(user)
    await session.commit()

    logger.info("Admin %s set user %s to %s", caller.subject_id, user.id, next_status.value)
    return ApprovalResult(
        uid=user.id,
        status=next_status,
        message=f"User {'approved' if approve else 'rejected'} successfully.",
    )


async def set_admin(
    session: AsyncSession,
    *,
    caller: VerifiedIdentity,
    email: object,
) -> AdminGrantResult:
    if not isinstance(email, str) or not email.strip():
        raise InvalidArgumentError("Email is required.")
    _require_admin(caller, "Only admins can grant admin access.")

    user = await get_user_by_email(session, email)
    if not user:
        raise NotFoundError("No user registered with this email.")

    claim = await session.get(IdentityClaim, user.id)
    if claim is None:
        claim = IdentityClaim(subject_id=user.id)
    claim.is_admin = True
    claim.granted_by = caller.subject_id
    claim.updated_at = _current_time()
    session.add(claim)
    await session.commit()

    logger.info("Admin %s granted admin access to %s", caller.subject_id, user.id)
    return AdminGrantResult(uid=user.id, message=f"User {email.strip()} is now an admin.")


async def list_users(
    session: AsyncSession,
    *,
    caller: VerifiedIdentity,
    status_filter: UserStatus | None = None,
) -> list[User]:
    _require_admin(caller, "Only administrators can list users.")
    stmt = select(User)
    if status_filter is not None:
        stmt = stmt.where(User.status == status_filter)
    result = await session.execute(stmt.order_by(User.created_at.asc()))
    return list(result.scalars().all())


async def get_user_stats(
    session: AsyncSession,
    *,
    caller: VerifiedIdentity,
) -> dict[str, int]:
    _require_admin(caller, "Only administrators can view user stats.")
    result = await session.execute(select(User.status, func.count()).group_by(User.status))
    counts = {UserStatus(status_value): int(count or 0) for status_value, count in result.all()}
    return {
        "total": sum(counts.values()),
        "pending": counts.get(UserStatus.PENDING, 0),
        "approved": counts.get(UserStatus.APPROVED, 0),
        "rejected": counts.get(UserStatus.REJECTED, 0),
    }
