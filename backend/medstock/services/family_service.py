"""Family membership: creation, invite-code join and member removal.

Membership lives on the family row as a ``members`` list plus a
``member_roles`` map. Every write to that pair goes through
``_write_membership``, a compare-and-swap on ``Family.version`` executed
inside ``run_in_transaction``. Two writers that read the same version cannot
both commit: the loser updates zero rows, raises ``TransactionConflict`` and
is re-run from freshly read state. A join that only re-links a profile
still takes the compare-and-swap, so it cannot commit a link to a family
that dropped the caller in the meantime.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medstock.core.config import get_settings
from medstock.core.db import TransactionConflict, run_in_transaction
from medstock.core.errors import (
    FailedPreconditionError,
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    ResourceExhaustedError,
    UnauthenticatedError,
)
from medstock.models.family import (
    INVITE_CODE_ALPHABET,
    INVITE_CODE_LENGTH,
    INVITE_CODE_PREFIX,
    INVITE_CODE_SUFFIX_LENGTH,
    Family,
    FamilyRole,
)
from medstock.services.user_service import (
    get_user_by_id,
    require_approved_user,
    require_user_profile,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinResult:
    family_id: UUID
    already_member: bool


def _current_time() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def normalize_invite_code(raw: object) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidArgumentError("inviteCode is required.")

    code = raw.strip().upper()
    if not code.startswith(INVITE_CODE_PREFIX) or len(code) != INVITE_CODE_LENGTH:
        raise InvalidArgumentError("Invalid inviteCode format.")
    return code


def generate_invite_code() -> str:
    suffix = "".join(
        secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_SUFFIX_LENGTH)
    )
    return f"{INVITE_CODE_PREFIX}{suffix}"


async def generate_unique_invite_code(session: AsyncSession) -> str:
    for _ in range(10):
        candidate = generate_invite_code()
        result = await session.execute(
            select(Family.id).where(Family.invite_code == candidate)
        )
        if result.first() is None:
            return candidate
    raise InternalError("Unable to generate invite code. Try again.")


async def find_family_by_invite_code(session: AsyncSession, invite_code: str) -> Family | None:
    result = await session.execute(
        select(Family).where(Family.invite_code == invite_code).limit(1)
    )
    return result.scalars().first()


async def get_family_by_id(
    session: AsyncSession,
    family_id: UUID,
    *,
    fresh: bool = False,
) -> Family | None:
    stmt = select(Family).where(Family.id == family_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def _write_membership(
    session: AsyncSession,
    family: Family,
    *,
    members: list[str],
    member_roles: dict[str, str],
) -> None:
    result = await session.execute(
        update(Family)
        .where(Family.id == family.id, Family.version == family.version)
        .values(members=members, member_roles=member_roles, version=family.version + 1)
    )
    if result.rowcount != 1:
        raise TransactionConflict(f"Family {family.id} changed concurrently")


async def create_family(
    session: AsyncSession,
    *,
    caller_id: str,
    family_name: str,
) -> Family:
    cleaned_name = " ".join(str(family_name or "").split())
    if not cleaned_name:
        raise InvalidArgumentError("familyName is required.")

    user = await require_approved_user(session, caller_id)
    if user.family_id is not None:
        raise FailedPreconditionError("User already belongs to a family.")

    family = Family(
        family_name=cleaned_name,
        created_by=caller_id,
        invite_code=await generate_unique_invite_code(session),
        members=[caller_id],
        member_roles={caller_id: FamilyRole.ADMIN.value},
    )
    session.add(family)
    await session.flush()

    user.family_id = family.id
    user.updated_at = _current_time()
    session.add(user)
    await session.commit()
    await session.refresh(family)

    logger.info("User %s created family %s", caller_id, family.id)
    return family


async def join_family_by_invite_code(
    session: AsyncSession,
    *,
    caller_id: str,
    invite_code_raw: object,
) -> JoinResult:
    if not caller_id:
        raise UnauthenticatedError("User is not authenticated.")

    invite_code = normalize_invite_code(invite_code_raw)
    await require_approved_user(session, caller_id)

    family = await find_family_by_invite_code(session, invite_code)
    if not family:
        raise NotFoundError("Invalid invite code.")
    family_id = family.id
    member_limit = get_settings().family_member_limit

    async def _join(tx: AsyncSession) -> JoinResult:
        current = await get_family_by_id(tx, family_id, fresh=True)
        if not current:
            raise NotFoundError("Family not found.")
        user = await get_user_by_id(tx, caller_id, fresh=True)
        if not user:
            raise FailedPreconditionError("User profile not found.")

        already_member = caller_id in current.members
        if already_member:
            # Rewrites the same membership so a removal committed since the
            # re-read fails this attempt instead of leaving a dangling link.
            await _write_membership(
                tx,
                current,
                members=list(current.members),
                member_roles=dict(current.member_roles),
            )
        else:
            if len(current.members) >= member_limit:
                raise ResourceExhaustedError("Family has reached the member limit.")
            await _write_membership(
                tx,
                current,
                members=[*current.members, caller_id],
                member_roles={**current.member_roles, caller_id: FamilyRole.EDITOR.value},
            )

        # Also heals a profile whose family_id drifted from the member list.
        user.family_id = current.id
        user.updated_at = _current_time()
        tx.add(user)
        return JoinResult(family_id=current.id, already_member=already_member)

    result = await run_in_transaction(session, _join)
    if result.already_member:
        logger.info("User %s re-joined family %s (already a member)", caller_id, result.family_id)
    else:
        logger.info("User %s joined family %s", caller_id, result.family_id)
    return result


async def get_caller_family(session: AsyncSession, *, caller_id: str) -> Family:
    user = await require_user_profile(session, caller_id)
    if user.family_id is None:
        raise NotFoundError("User does not belong to a family.")

    family = await get_family_by_id(session, user.family_id, fresh=True)
    if not family:
        raise NotFoundError("Family not found.")
    if caller_id not in family.members:
        raise PermissionDeniedError("User is not a member of this family.")
    return family


async def remove_family_member(
    session: AsyncSession,
    *,
    caller_id: str,
    family_id: UUID,
    member_id: str,
) -> None:
    async def _remove(tx: AsyncSession) -> None:
        current = await get_family_by_id(tx, family_id, fresh=True)
        if not current:
            raise NotFoundError("Family not found.")
        if caller_id not in current.members:
            raise PermissionDeniedError("User is not a member of this family.")
        if member_id not in current.members:
            raise NotFoundError("Member not found in this family.")

        admin_role = FamilyRole.ADMIN.value
        if caller_id != member_id and current.member_roles.get(caller_id) != admin_role:
            raise PermissionDeniedError("Only family admins can remove other members.")
        if current.member_roles.get(member_id) == admin_role:
            admins = [uid for uid in current.members if current.member_roles.get(uid) == admin_role]
            if len(admins) <= 1:
                raise FailedPreconditionError("The last family admin cannot be removed.")

        await _write_membership(
            tx,
            current,
            members=[uid for uid in current.members if uid != member_id],
            member_roles={
                uid: role for uid, role in current.member_roles.items() if uid != member_id
            },
        )

        member = await get_user_by_id(tx, member_id, fresh=True)
        if member and member.family_id == current.id:
            member.family_id = None
            member.updated_at = _current_time()
            tx.add(member)

    await run_in_transaction(session, _remove)
    logger.info("User %s removed %s from family %s", caller_id, member_id, family_id)
