from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from medstock.api.deps import get_caller, parse_uuid
from medstock.core.db import get_session
from medstock.models.family import Family, FamilyRole
from medstock.schemas.family import (
    FamilyCreateRequest,
    FamilyMemberRemoveResponse,
    FamilyResponse,
    JoinFamilyRequest,
    JoinFamilyResponse,
)
from medstock.services.auth import VerifiedIdentity
from medstock.services.family_service import (
    create_family,
    get_caller_family,
    join_family_by_invite_code,
    remove_family_member,
)

router = APIRouter(prefix="/families", tags=["families"])


def to_family_response(family: Family, caller_id: str) -> FamilyResponse:
    is_family_admin = family.member_roles.get(caller_id) == FamilyRole.ADMIN.value
    return FamilyResponse(
        id=str(family.id),
        family_name=family.family_name,
        created_by=family.created_by,
        invite_code=family.invite_code if is_family_admin else None,
        members=list(family.members),
        member_roles=dict(family.member_roles),
        created_at=family.created_at.isoformat(),
    )


@router.post("", response_model=FamilyResponse, status_code=status.HTTP_201_CREATED)
async def create_family_endpoint(
    payload: FamilyCreateRequest,
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> FamilyResponse:
    family = await create_family(
        session,
        caller_id=caller.subject_id,
        family_name=payload.family_name,
    )
    return to_family_response(family, caller.subject_id)


@router.post("/join", response_model=JoinFamilyResponse)
async def join_family(
    payload: JoinFamilyRequest,
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> JoinFamilyResponse:
    result = await join_family_by_invite_code(
        session,
        caller_id=caller.subject_id,
        invite_code_raw=payload.invite_code,
    )
    return JoinFamilyResponse(success=True, family_id=str(result.family_id))


@router.get("/me", response_model=FamilyResponse)
async def my_family(
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> FamilyResponse:
    family = await get_caller_family(session, caller_id=caller.subject_id)
    return to_family_response(family, caller.subject_id)


@router.delete("/{family_id}/members/{member_id}", response_model=FamilyMemberRemoveResponse)
async def remove_member(
    family_id: str,
    member_id: str,
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> FamilyMemberRemoveResponse:
    family_uuid = parse_uuid(family_id, "family_id")
    await remove_family_member(
        session,
        caller_id=caller.subject_id,
        family_id=family_uuid,
        member_id=member_id,
    )
    return FamilyMemberRemoveResponse(
        family_id=str(family_uuid),
        member_id=member_id,
        message="Member removed from family.",
    )
