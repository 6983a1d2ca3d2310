from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medstock.api.deps import get_caller
from medstock.api.users import to_user_response
from medstock.core.db import get_session
from medstock.models.user import UserStatus
from medstock.schemas.admin import (
    AdminUserListResponse,
    AdminUserStatsResponse,
    ApproveUserRequest,
    ApproveUserResponse,
    SetAdminRequest,
    SetAdminResponse,
)
from medstock.services.admin_service import approve_user, get_user_stats, list_users, set_admin
from medstock.services.auth import VerifiedIdentity

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/approve-user", response_model=ApproveUserResponse)
async def approve_user_endpoint(
    payload: ApproveUserRequest,
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> ApproveUserResponse:
    result = await approve_user(
        session,
        caller=caller,
        uid=payload.uid,
        approve=payload.approve,
    )
    return ApproveUserResponse(
        success=True,
        uid=result.uid,
        status=result.status.value,
        message=result.message,
    )


@router.post("/set-admin", response_model=SetAdminResponse)
async def set_admin_endpoint(
    payload: SetAdminRequest,
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> SetAdminResponse:
    result = await set_admin(session, caller=caller, email=payload.email)
    return SetAdminResponse(success=True, uid=result.uid, message=result.message)


@router.get("/users", response_model=AdminUserListResponse)
async def admin_users(
    status_filter: UserStatus | None = Query(default=None, alias="status"),
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> AdminUserListResponse:
    users = await list_users(session, caller=caller, status_filter=status_filter)
    return AdminUserListResponse(items=[to_user_response(user) for user in users])


@router.get("/stats", response_model=AdminUserStatsResponse)
async def admin_stats(
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> AdminUserStatsResponse:
    return AdminUserStatsResponse(**await get_user_stats(session, caller=caller))
