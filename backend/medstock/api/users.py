from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from medstock.api.deps import get_caller
from medstock.core.db import get_session
from medstock.models.user import User
from medstock.schemas.user import (
    UserProfileEnsureResponse,
    UserProfileUpdateRequest,
    UserResponse,
)
from medstock.services.auth import VerifiedIdentity
from medstock.services.user_service import (
    ensure_user_profile,
    require_user_profile,
    update_user_profile,
)

router = APIRouter(prefix="/users", tags=["users"])


def to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        photo_url=user.photo_url,
        status=user.status.value if hasattr(user.status, "value") else str(user.status),
        family_id=str(user.family_id) if user.family_id else None,
        created_at=user.created_at.isoformat(),
        updated_at=user.updated_at.isoformat(),
    )


@router.post("/me", response_model=UserProfileEnsureResponse)
async def ensure_profile(
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> JSONResponse:
    user, created = await ensure_user_profile(session, caller)
    payload = UserProfileEnsureResponse(created=created, user=to_user_response(user))
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content=payload.model_dump(),
    )


@router.get("/me", response_model=UserResponse)
async def me(
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    user = await require_user_profile(session, caller.subject_id)
    return to_user_response(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    payload: UserProfileUpdateRequest,
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> UserResponse:
    user = await update_user_profile(
        session,
        user_id=caller.subject_id,
        display_name=payload.display_name,
        photo_url=payload.photo_url,
        fields_set=set(payload.model_fields_set),
    )
    return to_user_response(user)
