from typing import Any

from pydantic import BaseModel

from medstock.schemas.user import UserResponse


class ApproveUserRequest(BaseModel):
    # Strict types are checked in the service so bad input maps to invalid_argument.
    uid: Any = None
    approve: Any = None


class ApproveUserResponse(BaseModel):
    success: bool = True
    uid: str
    status: str
    message: str


class SetAdminRequest(BaseModel):
    email: Any = None


class SetAdminResponse(BaseModel):
    success: bool = True
    uid: str
    message: str


class AdminUserListResponse(BaseModel):
    items: list[UserResponse]


class AdminUserStatsResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
