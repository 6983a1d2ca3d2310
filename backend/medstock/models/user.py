from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class UserStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True, max_length=128)
    email: str | None = Field(
        default=None,
        sa_column=Column(String(320), index=True, nullable=True),
    )
    display_name: str | None = Field(default=None, max_length=120)
    photo_url: str | None = Field(default=None, max_length=1024)
    status: UserStatus = Field(default=UserStatus.PENDING, nullable=False, index=True)
    family_id: UUID | None = Field(default=None, foreign_key="families.id", index=True)
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
