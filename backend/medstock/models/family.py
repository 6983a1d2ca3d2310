from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


INVITE_CODE_PREFIX = "FAM-"
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_SUFFIX_LENGTH = 6
INVITE_CODE_LENGTH = len(INVITE_CODE_PREFIX) + INVITE_CODE_SUFFIX_LENGTH


class FamilyRole(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Family(SQLModel, table=True):
    __tablename__ = "families"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    family_name: str = Field(nullable=False, max_length=120)
    created_by: str = Field(nullable=False, max_length=128, index=True)
    invite_code: str = Field(index=True, unique=True, nullable=False, max_length=16)
    # Subject ids; order carries no meaning.
    members: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    member_roles: dict[str, str] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )
    # Bumped by every membership write; writers compare-and-swap on it.
    version: int = Field(default=1, nullable=False)
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
