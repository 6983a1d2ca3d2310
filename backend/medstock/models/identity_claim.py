from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class IdentityClaim(SQLModel, table=True):
    __tablename__ = "identity_claims"

    subject_id: str = Field(primary_key=True, max_length=128)
    is_admin: bool = Field(default=False, nullable=False)
    granted_by: str | None = Field(default=None, max_length=128)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
