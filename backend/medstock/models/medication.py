from datetime import UTC, date, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import Column, String
from sqlmodel import Field, SQLModel


def utc_now_naive() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class MedicationForm(str, Enum):
    TABLET = "tablet"
    CAPSULE = "capsule"
    LIQUID = "liquid"
    OINTMENT = "ointment"
    INJECTION = "injection"
    OTHER = "other"


class MedicationCategory(str, Enum):
    ANALGESIC = "analgesic"
    ANTIBIOTIC = "antibiotic"
    ANTI_INFLAMMATORY = "anti_inflammatory"
    ANTIHYPERTENSIVE = "antihypertensive"
    ANTIDIABETIC = "antidiabetic"
    ANTIHISTAMINE = "antihistamine"
    VITAMIN = "vitamin"
    OTHER = "other"


class ExpiryStatus(str, Enum):
    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class Medication(SQLModel, table=True):
    __tablename__ = "medications"

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    family_id: UUID = Field(foreign_key="families.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=120)
    active_ingredient: str = Field(nullable=False, max_length=120)
    is_generic: bool = Field(default=False, nullable=False)
    form: MedicationForm = Field(default=MedicationForm.OTHER, nullable=False)
    brand: str | None = Field(default=None, max_length=120)
    dosage: str | None = Field(default=None, max_length=80)
    batch: str | None = Field(default=None, max_length=80)
    category: MedicationCategory | None = Field(default=None)
    expires_on: date = Field(nullable=False, index=True)
    quantity_total: int = Field(default=0, nullable=False)
    quantity_current: int = Field(default=0, nullable=False)
    photo_url: str | None = Field(default=None, max_length=1024)
    notes: str | None = Field(default=None, sa_column=Column(String(2000), nullable=True))
    created_by: str = Field(nullable=False, max_length=128, index=True)
    created_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now_naive, nullable=False)
