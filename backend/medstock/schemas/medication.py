from datetime import date

from pydantic import BaseModel, Field

from medstock.models.medication import MedicationCategory, MedicationForm


class MedicationCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    active_ingredient: str = Field(min_length=1, max_length=120)
    is_generic: bool = False
    form: MedicationForm = MedicationForm.OTHER
    brand: str | None = Field(default=None, max_length=120)
    dosage: str | None = Field(default=None, max_length=80)
    batch: str | None = Field(default=None, max_length=80)
    category: MedicationCategory | None = None
    expires_on: date
    quantity_total: int = Field(ge=0)
    quantity_current: int = Field(ge=0)
    photo_url: str | None = Field(default=None, max_length=1024)
    notes: str | None = Field(default=None, max_length=2000)


class MedicationUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    active_ingredient: str | None = Field(default=None, min_length=1, max_length=120)
    is_generic: bool | None = None
    form: MedicationForm | None = None
    brand: str | None = Field(default=None, max_length=120)
    dosage: str | None = Field(default=None, max_length=80)
    batch: str | None = Field(default=None, max_length=80)
    category: MedicationCategory | None = None
    expires_on: date | None = None
    quantity_total: int | None = Field(default=None, ge=0)
    quantity_current: int | None = Field(default=None, ge=0)
    photo_url: str | None = Field(default=None, max_length=1024)
    notes: str | None = Field(default=None, max_length=2000)


class MedicationQuantityUpdateRequest(BaseModel):
    quantity_current: int = Field(ge=0)


class MedicationResponse(BaseModel):
    id: str
    family_id: str
    name: str
    active_ingredient: str
    is_generic: bool
    form: str
    brand: str | None = None
    dosage: str | None = None
    batch: str | None = None
    category: str | None = None
    expires_on: str
    quantity_total: int
    quantity_current: int
    photo_url: str | None = None
    notes: str | None = None
    expiry_status: str
    is_low_stock: bool
    created_by: str
    created_at: str
    updated_at: str


class MedicationListResponse(BaseModel):
    items: list[MedicationResponse]


class MedicationStatsResponse(BaseModel):
    total: int
    expiring_soon: int
    expired: int
    low_stock: int


class MedicationDeleteResponse(BaseModel):
    medication_id: str
    message: str
