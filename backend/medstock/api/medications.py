from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medstock.api.deps import get_family_user, parse_uuid
from medstock.core.db import get_session
from medstock.models.medication import (
    ExpiryStatus,
    Medication,
    MedicationCategory,
    MedicationForm,
)
from medstock.models.user import User
from medstock.schemas.medication import (
    MedicationCreateRequest,
    MedicationDeleteResponse,
    MedicationListResponse,
    MedicationQuantityUpdateRequest,
    MedicationResponse,
    MedicationStatsResponse,
    MedicationUpdateRequest,
)
from medstock.services.medication_service import (
    calculate_expiry_status,
    calculate_stats,
    create_medication,
    delete_medication,
    filter_medications,
    get_family_medication,
    is_low_stock,
    list_family_medications,
    update_medication,
)

router = APIRouter(prefix="/medications", tags=["medications"])


def _enum_value(value: object) -> str | None:
    if value is None:
        return None
    return value.value if hasattr(value, "value") else str(value)


def _to_medication_response(medication: Medication, today: date) -> MedicationResponse:
    return MedicationResponse(
        id=str(medication.id),
        family_id=str(medication.family_id),
        name=medication.name,
        active_ingredient=medication.active_ingredient,
        is_generic=bool(medication.is_generic),
        form=_enum_value(medication.form) or MedicationForm.OTHER.value,
        brand=medication.brand,
        dosage=medication.dosage,
        batch=medication.batch,
        category=_enum_value(medication.category),
        expires_on=medication.expires_on.isoformat(),
        quantity_total=medication.quantity_total,
        quantity_current=medication.quantity_current,
        photo_url=medication.photo_url,
        notes=medication.notes,
        expiry_status=calculate_expiry_status(medication.expires_on, today).value,
        is_low_stock=is_low_stock(medication.quantity_current, medication.quantity_total),
        created_by=medication.created_by,
        created_at=medication.created_at.isoformat(),
        updated_at=medication.updated_at.isoformat(),
    )


@router.get("", response_model=MedicationListResponse)
async def list_medications(
    search: str | None = Query(default=None, max_length=120),
    status_filter: ExpiryStatus | None = Query(default=None, alias="status"),
    form: MedicationForm | None = Query(default=None),
    category: MedicationCategory | None = Query(default=None),
    is_generic: bool | None = Query(default=None),
    user: User = Depends(get_family_user),
    session: AsyncSession = Depends(get_session),
) -> MedicationListResponse:
    today = date.today()
    medications = await list_family_medications(session, family_id=user.family_id)
    filtered = filter_medications(
        medications,
        search=search,
        status=status_filter,
        form=form,
        category=category,
        is_generic=is_generic,
        today=today,
    )
    return MedicationListResponse(
        items=[_to_medication_response(medication, today) for medication in filtered]
    )


@router.get("/stats", response_model=MedicationStatsResponse)
async def medication_stats(
    user: User = Depends(get_family_user),
    session: AsyncSession = Depends(get_session),
) -> MedicationStatsResponse:
    medications = await list_family_medications(session, family_id=user.family_id)
    return MedicationStatsResponse(**calculate_stats(medications, date.today()))


@router.post("", response_model=MedicationResponse, status_code=status.HTTP_201_CREATED)
async def create_medication_endpoint(
    payload: MedicationCreateRequest,
    user: User = Depends(get_family_user),
    session: AsyncSession = Depends(get_session),
) -> MedicationResponse:
    medication = await create_medication(session, user=user, values=payload.model_dump())
    return _to_medication_response(medication, date.today())


@router.get("/{medication_id}", response_model=MedicationResponse)
async def get_medication(
    medication_id: str,
    user: User = Depends(get_family_user),
    session: AsyncSession = Depends(get_session),
) -> MedicationResponse:
    medication = await get_family_medication(
        session,
        family_id=user.family_id,
        medication_id=parse_uuid(medication_id, "medication_id"),
    )
    return _to_medication_response(medication, date.today())


@router.patch("/{medication_id}", response_model=MedicationResponse)
async def update_medication_endpoint(
    medication_id: str,
    payload: MedicationUpdateRequest,
    user: User = Depends(get_family_user),
    session: AsyncSession = Depends(get_session),
) -> MedicationResponse:
    medication = await get_family_medication(
        session,
        family_id=user.family_id,
        medication_id=parse_uuid(medication_id, "medication_id"),
    )
    changes = payload.model_dump(include=set(payload.model_fields_set))
    medication = await update_medication(session, medication=medication, changes=changes)
    return _to_medication_response(medication, date.today())


@router.patch("/{medication_id}/quantity", response_model=MedicationResponse)
async def update_medication_quantity(
    medication_id: str,
    payload: MedicationQuantityUpdateRequest,
    user: User = Depends(get_family_user),
    session: AsyncSession = Depends(get_session),
) -> MedicationResponse:
    medication = await get_family_medication(
        session,
        family_id=user.family_id,
        medication_id=parse_uuid(medication_id, "medication_id"),
    )
    medication = await update_medication(
        session,
        medication=medication,
        changes={"quantity_current": payload.quantity_current},
    )
    return _to_medication_response(medication, date.today())


@router.delete("/{medication_id}", response_model=MedicationDeleteResponse)
async def delete_medication_endpoint(
    medication_id: str,
    user: User = Depends(get_family_user),
    session: AsyncSession = Depends(get_session),
) -> MedicationDeleteResponse:
    medication = await get_family_medication(
        session,
        family_id=user.family_id,
        medication_id=parse_uuid(medication_id, "medication_id"),
    )
    await delete_medication(session, medication=medication)
    return MedicationDeleteResponse(
        medication_id=str(medication.id),
        message="Medication removed successfully.",
    )
