from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, date, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from medstock.core.config import get_settings
from medstock.core.errors import FailedPreconditionError, InvalidArgumentError, NotFoundError
from medstock.models.medication import (
    ExpiryStatus,
    Medication,
    MedicationCategory,
    MedicationForm,
)
from medstock.models.user import User
from medstock.services.user_service import clean_optional_text, require_approved_user

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("brand", "dosage", "batch", "photo_url", "notes")


def _current_time() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def calculate_expiry_status(expires_on: date, today: date | None = None) -> ExpiryStatus:
    reference = today or date.today()
    days_left = (expires_on - reference).days
    if days_left < 0:
        return ExpiryStatus.EXPIRED
    if days_left <= get_settings().medication_expiry_warning_days:
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.VALID


def is_low_stock(quantity_current: int, quantity_total: int) -> bool:
    if quantity_total == 0:
        return False
    return quantity_current < quantity_total * get_settings().medication_low_stock_ratio


def filter_medications(
    medications: Iterable[Medication],
    *,
    search: str | None = None,
    status: ExpiryStatus | None = None,
    form: MedicationForm | None = None,
    category: MedicationCategory | None = None,
    is_generic: bool | None = None,
    today: date | None = None,
) -> list[Medication]:
    filtered = list(medications)

    term = (search or "").strip().lower()
    if term:
        filtered = [
            med
            for med in filtered
            if term in med.name.lower()
            or term in med.active_ingredient.lower()
            or (med.brand and term in med.brand.lower())
        ]
    if status is not None:
        filtered = [med for med in filtered if calculate_expiry_status(med.expires_on, today) == status]
    if form is not None:
        filtered = [med for med in filtered if med.form == form]
    if category is not None:
        filtered = [med for med in filtered if med.category == category]
    if is_generic is not None:
        filtered = [med for med in filtered if med.is_generic == is_generic]
    return filtered


def calculate_stats(medications: Iterable[Medication], today: date | None = None) -> dict[str, int]:
    items = list(medications)
    statuses = [calculate_expiry_status(med.expires_on, today) for med in items]
    return {
        "total": len(items),
        "expiring_soon": statuses.count(ExpiryStatus.EXPIRING_SOON),
        "expired": statuses.count(ExpiryStatus.EXPIRED),
        "low_stock": sum(1 for med in items if is_low_stock(med.quantity_current, med.quantity_total)),
    }


def _validate_quantities(quantity_current: int, quantity_total: int) -> None:
    if quantity_current < 0 or quantity_total < 0:
        raise InvalidArgumentError("Quantities cannot be negative.")
    if quantity_current > quantity_total:
        raise InvalidArgumentError("quantity_current cannot exceed quantity_total.")


def _require_text(value: str | None, field_name: str) -> str:
    cleaned = clean_optional_text(value)
    if not cleaned:
        raise InvalidArgumentError(f"{field_name} is required.")
    return cleaned


async def require_family_user(session: AsyncSession, caller_id: str) -> User:
    user = await require_approved_user(session, caller_id)
    if user.family_id is None:
        raise FailedPreconditionError("User does not belong to a family.")
    return user


async def list_family_medications(session: AsyncSession, *, family_id: UUID) -> list[Medication]:
    result = await session.execute(
        select(Medication)
        .where(Medication.family_id == family_id)
        .order_by(Medication.expires_on.asc(), Medication.name.asc())
    )
    return list(result.scalars().all())


async def get_family_medication(
    session: AsyncSession,
    *,
    family_id: UUID,
    medication_id: UUID,
) -> Medication:
    result = await session.execute(
        select(Medication).where(
            Medication.id == medication_id,
            Medication.family_id == family_id,
        )
    )
    medication = result.scalar_one_or_none()
    if not medication:
        raise NotFoundError("Medication not found in your family.")
    return medication


async def create_medication(
    session: AsyncSession,
    *,
    user: User,
    values: dict,
) -> Medication:
    quantity_total = int(values.get("quantity_total") or 0)
    quantity_current = int(values.get("quantity_current") or 0)
    _validate_quantities(quantity_current, quantity_total)

    now = _current_time()
    medication = Medication(
        family_id=user.family_id,
        name=_require_text(values.get("name"), "name"),
        active_ingredient=_require_text(values.get("active_ingredient"), "active_ingredient"),
        is_generic=bool(values.get("is_generic", False)),
        form=values.get("form") or MedicationForm.OTHER,
        category=values.get("category"),
        expires_on=values["expires_on"],
        quantity_total=quantity_total,
        quantity_current=quantity_current,
        created_by=user.id,
        created_at=now,
        updated_at=now,
        **{field: clean_optional_text(values.get(field)) for field in _TEXT_FIELDS},
    )
    session.add(medication)
    await session.commit()
    await session.refresh(medication)
    logger.info("User %s added medication %s to family %s", user.id, medication.id, user.family_id)
    return medication


async def update_medication(
    session: AsyncSession,
    *,
    medication: Medication,
    changes: dict,
) -> Medication:
    if "name" in changes:
        medication.name = _require_text(changes["name"], "name")
    if "active_ingredient" in changes:
        medication.active_ingredient = _require_text(
            changes["active_ingredient"], "active_ingredient"
        )
    for field in ("is_generic", "form", "expires_on", "quantity_total", "quantity_current"):
        if field in changes and changes[field] is not None:
            setattr(medication, field, changes[field])
    if "category" in changes:
        medication.category = changes["category"]
    for field in _TEXT_FIELDS:
        if field in changes:
            setattr(medication, field, clean_optional_text(changes[field]))

    _validate_quantities(medication.quantity_current, medication.quantity_total)
    medication.updated_at = _current_time()
    session.add(medication)
    await session.commit()
    await session.refresh(medication)
    return medication


async def delete_medication(session: AsyncSession, *, medication: Medication) -> None:
    await session.delete(medication)
    await session.commit()
    logger.info("Deleted medication %s from family %s", medication.id, medication.family_id)
