from medstock.models.family import Family, FamilyRole
from medstock.models.identity_claim import IdentityClaim
from medstock.models.medication import (
    ExpiryStatus,
    Medication,
    MedicationCategory,
    MedicationForm,
)
from medstock.models.user import User, UserStatus

__all__ = [
    "ExpiryStatus",
    "Family",
    "FamilyRole",
    "IdentityClaim",
    "Medication",
    "MedicationCategory",
    "MedicationForm",
    "User",
    "UserStatus",
]
