import logging
from dataclasses import replace
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from medstock.core.db import get_session
from medstock.core.errors import InvalidArgumentError, UnauthenticatedError
from medstock.models.user import User
from medstock.services.auth import IdentityTokenError, VerifiedIdentity, verify_bearer_token
from medstock.services.medication_service import require_family_user
from medstock.services.user_service import has_admin_grant

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> VerifiedIdentity:
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("User is not authenticated.")
    try:
        identity = await verify_bearer_token(credentials.credentials)
    except IdentityTokenError as exc:
        logger.warning("Rejected bearer token: %s", exc)
        raise UnauthenticatedError("Invalid authentication credentials.") from exc

    if not identity.is_admin and await has_admin_grant(session, identity.subject_id):
        identity = replace(identity, is_admin=True)
    return identity


async def get_family_user(
    caller: VerifiedIdentity = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
) -> User:
    return await require_family_user(session, caller.subject_id)


def parse_uuid(raw_value: str, field_name: str) -> UUID:
    try:
        return UUID(str(raw_value).strip())
    except ValueError as exc:
        raise InvalidArgumentError(f"Invalid {field_name}") from exc
