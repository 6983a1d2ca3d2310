from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from medstock.core.config import get_settings

settings = get_settings()


def create_access_token(
    subject: str,
    *,
    email: str | None = None,
    name: str | None = None,
    is_admin: bool = False,
) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {"sub": subject, "exp": expire}
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    if is_admin:
        payload["isAdmin"] = True
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
