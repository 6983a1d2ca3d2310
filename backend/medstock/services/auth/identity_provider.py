import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx
from jose import JWTError, jwt

from medstock.core.config import Settings, get_settings
from medstock.core.security import decode_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    subject_id: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    is_admin: bool = False


class IdentityTokenError(ValueError):
    pass


class IdentityConfigError(IdentityTokenError):
    pass


@dataclass(frozen=True)
class ProviderConfig:
    issuer: str
    jwks_url: str
    authorized_parties: tuple[str, ...]
    audience: str | None
    jwks_cache_ttl_seconds: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfig":
        if not settings.identity_provider_enabled:
            raise IdentityConfigError("External identity provider is not enabled on this API.")

        issuer = _text_claim(settings.identity_issuer)
        if not issuer:
            raise IdentityConfigError(
                "IDENTITY_ISSUER is required when the identity provider is enabled."
            )
        issuer = issuer.rstrip("/")
        return cls(
            issuer=issuer,
            jwks_url=_text_claim(settings.identity_jwks_url) or f"{issuer}/.well-known/jwks.json",
            authorized_parties=tuple(settings.identity_authorized_party_list),
            audience=_text_claim(settings.identity_jwt_audience),
            jwks_cache_ttl_seconds=max(int(settings.identity_jwks_cache_ttl_seconds), 60),
        )


# jwks_url -> (expires_at, key set)
_jwks_cache: dict[str, tuple[float, dict[str, Any]]] = {}
_jwks_lock = asyncio.Lock()


def _text_claim(value: Any) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def identity_from_claims(claims: dict[str, Any]) -> VerifiedIdentity:
    """Map standard OIDC claims onto a caller identity.

    ``isAdmin`` (or ``is_admin``) only counts when it is the boolean ``true``.
    """
    subject_id = _text_claim(claims.get("sub"))
    if not subject_id:
        raise IdentityTokenError("Invalid token subject.")

    email = _text_claim(claims.get("email"))
    return VerifiedIdentity(
        subject_id=subject_id,
        email=email.lower() if email else None,
        display_name=_text_claim(claims.get("name")),
        photo_url=_text_claim(claims.get("picture")),
        is_admin=claims.get("isAdmin") is True or claims.get("is_admin") is True,
    )


async def _get_jwks(jwks_url: str, cache_ttl_seconds: int) -> dict[str, Any]:
    cached = _jwks_cache.get(jwks_url)
    if cached and cached[0] > time.time():
        return cached[1]

    async with _jwks_lock:
        cached = _jwks_cache.get(jwks_url)
        if cached and cached[0] > time.time():
            return cached[1]

        try:
            async with httpx.AsyncClient(timeout=8.0) as client:
                response = await client.get(jwks_url)
                response.raise_for_status()
                key_set = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Fetching signing keys from %s failed: %s", jwks_url, exc)
            raise IdentityTokenError("Unable to fetch identity provider signing keys.") from exc

        keys = key_set.get("keys") if isinstance(key_set, dict) else None
        if not isinstance(keys, list) or not keys:
            raise IdentityTokenError("Invalid JWKS response.")

        _jwks_cache[jwks_url] = (time.time() + cache_ttl_seconds, key_set)
        return key_set


def _signing_key_for(token: str, key_set: dict[str, Any]) -> dict[str, Any]:
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError as exc:
        raise IdentityTokenError("Invalid session token.") from exc

    keys = [key for key in key_set.get("keys") or [] if isinstance(key, dict)]
    if kid:
        matching = [key for key in keys if key.get("kid") == kid]
        if not matching:
            raise IdentityTokenError("Unable to find matching signing key.")
        return matching[0]
    if len(keys) == 1:
        return keys[0]
    raise IdentityTokenError("Session token is missing key id.")


async def verify_provider_session_token(token: str) -> VerifiedIdentity:
    token = _text_claim(token)
    if not token:
        raise IdentityTokenError("Missing session token.")

    config = ProviderConfig.from_settings(get_settings())
    key_set = await _get_jwks(config.jwks_url, config.jwks_cache_ttl_seconds)
    try:
        claims = jwt.decode(
            token,
            _signing_key_for(token, key_set),
            algorithms=["RS256"],
            audience=config.audience,
            options={"verify_aud": config.audience is not None, "verify_iss": False},
        )
    except JWTError as exc:
        raise IdentityTokenError("Invalid session token.") from exc

    # Compared without the trailing slash some providers add.
    if (_text_claim(claims.get("iss")) or "").rstrip("/") != config.issuer:
        raise IdentityTokenError("Invalid token issuer.")
    if config.authorized_parties and _text_claim(claims.get("azp")) not in config.authorized_parties:
        raise IdentityTokenError("Invalid token authorized party.")
    return identity_from_claims(claims)


async def verify_bearer_token(token: str) -> VerifiedIdentity:
    """Resolve a bearer token to a verified caller.

    With the external provider enabled only provider-signed tokens are
    accepted; otherwise tokens signed with the application secret are.
    """
    if get_settings().identity_provider_enabled:
        return await verify_provider_session_token(token)

    token = _text_claim(token)
    if not token:
        raise IdentityTokenError("Missing session token.")
    try:
        claims = decode_access_token(token)
    except ValueError as exc:
        raise IdentityTokenError("Invalid session token.") from exc
    return identity_from_claims(claims)
