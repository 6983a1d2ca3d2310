from medstock.services.auth.identity_provider import (
    IdentityConfigError,
    IdentityTokenError,
    VerifiedIdentity,
    identity_from_claims,
    verify_bearer_token,
    verify_provider_session_token,
)

__all__ = [
    "IdentityConfigError",
    "IdentityTokenError",
    "VerifiedIdentity",
    "identity_from_claims",
    "verify_bearer_token",
    "verify_provider_session_token",
]
