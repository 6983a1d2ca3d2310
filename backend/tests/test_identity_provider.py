import time

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from medstock.core.config import Settings
from medstock.core.security import create_access_token
from medstock.services.auth import IdentityTokenError, identity_from_claims, verify_bearer_token
from medstock.services.auth import identity_provider
from medstock.services.auth.identity_provider import ProviderConfig

ISSUER = "https://id.example.com"
KEY_ID = "test-key"


@pytest.fixture(scope="module")
def rsa_keys() -> tuple[str, dict]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, algorithm="RS256").to_dict()
    public_jwk["kid"] = KEY_ID
    return private_pem, public_jwk


@pytest.fixture
def provider_enabled(monkeypatch: pytest.MonkeyPatch, rsa_keys) -> str:
    _, public_jwk = rsa_keys
    monkeypatch.setattr(
        identity_provider,
        "get_settings",
        lambda: Settings(
            identity_provider_enabled=True,
            identity_issuer=ISSUER,
            identity_authorized_parties="https://app.example.com",
        ),
    )

    async def _fake_jwks(jwks_url: str, cache_ttl_seconds: int) -> dict:
        assert jwks_url == f"{ISSUER}/.well-known/jwks.json"
        return {"keys": [public_jwk]}

    monkeypatch.setattr(identity_provider, "_get_jwks", _fake_jwks)
    return rsa_keys[0]


def _provider_token(private_pem: str, **overrides) -> str:
    claims = {
        "sub": "user_provider_001",
        "iss": ISSUER,
        "azp": "https://app.example.com",
        "exp": int(time.time()) + 300,
        "email": "Provider.User@Example.com",
        "name": "Provider User",
        "picture": "https://cdn.example.com/p.png",
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": KEY_ID})


def test_identity_from_claims_reads_profile_fields() -> None:
    identity = identity_from_claims(
        {
            "sub": " user-1 ",
            "email": "First@Example.com",
            "name": " Ana Costa ",
            "picture": "https://cdn.example.com/ana.png",
            "isAdmin": True,
        }
    )
    assert identity.subject_id == "user-1"
    assert identity.email == "first@example.com"
    assert identity.display_name == "Ana Costa"
    assert identity.photo_url == "https://cdn.example.com/ana.png"
    assert identity.is_admin is True


def test_provider_config_derives_jwks_url_from_issuer() -> None:
    config = ProviderConfig.from_settings(
        Settings(identity_provider_enabled=True, identity_issuer=f"{ISSUER}/")
    )
    assert config.issuer == ISSUER
    assert config.jwks_url == f"{ISSUER}/.well-known/jwks.json"
    assert config.authorized_parties == ()
    assert config.audience is None


@pytest.mark.parametrize("admin_claim", ["true", 1, "yes", None])
def test_admin_claim_requires_literal_true(admin_claim: object) -> None:
    identity = identity_from_claims({"sub": "user-1", "isAdmin": admin_claim})
    assert identity.is_admin is False


def test_identity_from_claims_requires_subject() -> None:
    with pytest.raises(IdentityTokenError):
        identity_from_claims({"email": "someone@example.com"})


@pytest.mark.asyncio
async def test_local_token_round_trips_through_verifier() -> None:
    token = create_access_token("local-user", email="Local@Example.com", name="Local", is_admin=True)

    identity = await verify_bearer_token(token)
    assert identity.subject_id == "local-user"
    assert identity.email == "local@example.com"
    assert identity.display_name == "Local"
    assert identity.is_admin is True


@pytest.mark.asyncio
async def test_local_verifier_rejects_tampered_token() -> None:
    token = create_access_token("local-user")

    with pytest.raises(IdentityTokenError):
        await verify_bearer_token(token[:-4] + "abcd")


@pytest.mark.asyncio
async def test_provider_token_is_verified_against_jwks(provider_enabled: str) -> None:
    identity = await verify_bearer_token(_provider_token(provider_enabled))

    assert identity.subject_id == "user_provider_001"
    assert identity.email == "provider.user@example.com"
    assert identity.display_name == "Provider User"
    assert identity.photo_url == "https://cdn.example.com/p.png"
    assert identity.is_admin is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"iss": "https://evil.example.com"},
        {"azp": "https://other.example.com"},
        {"exp": int(time.time()) - 60},
    ],
)
async def test_provider_token_claims_are_enforced(provider_enabled: str, overrides: dict) -> None:
    with pytest.raises(IdentityTokenError):
        await verify_bearer_token(_provider_token(provider_enabled, **overrides))


@pytest.mark.asyncio
async def test_provider_mode_rejects_locally_signed_tokens(provider_enabled: str) -> None:
    with pytest.raises(IdentityTokenError):
        await verify_bearer_token(create_access_token("local-user"))


@pytest.mark.asyncio
async def test_provider_requires_issuer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        identity_provider,
        "get_settings",
        lambda: Settings(identity_provider_enabled=True, identity_issuer=None),
    )

    with pytest.raises(IdentityTokenError):
        await verify_bearer_token("anything")
