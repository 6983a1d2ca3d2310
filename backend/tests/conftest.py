from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from medstock.core.db import get_session
from medstock.core.security import create_access_token
from medstock.main import app
from medstock.models import family as _family  # noqa: F401
from medstock.models import identity_claim as _identity_claim  # noqa: F401
from medstock.models import medication as _medication  # noqa: F401
from medstock.models import user as _user  # noqa: F401
from medstock.models.family import Family, FamilyRole
from medstock.models.user import User, UserStatus

UserFactory = Callable[..., Awaitable[User]]
FamilyFactory = Callable[..., Awaitable[Family]]


@pytest.fixture
async def session_maker(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    # A file database, so concurrent sessions get their own connections.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'medstock-test.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest.fixture
async def session(session_maker) -> AsyncIterator[AsyncSession]:
    async with session_maker() as db_session:
        yield db_session


@pytest.fixture
async def client(session_maker) -> AsyncIterator[AsyncClient]:
    async def override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_maker() as db_session:
            yield db_session

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_maker) -> UserFactory:
    async def _make_user(
        user_id: str,
        *,
        status: UserStatus = UserStatus.APPROVED,
        email: str | None = None,
        family_id=None,
    ) -> User:
        now = datetime.now(UTC).replace(tzinfo=None)
        async with session_maker() as db_session:
            user = User(
                id=user_id,
                email=email or f"{user_id}@example.com",
                display_name=user_id,
                status=status,
                family_id=family_id,
                created_at=now,
                updated_at=now,
            )
            db_session.add(user)
            await db_session.commit()
            await db_session.refresh(user)
            return user

    return _make_user


@pytest.fixture
def make_family(session_maker) -> FamilyFactory:
    async def _make_family(
        invite_code: str,
        *,
        members: list[str],
        family_name: str = "Test Family",
        created_by: str | None = None,
    ) -> Family:
        async with session_maker() as db_session:
            family = Family(
                family_name=family_name,
                created_by=created_by or members[0],
                invite_code=invite_code,
                members=list(members),
                member_roles={
                    member: FamilyRole.ADMIN.value if index == 0 else FamilyRole.EDITOR.value
                    for index, member in enumerate(members)
                },
            )
            db_session.add(family)
            await db_session.flush()
            for member in members:
                user = await db_session.get(User, member)
                if user:
                    user.family_id = family.id
                    db_session.add(user)
            await db_session.commit()
            await db_session.refresh(family)
            return family

    return _make_family


def auth_headers(subject: str, *, is_admin: bool = False, email: str | None = None) -> dict[str, str]:
    token = create_access_token(subject, email=email, is_admin=is_admin)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[..., dict[str, str]]:
    return auth_headers
