import asyncio
import logging
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from medstock.core.config import get_settings
from medstock.core.errors import InternalError

logger = logging.getLogger(__name__)

settings = get_settings()

engine = create_async_engine(settings.database_url, echo=False, future=True)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

T = TypeVar("T")


class TransactionConflict(Exception):
    """A compare-and-swap write inside a unit of work lost a race."""


async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session


async def init_db() -> None:
    import medstock.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def run_in_transaction(
    session: AsyncSession,
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    max_attempts: int | None = None,
) -> T:
    """Run ``work`` and commit, re-running it when it reports a conflict.

    ``work`` must derive every write from state it reads during the same
    attempt: after a conflict the session is rolled back and ``work`` starts
    over. Any other exception rolls back and propagates unchanged.
    """
    attempts = max(int(max_attempts or settings.transaction_max_attempts), 1)
    for attempt in range(1, attempts + 1):
        try:
            result = await work(session)
            await session.commit()
            return result
        except TransactionConflict:
            await session.rollback()
            logger.debug("Transaction conflict, attempt %d of %d", attempt, attempts)
            if attempt < attempts:
                await asyncio.sleep(random.uniform(0, 0.005 * attempt))
        except Exception:
            await session.rollback()
            raise

    logger.error("Transaction gave up after %d conflicting attempts", attempts)
    raise InternalError("Could not complete the operation. Try again.")
