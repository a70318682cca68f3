"""
Async engine and per-request sessions for the clinic database.

WHY: Booking and stock changes touch several tables; tying one session to
one request gives each request a single transaction.
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.core.config import settings


engine = create_async_engine(
    settings.async_database_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

# Objects stay readable after commit for building responses
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session that commits when the handler returns.

    Any exception rolls the whole request back, so a rule violated halfway
    through (for example a clashing slot found after the patient row was
    touched) leaves nothing behind.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
