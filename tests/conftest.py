"""Pytest fixtures for database testing."""

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dropship_ops.api.app import app
from dropship_ops.db import models  # noqa: F401
from dropship_ops.db.base import Base, build_engine, create_schema, get_db
from dropship_ops.scoring.models import DemandPoint, DemandSample, ListingCandidate


# Use SQLite in-memory for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def passing_candidate() -> ListingCandidate:
    """A listing that passes the default discovery criteria.

    $15 cost at 70% markup -> $25.50 list price, 41.2% margin.
    """
    return ListingCandidate(
        identifier="B07XYZ1234",
        title="Silicone Baking Mat Set of 3",
        price=Decimal("15.00"),
        rating=4.6,
        review_count=2840,
        is_prime_eligible=True,
        availability_text="In Stock",
    )


@pytest.fixture
def make_sample() -> Callable[..., DemandSample]:
    """Factory for daily sales-rank samples ending 2024-06-01."""

    def _make(ranks: list[int], identifier: str = "B07XYZ1234") -> DemandSample:
        end = datetime(2024, 6, 1, tzinfo=timezone.utc)
        start = end - timedelta(days=len(ranks) - 1)
        return DemandSample(
            identifier=identifier,
            points=[
                DemandPoint(timestamp=start + timedelta(days=i), sales_rank=rank)
                for i, rank in enumerate(ranks)
            ],
        )

    return _make


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create in-memory SQLite session for service tests."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db() -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session with isolated transactions.

    Creates an in-memory SQLite database, creates all tables,
    and yields a session. Overrides app's get_db dependency.
    """
    # Create test engine
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        # Override app's get_db dependency
        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

        app.dependency_overrides[get_db] = override_get_db

        try:
            yield session
        finally:
            # Clean up
            app.dependency_overrides.clear()
            await session.rollback()

    # Drop all tables after test
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def file_db(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed SQLite shared by several sessions.

    Overrides app's get_db so every request gets its own session, as in
    production.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_schema(engine)

    session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    try:
        yield session_maker
    finally:
        app.dependency_overrides.clear()
        await engine.dispose()
