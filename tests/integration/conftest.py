import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from coop_ledger.depends import get_session
from coop_ledger.adapter.repositories.member_repository import SqlAlchemyMemberRepository
from coop_ledger.domain.member import Member


@pytest_asyncio.fixture(scope="function")
async def engine():
    """In-memory SQLite database, schema created fresh for each test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    """Create a new database session for each test"""
    Session = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with Session() as session:
        yield session


@pytest_asyncio.fixture
async def member(db_session):
    """Member with a 1000.00 credit limit and no ledger history"""
    member = await SqlAlchemyMemberRepository(db_session).create(
        Member(name="Maria Santos", credit_limit_cents=100000)
    )
    await db_session.commit()
    return member


@pytest_asyncio.fixture
async def client(db_session):
    """Create test client with database session override"""
    from coop_ledger.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
