from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from hometimer.config import settings


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_async_engine(settings.database_url, echo=False)
async_session = make_session_factory(engine)


def _ensure_sqlite_dir(bind: AsyncEngine) -> None:
    """SQLite creates the file but not its directory."""
    url = bind.url
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def create_tables(bind: AsyncEngine) -> None:
    # Models register themselves on Base when imported
    from hometimer.models import schedule, group  # noqa: F401

    _ensure_sqlite_dir(bind)
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db():
    """Create all tables on the application database."""
    await create_tables(engine)
