from functools import lru_cache
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session

from cfsync.config import get_settings

settings = get_settings()

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def _ensure_sqlite_dir(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


async def get_db():
    async with async_session() as session:
        yield session


async def init_db():
    import cfsync.models  # noqa: F401  registers tables on Base.metadata

    _ensure_sqlite_dir(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# 同步版本的資料庫連線（給排程與 CLI 使用）
@lru_cache
def get_sync_engine() -> Engine:
    _ensure_sqlite_dir(settings.sync_database_url)
    return create_engine(settings.sync_database_url)


def get_sync_session() -> Session:
    return Session(get_sync_engine())
