from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from app.platform.config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_foreign_keys(sync_engine):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def sync_database_url(url: str) -> str:
    """Map an async driver URL onto its blocking counterpart for the worker."""
    if url.startswith("postgresql+asyncpg://"):
        return url.replace("postgresql+asyncpg://", "postgresql://", 1)
    if url.startswith("sqlite+aiosqlite://"):
        return url.replace("sqlite+aiosqlite://", "sqlite://", 1)
    return url


def _pool_options(url: str, pool_size: int, max_overflow: int) -> dict:
    if _is_sqlite(url):
        # File-backed SQLite is shared by the API and the worker; no pooling
        return {"poolclass": NullPool}
    return {
        "pool_pre_ping": True,
        "pool_recycle": 1800,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": 30,
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    future=True,
    **_pool_options(settings.DATABASE_URL, pool_size=20, max_overflow=30),
)
if _is_sqlite(settings.DATABASE_URL):
    _enable_sqlite_foreign_keys(engine.sync_engine)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False, autocommit=False)


async def get_db():
    async with SessionLocal() as session:
        yield session


def build_sync_session_factory(database_url: str) -> sessionmaker:
    """
    Blocking session factory used by the analysis worker and Celery tasks.

    Selenium is synchronous, so the worker talks to the store through a
    regular Session rather than the API's AsyncSession.
    """
    url = sync_database_url(database_url)
    sync_engine = create_engine(url, **_pool_options(url, pool_size=10, max_overflow=10))
    if _is_sqlite(url):
        _enable_sqlite_foreign_keys(sync_engine)
    return sessionmaker(bind=sync_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def get_sync_session_factory() -> sessionmaker:
    return build_sync_session_factory(settings.DATABASE_URL)
