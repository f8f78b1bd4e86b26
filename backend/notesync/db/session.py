"""Async engine and session factory (SQLite by default, any async URL accepted)."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from notesync.config import get_settings

Base = declarative_base()

_settings = get_settings()
_db_url = _settings.sqlalchemy_url
_is_sqlite = _db_url.startswith("sqlite")

if _is_sqlite:
    # One aiosqlite connection per session; nothing bound to a single event loop
    _engine = create_async_engine(_db_url, echo=False, poolclass=NullPool)
else:
    _engine = create_async_engine(_db_url, echo=False, pool_pre_ping=True)

_async_session = async_sessionmaker(
    _engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


if _is_sqlite:

    @event.listens_for(_engine.sync_engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record) -> None:
        """
        Enable FK cascades, WAL (readers do not block the writer) and a busy timeout,
        and hand transaction control to SQLAlchemy (needed for SAVEPOINT).
        """
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(_settings.sqlite_busy_timeout_ms)}")
        cursor.close()

    @event.listens_for(_engine.sync_engine, "begin")
    def _sqlite_on_begin(conn) -> None:
        # Take the write lock up front so concurrent writers queue on busy_timeout
        # instead of failing on a SHARED -> RESERVED upgrade
        conn.exec_driver_sql("BEGIN IMMEDIATE")


async def init_db() -> None:
    """Create tables if they do not exist."""
    # Import models so they register with Base before create_all
    from notesync.files import models as _file_models  # noqa: F401
    from notesync.users import models as _user_models  # noqa: F401
    from notesync.workspaces import models as _workspace_models  # noqa: F401

    if _is_sqlite:
        _settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session; commit on success, roll back on any exception."""
    async with _async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async session."""
    async with get_session() as session:
        yield session
