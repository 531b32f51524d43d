"""
Database engine and sessions for the portal.

The engine is created on first use so importing the models never needs a
reachable database. Request handlers get a session through `get_db`; the
startup tasks, the seed command and the readiness check open one with
`session_scope`.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from researchcell.core.config import settings

Base = declarative_base()

_engine: Optional[AsyncEngine] = None
_sessions: Optional[async_sessionmaker[AsyncSession]] = None


def async_database_url(url: str) -> str:
    """postgresql:// URLs are served by asyncpg"""
    if url.startswith("postgresql://"):
        return "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def engine_options(url: str) -> Dict[str, Any]:
    """create_async_engine keyword arguments for the backend named in `url`"""
    options: Dict[str, Any] = {"echo": settings.DB_ECHO}
    if make_url(url).get_backend_name() == "sqlite":
        # One connection per session; file databases are shared between tests and workers
        options.update(connect_args={"check_same_thread": False}, poolclass=NullPool)
    else:
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return options


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        url = async_database_url(settings.DATABASE_URL)
        _engine = create_async_engine(url, **engine_options(url))
    return _engine


def get_session_local() -> async_sessionmaker[AsyncSession]:
    """
    Session factory shared by the whole process.

    Objects stay readable after commit and nothing is flushed implicitly;
    the submission store decides when to flush and commit.
    """
    global _sessions
    if _sessions is None:
        _sessions = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _sessions


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request"""
    async with get_session_local()() as session:
        yield session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request session. Services commit their own units of work; anything left
    pending when the handler returns is committed, and an error rolls back.
    """
    async with session_scope() as session:
        try:
            yield session
            if session.new or session.dirty or session.deleted:
                await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create the portal tables that do not exist yet"""
    import researchcell.models  # noqa: F401  register models on the metadata

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    global _engine, _sessions
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None
