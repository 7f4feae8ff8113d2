"""
Database configuration and session management
"""
import asyncio
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from hostel_complaints.config import get_settings
from hostel_complaints.exceptions import StorageError
from hostel_complaints.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)


def _get_async_url(url: str) -> str:
    """Convert database URL to async variant"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://")
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return url


def _connect_args(url: str, timeout: float) -> dict:
    """Driver-level timeouts so no store call blocks indefinitely"""
    if url.startswith("sqlite"):
        return {"timeout": timeout}
    if url.startswith("postgresql+asyncpg"):
        return {"timeout": timeout, "command_timeout": timeout}
    return {}


# Create async engine
database_url = _get_async_url(settings.DATABASE_URL)
is_sqlite = database_url.startswith("sqlite")

engine_kwargs = {
    "echo": settings.DEBUG,
    "future": True,
    "connect_args": _connect_args(database_url, settings.DB_TIMEOUT_SECONDS),
}

# SQLite doesn't support pool_size
if not is_sqlite:
    engine_kwargs["pool_size"] = 20
    engine_kwargs["max_overflow"] = 10
    engine_kwargs["pool_timeout"] = settings.DB_TIMEOUT_SECONDS

engine = create_async_engine(database_url, **engine_kwargs)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Base class for models
Base = declarative_base()


@asynccontextmanager
async def storage_errors(operation: str):
    """Translate driver failures and timeouts into StorageError"""
    try:
        yield
    except (SQLAlchemyError, asyncio.TimeoutError, OSError) as e:
        logger.error(f"Storage failure during {operation}: {e}")
        raise StorageError(f"Data store unavailable during {operation}") from e


async def get_db() -> AsyncSession:
    """Dependency for getting database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
