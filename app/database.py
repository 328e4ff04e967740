"""Database engine, session factory, and base model."""
import math

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

# Functions the distance queries use. PostgreSQL has them built in, SQLite
# only when compiled with its math extension.
SQLITE_MATH_FUNCTIONS = {
    "radians": math.radians,
    "sin": math.sin,
    "cos": math.cos,
    "asin": math.asin,
    "sqrt": math.sqrt,
}


def _null_safe(fn):
    def wrapper(value):
        return None if value is None else fn(value)
    return wrapper


def _register_sqlite_math(dbapi_connection, connection_record):
    for name, fn in SQLITE_MATH_FUNCTIONS.items():
        dbapi_connection.create_function(name, 1, _null_safe(fn))


def install_sqlite_functions(async_engine: AsyncEngine) -> None:
    """Register the math functions on every new SQLite connection."""
    if async_engine.dialect.name == "sqlite":
        event.listen(async_engine.sync_engine, "connect", _register_sqlite_math)


def _engine_options(url: str) -> dict:
    # SQLite (dev/tests) does not take queue pool sizing.
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)
install_sqlite_functions(engine)
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass
