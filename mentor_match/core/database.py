import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from mentor_match.core.config import settings

logger = structlog.get_logger()

_connect_args: dict = {}
if settings.DATABASE_URL.startswith("postgresql+asyncpg"):
    _connect_args = {
        "server_settings": {
            "statement_timeout": "30000",                    # 30s max per SQL statement
            "idle_in_transaction_session_timeout": "60000",  # Kill idle-in-tx sessions after 60s
            "lock_timeout": "10000",                         # 10s max waiting for a row lock
        },
        "command_timeout": 30,         # asyncpg network-level command timeout (seconds)
    }

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.APP_DEBUG,
    pool_pre_ping=True,               # Drop stale connections before use
    pool_recycle=1800,                 # Recycle connections every 30 min
    connect_args=_connect_args,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for services that own their transactions.

    Overridden in tests to point at a throwaway database.
    """
    return async_session_factory
