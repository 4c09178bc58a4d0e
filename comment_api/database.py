from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from comment_api.config import settings
from comment_api.middleware import install_query_counter

# Everything a store round-trip may raise.  Only the subset accepted by
# is_store_unavailable() means the store is down; the rest propagate.
STORE_ERRORS: tuple[type[BaseException], ...] = (DBAPIError, OSError)


def is_store_unavailable(exc: BaseException) -> bool:
    """
    Return True when *exc* reports a lost or refused store connection.

    asyncpg surfaces refused connections as plain OSError subclasses,
    either raw or as the ``orig`` of a wrapped DBAPIError.  SQL errors
    such as a missing table or a syntax error are not outages.
    """
    if isinstance(exc, OSError):
        return True
    if isinstance(exc, DBAPIError):
        return (
            exc.connection_invalidated
            or isinstance(exc, InterfaceError)
            or isinstance(exc.orig, OSError)
        )
    return False


# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_store(db: AsyncSession) -> bool:
    """Return True when a trivial round-trip to the store succeeds."""
    try:
        await db.execute(text("SELECT 1"))
    except STORE_ERRORS:
        return False
    return True
