from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings
from .models import Base


def create_engine(database_url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    """Build an async engine; defaults come from settings."""
    if database_url is None or echo is None:
        current = get_settings()
        database_url = database_url or current.database_url
        echo = current.debug if echo is None else echo
    return create_async_engine(database_url, echo=echo, future=True)


# expire_on_commit=False keeps rows readable after commit.
def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create the member and group tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

