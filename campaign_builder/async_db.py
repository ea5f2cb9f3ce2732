from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from campaign_builder.settings import settings

_ASYNC_DRIVERS = {
    "postgresql": "postgresql+psycopg",
    "postgresql+psycopg2": "postgresql+psycopg",
    "sqlite": "sqlite+aiosqlite",
    "sqlite+pysqlite": "sqlite+aiosqlite",
}


def to_async_url(url: str) -> str:
    """Rewrite a database URL so it uses an async-capable driver.

    postgresql://...           -> postgresql+psycopg://...
    postgresql+psycopg://...   -> unchanged (psycopg3 supports async natively)
    sqlite:// / sqlite+pysqlite:// -> sqlite+aiosqlite://...
    """
    scheme, sep, rest = url.partition("://")
    if not sep:
        return url
    return f"{_ASYNC_DRIVERS.get(scheme, scheme)}://{rest}"


def get_async_engine(url: str | None = None):
    effective_url = to_async_url(url or settings.DATABASE_URL)
    return create_async_engine(effective_url, pool_pre_ping=True)


async_engine = get_async_engine()
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine, class_=AsyncSession, expire_on_commit=False
)


async def get_async_db():
    async with AsyncSessionLocal() as session:
        yield session
