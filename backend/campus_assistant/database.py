"""Database setup"""
import importlib
import logging
from pathlib import Path
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from .config import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)

if settings.database_url.startswith("sqlite"):
    parts = settings.database_url.split("///", 1)
    if len(parts) == 2:
        db_path = parts[1]
        if db_path.startswith("./"):
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

MODEL_MODULES: tuple[str, ...] = (
    "campus_assistant.models.user",
    "campus_assistant.models.conversation",
    "campus_assistant.models.feedback",
    "campus_assistant.models.location",
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """Yield a database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def import_models() -> None:
    for module_name in MODEL_MODULES:
        _ = importlib.import_module(module_name)


async def init_db() -> None:
    """Create tables"""
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready: %s", ", ".join(sorted(Base.metadata.tables)))
