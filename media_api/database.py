from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from media_api.config import settings
from media_api.models.base import Base

_engine: Optional[AsyncEngine] = None


def get_engine(database_url: Optional[str] = None) -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            database_url or settings.database_url, echo=False, future=True
        )
    return _engine


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
