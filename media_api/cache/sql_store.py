"""SQL artifact store on top of the async SQLAlchemy engine.

The primary key on ``cached_artifacts.key`` provides create-if-absent:
a writer that hits an existing live row loses. Expired rows are invisible to
reads and are removed by the next write to the same key.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from media_api.cache.base import ArtifactStore
from media_api.database import init_db
from media_api.errors import ArtifactNotFound, CacheError
from media_api.models import CachedArtifact
from media_api.schemas import Artifact, dump_artifact

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlArtifactStore(ArtifactStore):
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            engine, expire_on_commit=False
        )

    async def open(self) -> None:
        await init_db(self._engine)

    async def get(self, key: str) -> Artifact:
        try:
            async with self._session_factory() as session:
                row = await session.scalar(
                    select(CachedArtifact).where(
                        CachedArtifact.key == key,
                        CachedArtifact.expires_at > _utcnow(),
                    )
                )
        except SQLAlchemyError as exc:
            raise CacheError(f"sql get failed: {exc}") from exc
        if row is None:
            raise ArtifactNotFound(key)
        return self._decode(key, row.payload)

    async def put(self, key: str, artifact: Artifact, ttl: timedelta) -> bool:
        now = _utcnow()
        row = CachedArtifact(
            key=key, payload=dump_artifact(artifact), expires_at=now + ttl
        )
        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(CachedArtifact).where(
                        CachedArtifact.key == key,
                        CachedArtifact.expires_at <= now,
                    )
                )
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    logger.debug("Cache key %s already populated", key)
                    return False
        except SQLAlchemyError as exc:
            raise CacheError(f"sql put failed: {exc}") from exc
        return True

    async def close(self) -> None:
        await self._engine.dispose()
