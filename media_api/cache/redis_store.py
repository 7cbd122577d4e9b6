"""Redis artifact store. Expiration is left to Redis (SET ... NX EX)."""

import logging
from datetime import timedelta

from redis.asyncio import Redis
from redis.exceptions import RedisError

from media_api.cache.base import ArtifactStore
from media_api.errors import ArtifactNotFound, CacheError
from media_api.schemas import Artifact, dump_artifact

logger = logging.getLogger(__name__)


class RedisArtifactStore(ArtifactStore):
    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisArtifactStore":
        return cls(Redis.from_url(redis_url))

    async def get(self, key: str) -> Artifact:
        try:
            data = await self._client.get(key)
        except RedisError as exc:
            raise CacheError(f"redis get failed: {exc}") from exc
        if data is None:
            raise ArtifactNotFound(key)
        return self._decode(key, data)

    async def put(self, key: str, artifact: Artifact, ttl: timedelta) -> bool:
        payload = dump_artifact(artifact)
        try:
            written = await self._client.set(key, payload, ex=ttl, nx=True)
        except RedisError as exc:
            raise CacheError(f"redis set failed: {exc}") from exc
        return bool(written)

    async def close(self) -> None:
        await self._client.aclose()
