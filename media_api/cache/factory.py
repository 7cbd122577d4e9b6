from media_api.cache.base import ArtifactStore
from media_api.config import Settings


def create_artifact_store(settings: Settings) -> ArtifactStore:
    """Instantiate the configured artifact store backend."""
    if settings.cache_backend == "redis":
        from media_api.cache.redis_store import RedisArtifactStore

        return RedisArtifactStore.from_url(settings.redis_url)

    if settings.cache_backend == "sql":
        from media_api.cache.sql_store import SqlArtifactStore
        from media_api.database import get_engine

        return SqlArtifactStore(get_engine(settings.database_url))

    raise ValueError(f"Unsupported cache backend: {settings.cache_backend!r}")
