"""Artifact store interface, cache keys and expiration policy."""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Union

from pydantic import ValidationError

from media_api.config import Settings
from media_api.errors import ArtifactNotFound
from media_api.schemas import Artifact, load_artifact, thumbnail_of

logger = logging.getLogger(__name__)


def normalize_key(url: str) -> str:
    """Cache key of a URL: lowercased, without trailing slashes.

    URLs differing only by case or trailing slash share one key.
    """
    return url.lower().rstrip("/")


def ttl_for(artifact: Artifact, settings: Settings) -> timedelta:
    """Long expiration for artifacts with a thumbnail, short otherwise."""
    thumbnail = thumbnail_of(artifact)
    if thumbnail is not None and thumbnail.data:
        return timedelta(seconds=settings.cache_ttl_seconds)
    return timedelta(seconds=settings.negative_cache_ttl_seconds)


class ArtifactStore(ABC):
    """Key-value store of artifacts with create-if-absent writes."""

    async def open(self) -> None:
        """Prepare the backend. Called once at startup."""

    @abstractmethod
    async def get(self, key: str) -> Artifact:
        """Return the live artifact under ``key``.

        Raises ArtifactNotFound when absent, expired or unreadable and
        CacheError when the backend fails.
        """

    @abstractmethod
    async def put(self, key: str, artifact: Artifact, ttl: timedelta) -> bool:
        """Store ``artifact`` unless ``key`` already holds a live value.

        Returns False when another writer got there first.
        """

    @abstractmethod
    async def close(self) -> None:
        """Release backend connections."""

    def _decode(self, key: str, data: Union[str, bytes]) -> Artifact:
        try:
            return load_artifact(data)
        except ValidationError as exc:
            logger.warning("Discarding unreadable cache entry %s: %s", key, exc)
            raise ArtifactNotFound(key) from exc
