from media_api.cache.base import ArtifactStore, normalize_key, ttl_for
from media_api.cache.factory import create_artifact_store

__all__ = ["ArtifactStore", "create_artifact_store", "normalize_key", "ttl_for"]
