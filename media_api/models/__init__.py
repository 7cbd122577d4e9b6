from media_api.models.artifact import CachedArtifact
from media_api.models.base import Base

__all__ = ["Base", "CachedArtifact"]
