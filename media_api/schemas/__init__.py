from media_api.schemas.media import (
    Artifact,
    Bounds,
    FailureArtifact,
    MetadataArtifact,
    SiteMetadata,
    Thumbnail,
    ThumbnailArtifact,
    dump_artifact,
    load_artifact,
    thumbnail_of,
)

__all__ = [
    "Artifact",
    "Bounds",
    "FailureArtifact",
    "MetadataArtifact",
    "SiteMetadata",
    "Thumbnail",
    "ThumbnailArtifact",
    "dump_artifact",
    "load_artifact",
    "thumbnail_of",
]
