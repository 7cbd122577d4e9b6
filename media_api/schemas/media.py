from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class SiteMetadata(BaseModel):
    type: str = ""
    url: str = ""
    title: str = ""
    description: str = ""
    images: list[str] = Field(default_factory=list)


class Bounds(BaseModel):
    width: int
    height: int

    model_config = ConfigDict(frozen=True)


class Thumbnail(BaseModel):
    data: bytes
    mime: str = "image/jpeg"
    bounds: Bounds

    model_config = ConfigDict(
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )


class MetadataArtifact(BaseModel):
    kind: Literal["metadata"] = "metadata"
    site: SiteMetadata
    thumbnail: Thumbnail


class ThumbnailArtifact(BaseModel):
    kind: Literal["thumbnail"] = "thumbnail"
    thumbnail: Thumbnail


FailureKind = Literal["no_thumbnail", "unsupported_content", "parse_error"]


class FailureArtifact(BaseModel):
    kind: Literal["failure"] = "failure"
    error: FailureKind
    message: str
    site: Optional[SiteMetadata] = None


Artifact = Annotated[
    Union[MetadataArtifact, ThumbnailArtifact, FailureArtifact],
    Field(discriminator="kind"),
]

artifact_adapter: TypeAdapter[Artifact] = TypeAdapter(Artifact)


def dump_artifact(artifact: Artifact) -> bytes:
    return artifact_adapter.dump_json(artifact)


def load_artifact(data: Union[str, bytes]) -> Artifact:
    return artifact_adapter.validate_json(data)


def thumbnail_of(artifact: Artifact) -> Optional[Thumbnail]:
    """Return the thumbnail an artifact carries, if any."""
    if isinstance(artifact, (MetadataArtifact, ThumbnailArtifact)):
        return artifact.thumbnail
    return None
