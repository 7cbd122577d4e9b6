from media_api.services.media import MediaService
from media_api.services.metadata import MetadataExtractor, extract, resolve_images
from media_api.services.thumbnail import ImageRenderer, truncate_caption

__all__ = [
    "ImageRenderer",
    "MediaService",
    "MetadataExtractor",
    "extract",
    "resolve_images",
    "truncate_caption",
]
