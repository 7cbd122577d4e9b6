"""Error taxonomy of the media pipeline.

Each error carries the HTTP status it is answered with; the mapping to a
response lives in ``media_api.main``.
"""

from fastapi import status


class MediaError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class TransportError(MediaError):
    """Origin unreachable, invalid URL, non-2xx status, DNS or TLS failure."""

    status_code = status.HTTP_502_BAD_GATEWAY


class DeadlineExceeded(TransportError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


class UnsupportedContentError(MediaError):
    """Payload is neither HTML nor a decodable image."""


class DecodeError(UnsupportedContentError):
    pass


class EncodeError(MediaError):
    pass


class ParseError(MediaError):
    """The HTML stream failed while it was being read."""


class NoThumbnailAvailable(MediaError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "no thumbnail available") -> None:
        super().__init__(message)


class ClientDisconnected(MediaError):
    """The caller went away before the artifact was ready."""

    # nginx "client closed request"; the response is never delivered.
    status_code = 499


class CacheError(Exception):
    """Artifact store backend failure. Never reaches the client."""


class ArtifactNotFound(CacheError):
    pass
