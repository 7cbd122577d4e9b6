import asyncio
import logging
import re
import zlib
from collections.abc import Awaitable
from typing import Annotated, Union
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from media_api.api.deps import get_media_service
from media_api.errors import (
    ClientDisconnected,
    MediaError,
    NoThumbnailAvailable,
    ParseError,
    UnsupportedContentError,
)
from media_api.schemas import (
    Artifact,
    FailureArtifact,
    MetadataArtifact,
    SiteMetadata,
    ThumbnailArtifact,
)
from media_api.services.media import MediaService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["media"])

_SCHEME_PREFIX = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:/+")
_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

FAILURE_ERRORS: dict[str, type[MediaError]] = {
    "no_thumbnail": NoThumbnailAvailable,
    "unsupported_content": UnsupportedContentError,
    "parse_error": ParseError,
}


def remove_scheme(url: str) -> tuple[str, bool]:
    """Strip a leading ``scheme:/`` or ``scheme://`` from a request target."""
    match = _SCHEME_PREFIX.match(url)
    if match is None:
        return url, False
    return url[match.end():], True


def request_uri(request: Request) -> str:
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    if request.url.query:
        path = f"{path}?{request.url.query}"
    return path


def client_ip(request: Request) -> str:
    ip = request.headers.get("x-real-ip")
    if ip:
        return ip
    return request.client.host if request.client else "-"


def base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def thumbnail_filename(site_url: str, mime: str) -> str:
    """Stable download name: base-36 CRC-32 of the page URL plus extension."""
    extension = mime.split("/", 1)[-1]
    return f"{base36(zlib.crc32(site_url.encode('utf-8')))}.{extension}"


def proxied_image_url(image_url: str, base_url: str) -> str:
    """Rewrite an absolute image URL to route back through this service."""
    parts = urlsplit(image_url)
    target = parts.netloc + (parts.path or "/")
    if parts.query:
        target = f"{target}?{parts.query}"
    return f"{base_url.rstrip('/')}/{target}"


def site_response(site: SiteMetadata, request: Request) -> JSONResponse:
    base_url = str(request.base_url)
    images = [proxied_image_url(image, base_url) for image in site.images]
    return JSONResponse(site.model_copy(update={"images": images}).model_dump())


def thumbnail_response(artifact: Union[MetadataArtifact, ThumbnailArtifact]) -> Response:
    thumbnail = artifact.thumbnail
    headers = {}
    if isinstance(artifact, MetadataArtifact):
        filename = thumbnail_filename(artifact.site.url, thumbnail.mime)
        headers["Content-Disposition"] = f"filename={filename}"
    return Response(content=thumbnail.data, media_type=thumbnail.mime, headers=headers)


def media_response(artifact: Artifact, request: Request) -> Response:
    wants_json = "application/json" in request.headers.get("accept", "")

    if isinstance(artifact, FailureArtifact):
        if wants_json and artifact.site is not None:
            return site_response(artifact.site, request)
        raise FAILURE_ERRORS[artifact.error](artifact.message)

    if wants_json and isinstance(artifact, MetadataArtifact):
        return site_response(artifact.site, request)
    return thumbnail_response(artifact)


async def wait_for_disconnect(request: Request) -> None:
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def run_until_disconnected(
    request: Request, work: Awaitable[Artifact]
) -> Artifact:
    """Await ``work``, cancelling it if the client disconnects first.

    Raises ClientDisconnected when the work was cancelled. Cancellation
    reaches every outstanding fetch, so nothing is cached for the request.
    """
    task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(wait_for_disconnect(request))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task.cancelled():
        raise ClientDisconnected("client disconnected")
    return task.result()


@router.get("/favicon.ico", include_in_schema=False)
async def favicon() -> PlainTextResponse:
    return PlainTextResponse("Not found", status_code=status.HTTP_404_NOT_FOUND)


@router.get("/{target:path}")
async def get_media(
    request: Request,
    service: Annotated[MediaService, Depends(get_media_service)],
) -> Response:
    """Thumbnail (or, with Accept: application/json, metadata) of a URL."""
    uri = request_uri(request)
    logger.info("%s %s", client_ip(request), uri)

    url = uri[1:]
    if not url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing target URL"
        )

    stripped, changed = remove_scheme(url)
    if changed:
        return RedirectResponse(f"/{stripped}", status_code=status.HTTP_303_SEE_OTHER)

    try:
        artifact = await run_until_disconnected(request, service.get_media(url))
    except ClientDisconnected:
        logger.info("%s disconnected, abandoned %s", client_ip(request), uri)
        raise
    return media_response(artifact, request)
