"""Media pipeline: fetch a URL, turn the response into an artifact, cache it.

HTML pages yield their OpenGraph metadata plus a captioned thumbnail of the
first image that can be fetched and decoded. Any other response is rendered
directly as a thumbnail.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

import httpx
from fake_useragent import UserAgent

from media_api.cache import ArtifactStore, normalize_key, ttl_for
from media_api.config import Settings
from media_api.errors import (
    ArtifactNotFound,
    CacheError,
    DeadlineExceeded,
    MediaError,
    ParseError,
    TransportError,
    UnsupportedContentError,
)
from media_api.schemas import (
    Artifact,
    FailureArtifact,
    MetadataArtifact,
    SiteMetadata,
    Thumbnail,
    ThumbnailArtifact,
)
from media_api.services.metadata import MetadataExtractor, resolve_images
from media_api.services.thumbnail import ImageRenderer

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = frozenset({"text/html", "application/xhtml+xml"})


@lru_cache(maxsize=1)
def _browser_agents() -> UserAgent:
    return UserAgent()


def target_url(url: str) -> str:
    """URL to fetch for a request target; plain http when no scheme is given."""
    if "://" in url:
        return url
    return "http://" + url.lstrip("/")


def media_type(response: httpx.Response) -> str:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower()


class MediaService:
    def __init__(
        self,
        settings: Settings,
        store: ArtifactStore,
        client: httpx.AsyncClient,
        renderer: Optional[ImageRenderer] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.client = client
        self.renderer = renderer or ImageRenderer(
            size=settings.thumbnail_size, quality=settings.thumbnail_quality
        )

    def user_agent(self) -> str:
        return self.settings.user_agent or _browser_agents().random

    async def get_media(self, url: str) -> Artifact:
        """Return the artifact for ``url``, from cache when possible.

        Raises TransportError when the origin cannot be fetched. Every other
        outcome, failures included, is returned as an artifact and cached.
        """
        try:
            async with asyncio.timeout(self.settings.request_timeout):
                return await self._get_media(url)
        except TimeoutError as exc:
            raise DeadlineExceeded(f"timed out processing {url}") from exc

    async def _get_media(self, url: str) -> Artifact:
        key = normalize_key(url)
        try:
            artifact = await self.store.get(key)
        except ArtifactNotFound:
            logger.debug("Cache miss for %s", key)
        except CacheError as exc:
            logger.warning("Cache read failed for %s: %s", key, exc)
        else:
            logger.debug("Cache hit for %s", key)
            return artifact

        artifact = await self.build_artifact(target_url(url))
        await self._save(key, artifact)
        return artifact

    async def _save(self, key: str, artifact: Artifact) -> None:
        ttl = ttl_for(artifact, self.settings)
        try:
            written = await self.store.put(key, artifact, ttl)
        except CacheError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
            return
        if not written:
            logger.debug("Cache key %s was populated concurrently", key)

    async def build_artifact(self, url: str) -> Artifact:
        async with self._fetch(url) as response:
            page_url = str(response.url)
            if media_type(response) in HTML_CONTENT_TYPES:
                if response.is_error:
                    logger.info(
                        "Origin answered %s for %s, reading the page anyway",
                        response.status_code,
                        url,
                    )
                try:
                    site = await self._extract(response)
                except ParseError as exc:
                    return FailureArtifact(error="parse_error", message=str(exc))
            else:
                response.raise_for_status()
                data = await response.aread()
                return await self._render_body(data)

        if not site.url:
            site.url = page_url
        return await self._thumbnail_site(resolve_images(site, page_url))

    @asynccontextmanager
    async def _fetch(
        self, url: str, accept: Optional[str] = None
    ) -> AsyncIterator[httpx.Response]:
        headers = {"User-Agent": self.user_agent()}
        if accept:
            headers["Accept"] = accept
        try:
            async with self.client.stream(
                "GET", url, headers=headers, timeout=self.settings.fetch_timeout
            ) as response:
                yield response
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise TransportError(f"failed to fetch {url}: {exc}") from exc

    async def _extract(self, response: httpx.Response) -> SiteMetadata:
        extractor = MetadataExtractor(
            encoding=response.charset_encoding,
            early_exit=self.settings.metadata_early_exit,
        )
        try:
            async for chunk in response.aiter_bytes():
                if extractor.push(chunk):
                    break
        except httpx.HTTPError as exc:
            raise ParseError(f"failed to read html: {exc}") from exc
        return extractor.finish()

    async def _render_body(self, data: bytes) -> Artifact:
        try:
            thumbnail = await self._render(data)
        except UnsupportedContentError as exc:
            return FailureArtifact(error="unsupported_content", message=str(exc))
        return ThumbnailArtifact(thumbnail=thumbnail)

    async def _thumbnail_site(self, site: SiteMetadata) -> Artifact:
        candidates = list(dict.fromkeys(site.images))
        for image_url in candidates[: self.settings.max_image_attempts]:
            try:
                thumbnail = await self._fetch_thumbnail(image_url, site.title)
            except MediaError as exc:
                logger.warning("Skipping image %s: %s", image_url, exc)
                continue
            return MetadataArtifact(site=site, thumbnail=thumbnail)

        message = "no thumbnail available" if candidates else "no image found"
        return FailureArtifact(error="no_thumbnail", message=message, site=site)

    async def _fetch_thumbnail(self, url: str, caption: str) -> Thumbnail:
        async with self._fetch(url, accept="image/*") as response:
            response.raise_for_status()
            content_type = media_type(response)
            if not content_type.startswith("image/"):
                raise UnsupportedContentError(
                    f"unsupported image content type: {content_type} ({url})"
                )
            data = await response.aread()
        return await self._render(data, caption)

    async def _render(self, data: bytes, caption: Optional[str] = None) -> Thumbnail:
        return await asyncio.to_thread(self.renderer.render, data, caption)
