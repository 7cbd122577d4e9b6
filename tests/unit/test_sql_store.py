"""Tests for cache/sql_store.py: SQLite via aiosqlite."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from media_api.cache.sql_store import SqlArtifactStore
from media_api.errors import ArtifactNotFound, CacheError
from media_api.schemas import (
    Bounds,
    FailureArtifact,
    MetadataArtifact,
    SiteMetadata,
    Thumbnail,
)


def _artifact(title: str = "Site") -> MetadataArtifact:
    return MetadataArtifact(
        site=SiteMetadata(title=title, url="http://site.test/", images=["http://site.test/a.png"]),
        thumbnail=Thumbnail(data=b"\xff\xd8" + title.encode(), bounds=Bounds(width=20, height=10)),
    )


async def _open_store(tmp_path) -> SqlArtifactStore:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    store = SqlArtifactStore(engine)
    await store.open()
    return store


class TestSqlArtifactStore:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        store = await _open_store(tmp_path)
        try:
            artifact = _artifact()
            assert await store.put("site.test", artifact, timedelta(hours=1)) is True
            assert await store.get("site.test") == artifact
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_failure_artifact_round_trip(self, tmp_path):
        store = await _open_store(tmp_path)
        try:
            artifact = FailureArtifact(error="no_thumbnail", message="none")
            await store.put("k", artifact, timedelta(minutes=1))
            assert await store.get("k") == artifact
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_second_writer_loses(self, tmp_path):
        store = await _open_store(tmp_path)
        try:
            assert await store.put("k", _artifact("first"), timedelta(hours=1)) is True
            assert await store.put("k", _artifact("second"), timedelta(hours=1)) is False
            assert (await store.get("k")).site.title == "first"
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_missing_key(self, tmp_path):
        store = await _open_store(tmp_path)
        try:
            with pytest.raises(ArtifactNotFound):
                await store.get("absent")
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss_and_replaceable(self, tmp_path):
        store = await _open_store(tmp_path)
        try:
            await store.put("k", _artifact("stale"), timedelta(seconds=-1))
            with pytest.raises(ArtifactNotFound):
                await store.get("k")

            assert await store.put("k", _artifact("fresh"), timedelta(hours=1)) is True
            assert (await store.get("k")).site.title == "fresh"
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_missing_table_is_cache_error(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        store = SqlArtifactStore(engine)
        try:
            with pytest.raises(CacheError):
                await store.get("k")
        finally:
            await store.close()
