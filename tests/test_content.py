"""Tests for ContentService — previews, downloads, manifests, carts, quota."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from sqlmodel import select

from warren.fs.exceptions import ErrorCode, ValidationError
from warren.models.accounts import CartRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.fs.content import ContentService
    from warren.fs.database_fs import DatabaseFileSystem
    from warren.fs.metadata import MetadataService

    from .conftest import Seeder

DATA = "/zoneA/home/alice/proj/data"
F_TXT = f"{DATA}/f.txt"


# ---------------------------------------------------------------------------
# Probes
# ---------------------------------------------------------------------------


class TestProbes:
    async def test_path_exists(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        assert await content.path_exists(async_session, F_TXT)
        assert not await content.path_exists(async_session, f"{DATA}/nope")

    async def test_path_stat(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        stat = await content.path_stat(async_session, F_TXT)
        assert stat.name == "f.txt"
        assert stat.size_bytes == 11
        assert not stat.is_directory

    async def test_path_stat_missing(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await content.path_stat(async_session, f"{DATA}/nope")
        assert exc.value.code == ErrorCode.DOES_NOT_EXIST
        assert exc.value.subjects == {"path": f"{DATA}/nope"}


# ---------------------------------------------------------------------------
# Preview / download
# ---------------------------------------------------------------------------


class TestPreview:
    async def test_truncates(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        assert await content.preview(async_session, "alice", F_TXT, 5) == "hello"

    async def test_size_larger_than_file(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        assert await content.preview(async_session, "alice", F_TXT, 1024) == "hello world"

    async def test_empty_file(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        await seed.file(f"{DATA}/empty.txt", b"", "alice")
        assert await content.preview(async_session, "alice", f"{DATA}/empty.txt", 10) == ""

    async def test_directory_rejected(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await content.preview(async_session, "alice", DATA, 10)
        assert exc.value.code == ErrorCode.NOT_A_FILE

    async def test_not_readable(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await content.preview(async_session, "bob", F_TXT, 10)
        assert exc.value.code == ErrorCode.NOT_READABLE


class TestDownloadFile:
    async def test_returns_bytes(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        assert await content.download_file(async_session, "alice", F_TXT) == b"hello world"

    async def test_not_readable(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await content.download_file(async_session, "bob", F_TXT)
        assert exc.value.code == ErrorCode.NOT_READABLE


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class TestManifest:
    async def test_manifest(
        self,
        seed: Seeder,
        content: ContentService,
        metadata: MetadataService,
        async_session: AsyncSession,
    ):
        await metadata.set_tree(async_session, "alice", F_TXT, [{"label": "t", "url": "u"}])
        result = await content.manifest(async_session, "alice", F_TXT)
        assert result.to_dict() == {
            "action": "manifest",
            "content-type": "text/plain",
            "tree-urls": [{"label": "t", "url": "u"}],
            "preview": "file/preview?user=alice&path=%2FzoneA%2Fhome%2Falice%2Fproj%2Fdata%2Ff.txt",
        }

    async def test_unknown_extension(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        await seed.file(f"{DATA}/blob.qqq", b"\x00\x01", "alice")
        result = await content.manifest(async_session, "alice", f"{DATA}/blob.qqq")
        assert result.content_type == "application/octet-stream"
        assert result.tree_urls == []

    async def test_directory_rejected(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await content.manifest(async_session, "alice", DATA)
        assert exc.value.code == ErrorCode.NOT_A_FILE


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------


class TestCarts:
    async def test_download_cart(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        result = await content.download_cart(async_session, "alice", [F_TXT])
        data = result.to_dict()
        assert data["action"] == "download"
        assert data["status"] == "success"
        payload = data["data"]
        assert payload["user"] == "alice"
        assert payload["home"] == "/zoneA/home/alice"
        assert payload["host"] == "irods.example.org"
        assert payload["port"] == 1247
        assert payload["zone"] == "zoneA"
        assert payload["defaultStorageResource"] == "demoResc"
        assert payload["key"].isdigit()
        assert payload["password"]

    async def test_cart_recorded(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        result = await content.download_cart(async_session, "alice", [F_TXT])
        rows = (await async_session.execute(select(CartRecord))).scalars().all()
        assert len(rows) == 1
        assert rows[0].key == result.credential.key
        assert json.loads(rows[0].paths) == [F_TXT]

    async def test_download_cart_unreadable(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await content.download_cart(async_session, "bob", [F_TXT])
        assert exc.value.code == ErrorCode.NOT_READABLE

    async def test_upload_cart(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        result = await content.upload_cart(async_session, "bob")
        assert result.action == "upload"
        assert result.home == "/zoneA/home/bob"

    async def test_upload_cart_unknown_user(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await content.upload_cart(async_session, "ghost")
        assert exc.value.code == ErrorCode.NOT_A_USER


# ---------------------------------------------------------------------------
# Quota
# ---------------------------------------------------------------------------


class TestQuota:
    async def test_usage_against_limit(
        self,
        seed: Seeder,
        content: ContentService,
        backend: DatabaseFileSystem,
        async_session: AsyncSession,
    ):
        await seed.directory("/zoneA/home/carol", "carol")
        await seed.file("/zoneA/home/carol/big.bin", b"x" * 40, "carol")
        await backend.set_quota("carol", "demoResc", 100, session=async_session)

        entries = await content.quota(async_session, "carol")
        assert [e.to_dict() for e in entries] == [
            {"resource": "demoResc", "limit": 100, "used": 40, "over": -60}
        ]

    async def test_no_allocations(
        self, seed: Seeder, content: ContentService, async_session: AsyncSession
    ):
        assert await content.quota(async_session, "bob") == []
