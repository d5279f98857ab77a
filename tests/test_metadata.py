"""Tests for MetadataService — AVUs, batches, tree URLs."""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING

import pytest

from warren.events import EventBus
from warren.fs.database_fs import DatabaseFileSystem
from warren.fs.exceptions import ErrorCode, ValidationError
from warren.fs.metadata import MetadataService, encode_value, flatten
from warren.models.avus import AVUPayload

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.config import WarrenConfig

    from .conftest import Seeder

F_TXT = "/zoneA/home/alice/proj/data/f.txt"


class RecordingFileSystem(DatabaseFileSystem):
    """Backend that records the metadata calls made against it."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: list[tuple] = []

    async def set_metadata(self, path, attr, value, unit, *, session=None):
        self.calls.append(("set", attr, value, unit))
        await super().set_metadata(path, attr, value, unit, session=session)

    async def delete_metadata(self, path, attr, *, session=None):
        self.calls.append(("delete", attr))
        await super().delete_metadata(path, attr, session=session)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_encode_value(self):
        assert encode_value("a,b=c") == base64.b64encode(b"a,b=c").decode()

    def test_flatten(self):
        assert flatten([["a", ["b"]], "c", [[["d"]]]]) == ["a", "b", "c", "d"]


# ---------------------------------------------------------------------------
# set / get
# ---------------------------------------------------------------------------


class TestSetGet:
    async def test_blank_unit_round_trip(
        self,
        seed: Seeder,
        metadata: MetadataService,
        backend: DatabaseFileSystem,
        async_session: AsyncSession,
    ):
        await metadata.set_metadata(async_session, "alice", F_TXT, {"attr": "color", "value": "blue"})
        stored = await backend.get_attribute(F_TXT, "color", session=async_session)
        assert stored[0].unit == "ipc-reserved-unit"

        avus = await metadata.get_metadata(async_session, "alice", F_TXT)
        assert [a.to_dict() for a in avus] == [{"attr": "color", "value": "blue", "unit": ""}]

    async def test_explicit_unit_kept(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        await metadata.set_metadata(
            async_session, "alice", F_TXT, AVUPayload(attr="size", value="3", unit="cm")
        )
        avus = await metadata.get_metadata(async_session, "alice", F_TXT)
        assert avus[0].unit == "cm"

    async def test_set_replaces_attribute(
        self,
        seed: Seeder,
        metadata: MetadataService,
        backend: DatabaseFileSystem,
        async_session: AsyncSession,
    ):
        await backend.add_metadata(F_TXT, "tag", "one", "", session=async_session)
        await backend.add_metadata(F_TXT, "tag", "two", "", session=async_session)
        await metadata.set_metadata(async_session, "alice", F_TXT, {"attr": "tag", "value": "three"})
        avus = await metadata.get_metadata(async_session, "alice", F_TXT)
        assert [a.value for a in avus] == ["three"]

    async def test_result(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        result = await metadata.set_metadata(
            async_session, "alice", F_TXT, {"attr": "a", "value": "b"}
        )
        assert result.to_dict() == {"path": F_TXT, "user": "alice"}

    @pytest.mark.parametrize(
        "payload",
        [{"attr": "", "value": "x"}, {"value": "x"}, {"attr": "a"}, "not a mapping"],
    )
    async def test_invalid_payload(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession, payload
    ):
        with pytest.raises(ValidationError) as exc:
            await metadata.set_metadata(async_session, "alice", F_TXT, payload)
        assert exc.value.code == ErrorCode.INVALID_JSON

    async def test_not_writable(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await metadata.set_metadata(async_session, "bob", F_TXT, {"attr": "a", "value": "b"})
        assert exc.value.code == ErrorCode.NOT_WRITEABLE

    async def test_read_requires_readable(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await metadata.get_metadata(async_session, "bob", F_TXT)
        assert exc.value.code == ErrorCode.NOT_READABLE

    async def test_missing_path(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await metadata.get_metadata(async_session, "alice", "/zoneA/home/alice/nope")
        assert exc.value.code == ErrorCode.DOES_NOT_EXIST


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDelete:
    async def test_encodes_before_delete(
        self, seed: Seeder, async_session: AsyncSession, config: WarrenConfig
    ):
        recording = RecordingFileSystem(config.zone)
        service = MetadataService(recording, config, EventBus())
        await recording.add_metadata(F_TXT, "odd", "a=b;c", "u", session=async_session)

        await service.delete_metadata(async_session, "alice", F_TXT, "odd")

        assert recording.calls == [
            ("set", "odd", encode_value("a=b;c"), "u"),
            ("delete", "odd"),
        ]
        assert not await recording.has_attribute(F_TXT, "odd", session=async_session)

    async def test_missing_attribute_is_noop(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        result = await metadata.delete_metadata(async_session, "alice", F_TXT, "absent")
        assert result.path == F_TXT


# ---------------------------------------------------------------------------
# batch
# ---------------------------------------------------------------------------


class TestBatch:
    async def test_delete_missing_then_add(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        await metadata.set_metadata_batch(
            async_session,
            "alice",
            F_TXT,
            {"delete": ["nonexistent"], "add": [{"attr": "k", "value": "v", "unit": ""}]},
        )
        avus = await metadata.get_metadata(async_session, "alice", F_TXT)
        assert [a.to_dict() for a in avus] == [{"attr": "k", "value": "v", "unit": ""}]

    async def test_deletes_run_before_adds(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        await metadata.set_metadata(async_session, "alice", F_TXT, {"attr": "k", "value": "old"})
        await metadata.set_metadata_batch(
            async_session,
            "alice",
            F_TXT,
            {"delete": ["k"], "add": [{"attr": "k", "value": "new"}]},
        )
        avus = await metadata.get_metadata(async_session, "alice", F_TXT)
        assert [a.value for a in avus] == ["new"]

    async def test_adds_in_input_order(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        await metadata.set_metadata_batch(
            async_session,
            "alice",
            F_TXT,
            {"add": [{"attr": "k", "value": "first"}, {"attr": "k", "value": "second"}]},
        )
        avus = await metadata.get_metadata(async_session, "alice", F_TXT)
        assert [a.value for a in avus] == ["second"]

    async def test_invalid_batch_writes_nothing(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await metadata.set_metadata_batch(
                async_session,
                "alice",
                F_TXT,
                {"add": [{"attr": "ok", "value": "1"}, {"attr": "", "value": "2"}]},
            )
        assert exc.value.code == ErrorCode.INVALID_JSON
        assert await metadata.get_metadata(async_session, "alice", F_TXT) == []


# ---------------------------------------------------------------------------
# tree URLs
# ---------------------------------------------------------------------------


class TestTreeUrls:
    async def test_empty_when_unset(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        assert await metadata.get_tree(async_session, "alice", F_TXT) == []

    async def test_append_and_flatten(
        self,
        seed: Seeder,
        metadata: MetadataService,
        backend: DatabaseFileSystem,
        async_session: AsyncSession,
    ):
        first = {"label": "t1", "url": "http://trees/1"}
        second = {"label": "t2", "url": "http://trees/2"}
        third = {"label": "t3", "url": "http://trees/3"}
        await metadata.set_tree(async_session, "alice", F_TXT, [first])
        await metadata.set_tree(async_session, "alice", F_TXT, [[second], third])

        assert await metadata.get_tree(async_session, "alice", F_TXT) == [first, second, third]
        stored = await backend.get_attribute(F_TXT, "tree-urls", session=async_session)
        assert len(stored) == 1
        assert json.loads(stored[0].value) == [first, second, third]

    async def test_requires_writable(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await metadata.set_tree(async_session, "bob", F_TXT, ["x"])
        assert exc.value.code == ErrorCode.NOT_WRITEABLE

    async def test_non_list_rejected(
        self, seed: Seeder, metadata: MetadataService, async_session: AsyncSession
    ):
        with pytest.raises(ValidationError) as exc:
            await metadata.set_tree(async_session, "alice", F_TXT, "http://trees/1")  # type: ignore[arg-type]
        assert exc.value.code == ErrorCode.INVALID_JSON

    async def test_unreadable_stored_value(
        self,
        seed: Seeder,
        metadata: MetadataService,
        backend: DatabaseFileSystem,
        async_session: AsyncSession,
    ):
        await backend.set_metadata(F_TXT, "tree-urls", "not json", "", session=async_session)
        with pytest.raises(ValidationError) as exc:
            await metadata.get_tree(async_session, "alice", F_TXT)
        assert exc.value.code == ErrorCode.INVALID_JSON
        assert exc.value.subjects == {"path": F_TXT}
