"""Tests for TrashService and restoration path computation."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from warren.fs.exceptions import ErrorCode, ValidationError
from warren.fs.trash import trash_relative_path

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.fs.database_fs import DatabaseFileSystem
    from warren.fs.trash import TrashService

    from .conftest import Seeder

TRASH = "/zoneA/trash/home/alice"


# ---------------------------------------------------------------------------
# Path computation
# ---------------------------------------------------------------------------


class TestTrashRelativePath:
    def test_nested(self):
        assert trash_relative_path(f"{TRASH}/a/b/f.txt.123", "f.txt", TRASH) == "a/b/f.txt"

    def test_top_level(self):
        assert trash_relative_path(f"{TRASH}/f.txt.123", "f.txt", TRASH) == "f.txt"

    def test_trailing_slash_on_root(self):
        assert trash_relative_path(f"{TRASH}/a/f.txt.9", "f.txt", TRASH + "/") == "a/f.txt"


class TestRestorationPath:
    def test_default_trash_root(self, trash: TrashService):
        assert (
            trash.restoration_path("alice", f"{TRASH}/proj/data/f.txt.1700000000", "f.txt")
            == "/zoneA/home/alice/proj/data/f.txt"
        )

    def test_explicit_trash_root(self, trash: TrashService):
        assert (
            trash.restoration_path("alice", "/elsewhere/x/y.csv.5", "y.csv", "/elsewhere")
            == "/zoneA/home/alice/x/y.csv"
        )


# ---------------------------------------------------------------------------
# restore
# ---------------------------------------------------------------------------


class TestRestore:
    async def test_restore_file(
        self,
        seed: Seeder,
        trash: TrashService,
        backend: DatabaseFileSystem,
        async_session: AsyncSession,
    ):
        trashed = await seed.file(f"{TRASH}/proj/data/g.txt.42", b"restored", "alice")
        result = await trash.restore(async_session, "alice", trashed, "g.txt")

        target = "/zoneA/home/alice/proj/data/g.txt"
        assert result.to_dict() == {"from": trashed, "to": target}
        assert await backend.read(target, session=async_session) == b"restored"
        assert not await backend.exists(trashed, session=async_session)

    async def test_target_exists(
        self, seed: Seeder, trash: TrashService, async_session: AsyncSession
    ):
        trashed = await seed.file(f"{TRASH}/proj/notes.txt.7", b"older notes", "alice")
        with pytest.raises(ValidationError) as exc:
            await trash.restore(async_session, "alice", trashed, "notes.txt")
        assert exc.value.code == ErrorCode.EXISTS
        assert exc.value.subjects == {"path": "/zoneA/home/alice/proj/notes.txt"}

    async def test_parent_missing(
        self, seed: Seeder, trash: TrashService, async_session: AsyncSession
    ):
        trashed = await seed.file(f"{TRASH}/gone/h.txt.1", b"", "alice")
        with pytest.raises(ValidationError) as exc:
            await trash.restore(async_session, "alice", trashed, "h.txt")
        assert exc.value.code == ErrorCode.NOT_WRITEABLE
        assert exc.value.subjects["path"] == "/zoneA/home/alice/gone"

    async def test_not_writable(
        self, seed: Seeder, trash: TrashService, async_session: AsyncSession
    ):
        trashed = await seed.file(f"{TRASH}/i.txt.1", b"", "alice")
        with pytest.raises(ValidationError) as exc:
            await trash.restore(async_session, "bob", trashed, "i.txt", TRASH)
        assert exc.value.code == ErrorCode.NOT_WRITEABLE
        assert exc.value.subjects == {"path": trashed, "user": "bob"}
