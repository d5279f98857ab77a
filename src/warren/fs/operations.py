"""OperationsService — create, delete, move, rename and copy.

Every operation validates the whole request first, then performs its
structural changes.  Batch moves, deletes and copies are applied one
source at a time with no rollback.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from warren.events import EventType, ProvenanceEvent

from .exceptions import ErrorCode, ValidationError, Violation
from .types import CopyResult, CreateResult, MoveResult, PathsResult, RenameResult
from .utils import basename, dirname, normalize_path, path_join, validate_path
from .validators import Gate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.config import WarrenConfig
    from warren.events import EventBus

    from .protocol import StorageBackend
    from .validators import Check

logger = logging.getLogger(__name__)


class OperationsService:
    """Validated structural operations on files and directories."""

    def __init__(self, backend: StorageBackend, config: WarrenConfig, events: EventBus) -> None:
        self._backend = backend
        self._config = config
        self._events = events

    def _kind_check(self, gate: Gate, paths: list[str], directories: bool) -> Check:
        if directories:
            return gate.all_paths_are_dirs(paths)
        return gate.all_paths_are_files(paths)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(self, session: AsyncSession | None, user: str, path: str) -> CreateResult:
        """Create directory *path* owned by *user* and the service principal."""
        path = normalize_path(path)
        valid, error = validate_path(path)
        if not valid:
            raise ValueError(error)

        logger.debug("create %s %s", user, path)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_writable(user, dirname(path)),
            gate.path_not_exists(path),
        )

        await self._backend.mkdir(path, session=session)
        await self._backend.set_owner(path, user, session=session)
        if self._config.service_user != user:
            await self._backend.set_owner(path, self._config.service_user, session=session)

        await self._events.emit(ProvenanceEvent(EventType.CREATE_DIRECTORY, user, path))
        return CreateResult(
            path=path,
            permissions=await self._backend.get_permission(user, path, session=session),
        )

    async def home_directory(self, session: AsyncSession | None, user: str) -> str:
        """Return the user's home directory, creating it if missing."""
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user))
        home = self._config.home_dir(user)
        if not await self._backend.exists(home, session=session):
            logger.debug("Creating home directory %s", home)
            await self._backend.mkdirs(home, session=session)
            await self._backend.set_owner(home, user, session=session)
        return home

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def _delete(
        self,
        session: AsyncSession | None,
        user: str,
        paths: list[str],
        directories: bool,
    ) -> PathsResult:
        paths = [normalize_path(p) for p in paths]
        logger.debug("delete %s %s", user, paths)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.all_paths_exist(paths),
            gate.all_paths_writable(user, paths),
            self._kind_check(gate, paths, directories),
            gate.none_protected(self._config.home_dir(user), paths),
        )

        event = EventType.DELETE_DIRECTORY if directories else EventType.DELETE_FILE
        for path in paths:
            await self._backend.delete(path, session=session)
            await self._events.emit(ProvenanceEvent(event, user, path))
        return PathsResult(paths=paths)

    async def delete_directories(
        self, session: AsyncSession | None, user: str, paths: list[str]
    ) -> PathsResult:
        return await self._delete(session, user, paths, directories=True)

    async def delete_files(
        self, session: AsyncSession | None, user: str, paths: list[str]
    ) -> PathsResult:
        return await self._delete(session, user, paths, directories=False)

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    async def _move(
        self,
        session: AsyncSession | None,
        user: str,
        sources: list[str],
        dest: str,
        directories: bool,
    ) -> MoveResult:
        sources = [normalize_path(s) for s in sources]
        dest = normalize_path(dest)
        targets = [path_join(dest, basename(s)) for s in sources]
        logger.debug("move %s %s -> %s", user, sources, dest)

        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.all_paths_exist(sources),
            gate.all_paths_exist([dest]),
            gate.path_is_dir(dest),
            gate.all_paths_writable(user, sources),
            gate.path_writable(user, dest),
            gate.no_paths_exist(targets),
            gate.distinct_targets(targets),
            self._kind_check(gate, sources, directories),
        )

        event = EventType.MOVE_DIRECTORY if directories else EventType.MOVE_FILE
        for source, target in zip(sources, targets, strict=True):
            await self._backend.move(source, target, session=session)
            await self._events.emit(ProvenanceEvent(event, user, target, {"from": source}))
        return MoveResult(sources=sources, dest=dest)

    async def move_directories(
        self, session: AsyncSession | None, user: str, sources: list[str], dest: str
    ) -> MoveResult:
        return await self._move(session, user, sources, dest, directories=True)

    async def move_files(
        self, session: AsyncSession | None, user: str, sources: list[str], dest: str
    ) -> MoveResult:
        return await self._move(session, user, sources, dest, directories=False)

    # ------------------------------------------------------------------
    # Rename
    # ------------------------------------------------------------------

    async def _rename(
        self,
        session: AsyncSession | None,
        user: str,
        source: str,
        dest: str,
        directories: bool,
    ) -> RenameResult:
        source = normalize_path(source)
        dest = normalize_path(dest)
        valid, error = validate_path(dest)
        if not valid:
            raise ValueError(error)
        logger.debug("rename %s %s -> %s", user, source, dest)

        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(source),
            gate.path_writable(user, source),
            gate.path_is_dir(source) if directories else gate.path_is_file(source),
            gate.path_not_exists(dest),
            gate.path_writable(user, dirname(dest)),
        )

        leftover = await self._backend.move(source, dest, session=session)
        if leftover:
            raise ValidationError(
                Violation(ErrorCode.INCOMPLETE_RENAME, {"paths": leftover, "user": user})
            )

        event = EventType.RENAME_DIRECTORY if directories else EventType.RENAME_FILE
        await self._events.emit(ProvenanceEvent(event, user, dest, {"from": source}))
        return RenameResult(source=source, dest=dest, user=user)

    async def rename_directory(
        self, session: AsyncSession | None, user: str, source: str, dest: str
    ) -> RenameResult:
        return await self._rename(session, user, source, dest, directories=True)

    async def rename_file(
        self, session: AsyncSession | None, user: str, source: str, dest: str
    ) -> RenameResult:
        return await self._rename(session, user, source, dest, directories=False)

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    async def copy(
        self, session: AsyncSession | None, user: str, sources: list[str], dest: str
    ) -> CopyResult:
        """Copy each source into directory *dest*; the copies belong to *user*."""
        sources = [normalize_path(s) for s in sources]
        dest = normalize_path(dest)
        targets = [path_join(dest, basename(s)) for s in sources]
        logger.debug("copy %s %s -> %s", user, sources, dest)

        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.all_paths_exist(sources),
            gate.all_paths_readable(user, sources),
            gate.path_exists(dest),
            gate.path_writable(user, dest),
            gate.path_is_dir(dest),
            gate.no_paths_exist(targets),
            gate.distinct_targets(targets),
        )

        for source, target in zip(sources, targets, strict=True):
            is_dir = await self._backend.is_dir(source, session=session)
            await self._backend.copy(source, target, owner=user, session=session)
            await self._events.emit(
                ProvenanceEvent(
                    EventType.COPY_DIRECTORY if is_dir else EventType.COPY_FILE,
                    user,
                    target,
                    {"from": source},
                )
            )
        return CopyResult(sources=sources, dest=dest)
