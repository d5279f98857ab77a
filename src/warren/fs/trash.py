"""TrashService — work out where a trashed object came from and move it back."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from warren.events import EventType, ProvenanceEvent

from .types import RestoreResult
from .utils import dirname, normalize_path, path_join, trim_leading_slash
from .validators import Gate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.config import WarrenConfig
    from warren.events import EventBus

    from .protocol import StorageBackend

logger = logging.getLogger(__name__)


def trash_relative_path(path: str, name: str, trash_root: str) -> str:
    """Home-relative location a trashed object should be restored to.

    Strips the trash root from *path*, drops the trashed object's own
    (possibly decorated) name and appends the original *name*.

    Examples:
        trash_relative_path("/z/trash/home/u/a/b/f.txt.123", "f.txt", "/z/trash/home/u")
            -> "a/b/f.txt"
        trash_relative_path("/z/trash/home/u/f.txt.123", "f.txt", "/z/trash/home/u")
            -> "f.txt"
    """
    prefix = trash_root.rstrip("/") + "/"
    relative = path.replace(prefix, "", 1)
    return trim_leading_slash(path_join(dirname(relative), name))


class TrashService:
    """Restores objects out of a user's trash into their home directory."""

    def __init__(self, backend: StorageBackend, config: WarrenConfig, events: EventBus) -> None:
        self._backend = backend
        self._config = config
        self._events = events

    def restoration_path(
        self, user: str, path: str, name: str, trash_root: str | None = None
    ) -> str:
        root = trash_root if trash_root is not None else self._config.trash_dir(user)
        return path_join(self._config.home_dir(user), trash_relative_path(path, name, root))

    async def restore(
        self,
        session: AsyncSession | None,
        user: str,
        path: str,
        name: str,
        trash_root: str | None = None,
    ) -> RestoreResult:
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(path),
            gate.path_writable(user, path),
        )

        target = self.restoration_path(user, path, name, trash_root)
        await gate.require(
            gate.path_not_exists(target),
            gate.path_writable(user, dirname(target)),
        )

        logger.debug("restore %s %s -> %s", user, path, target)
        is_dir = await self._backend.is_dir(path, session=session)
        await self._backend.move(path, target, session=session)
        await self._events.emit(
            ProvenanceEvent(
                EventType.RESTORE_DIRECTORY if is_dir else EventType.RESTORE_FILE,
                user,
                target,
                {"from": path},
            )
        )
        return RestoreResult(source=path, dest=target)
