"""SharingService — grant and revoke access, keeping ancestors navigable.

Sharing a path also makes every directory between it and the realm root
readable to the grantee, so the shared object can be reached by walking
down from the root.  Unsharing prunes that read access again, stopping
at the first ancestor under which the revokee can still read something.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from warren.events import EventType, ProvenanceEvent

from .types import ShareResult, UnshareResult
from .utils import ancestors, normalize_path
from .validators import Gate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.config import WarrenConfig
    from warren.events import EventBus

    from .permissions import PermissionSet
    from .protocol import StorageBackend

logger = logging.getLogger(__name__)


class SharingService:
    """Share/unshare over (user, path) pairs.

    Preconditions are checked for the whole request before anything is
    changed.  After that each (user, path) pair is applied on its own;
    a backend failure midway leaves earlier pairs applied.
    """

    def __init__(self, backend: StorageBackend, config: WarrenConfig, events: EventBus) -> None:
        self._backend = backend
        self._config = config
        self._events = events

    async def _validate(
        self, session: AsyncSession | None, owner: str, users: list[str], paths: list[str]
    ) -> None:
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(owner),
            gate.all_users_exist(users),
            gate.all_paths_exist(paths),
            gate.user_owns_paths(owner, paths),
        )

    # ------------------------------------------------------------------
    # Share
    # ------------------------------------------------------------------

    async def share(
        self,
        session: AsyncSession | None,
        owner: str,
        grantees: list[str],
        paths: list[str],
        permissions: PermissionSet,
    ) -> ShareResult:
        paths = [normalize_path(p) for p in paths]
        await self._validate(session, owner, grantees, paths)

        for grantee in grantees:
            for path in paths:
                logger.debug("share %s -> %s on %s (%s)", owner, grantee, path, permissions)
                await self._share_one(session, grantee, path, permissions)
                is_dir = await self._backend.is_dir(path, session=session)
                await self._events.emit(
                    ProvenanceEvent(
                        EventType.SHARE_DIRECTORY if is_dir else EventType.SHARE_FILE,
                        owner,
                        path,
                        {"grantee": grantee, "permissions": permissions.to_dict()},
                    )
                )

        return ShareResult(users=list(grantees), paths=paths, permissions=permissions)

    async def _share_one(
        self,
        session: AsyncSession | None,
        grantee: str,
        path: str,
        permissions: PermissionSet,
    ) -> None:
        # Ancestors first, then the target, then inheritance.
        for ancestor in ancestors(path, self._config.realm_root):
            current = await self._backend.get_permission(grantee, ancestor, session=session)
            await self._backend.set_permission(
                grantee, ancestor, current.with_read(), session=session
            )

        await self._backend.set_permission(
            grantee, path, permissions, recursive=True, session=session
        )

        if await self._backend.is_dir(path, session=session):
            await self._backend.set_inheritance(path, True, session=session)

    # ------------------------------------------------------------------
    # Unshare
    # ------------------------------------------------------------------

    async def unshare(
        self,
        session: AsyncSession | None,
        owner: str,
        revokees: list[str],
        paths: list[str],
    ) -> UnshareResult:
        paths = [normalize_path(p) for p in paths]
        await self._validate(session, owner, revokees, paths)

        for revokee in revokees:
            for path in paths:
                logger.debug("unshare %s -x %s on %s", owner, revokee, path)
                is_dir = await self._backend.is_dir(path, session=session)
                await self._unshare_one(session, revokee, path, is_dir)
                await self._events.emit(
                    ProvenanceEvent(
                        EventType.UNSHARE_DIRECTORY if is_dir else EventType.UNSHARE_FILE,
                        owner,
                        path,
                        {"revokee": revokee},
                    )
                )

        return UnshareResult(users=list(revokees), paths=paths)

    async def _unshare_one(
        self, session: AsyncSession | None, revokee: str, path: str, is_dir: bool
    ) -> None:
        await self._backend.remove_permission(revokee, path, recursive=is_dir, session=session)

        for ancestor in ancestors(path, self._config.realm_root):
            if await self.can_read_under(session, revokee, ancestor):
                logger.debug("unshare walk for %s stops at %s", revokee, ancestor)
                break
            current = await self._backend.get_permission(revokee, ancestor, session=session)
            if current.write or current.own:
                await self._backend.set_permission(
                    revokee, ancestor, current.without_read(), session=session
                )
            else:
                await self._backend.remove_permission(revokee, ancestor, session=session)

    async def can_read_under(self, session: AsyncSession | None, user: str, directory: str) -> bool:
        """True if *user* can read any immediate child of *directory*."""
        for child in await self._backend.list_children(directory, session=session):
            if await self._backend.is_readable(user, child.path, session=session):
                return True
        return False
