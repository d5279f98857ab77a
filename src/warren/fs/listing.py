"""ListingService — directory listings, root listings and permission reports.

Stateless service that receives the backend and config at construction
and a session at call time.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from warren.events import EventType, ProvenanceEvent

from .permissions import PermissionSet
from .types import DirectoryListing, ListingEntry, PathPermissions
from .utils import basename, normalize_path
from .validators import Gate

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.config import WarrenConfig
    from warren.events import EventBus

    from .protocol import StorageBackend
    from .types import ObjectStat

logger = logging.getLogger(__name__)


class ListingService:
    """Single-level listings annotated with the requesting user's permissions."""

    def __init__(self, backend: StorageBackend, config: WarrenConfig, events: EventBus) -> None:
        self._backend = backend
        self._config = config
        self._events = events

    def _excluded(self, exclude_names: Iterable[str] | None) -> set[str]:
        excluded = set(self._config.exclude_names)
        if exclude_names:
            excluded.update(exclude_names)
        return excluded

    async def _claim_and_check(
        self, session: AsyncSession | None, user: str, path: str, claim_ownership: bool
    ) -> None:
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user), gate.path_exists(path))
        if claim_ownership and not await self._backend.owns(user, path, session=session):
            logger.debug("Claiming ownership of %s for %s", path, user)
            await self._backend.set_permission(
                user, path, PermissionSet(own=True), session=session
            )
        await gate.require(gate.path_readable(user, path))

    async def _entry(
        self, session: AsyncSession | None, user: str, stat: ObjectStat, label: str | None = None
    ) -> ListingEntry:
        perms = await self._backend.get_permission(user, stat.path, session=session)
        return ListingEntry(
            id=stat.path,
            label=label if label is not None else stat.name,
            permissions=perms,
            is_directory=stat.is_directory,
            date_created=stat.created_at,
            date_modified=stat.modified_at,
            file_size=stat.size_bytes,
        )

    async def _visible(
        self, session: AsyncSession | None, user: str, stat: ObjectStat, excluded: set[str]
    ) -> bool:
        if stat.path in excluded or stat.name in excluded:
            return False
        return await self._backend.is_readable(user, stat.path, session=session)

    async def list_directory(
        self,
        session: AsyncSession | None,
        user: str,
        path: str,
        *,
        include_files: bool = False,
        exclude_names: Iterable[str] | None = None,
        claim_ownership: bool = False,
    ) -> DirectoryListing:
        """List the immediate children of *path* that *user* can read.

        Entries whose absolute path or basename appears in *exclude_names*
        (or the configured exclusions) are dropped.  ``files`` is only
        populated when *include_files* is true.
        """
        path = normalize_path(path)
        logger.debug("list_directory %s %s", user, path)
        await self._claim_and_check(session, user, path, claim_ownership)

        excluded = self._excluded(exclude_names)
        folders: list[ListingEntry] = []
        files: list[ListingEntry] = []
        for stat in await self._backend.list_children(path, session=session):
            if not stat.is_directory and not include_files:
                continue
            if not await self._visible(session, user, stat, excluded):
                continue
            entry = await self._entry(session, user, stat)
            (folders if stat.is_directory else files).append(entry)

        stat = await self._backend.stat(path, session=session)
        listing = DirectoryListing(
            id=path,
            label=basename(path),
            permissions=await self._backend.get_permission(user, path, session=session),
            date_created=stat.created_at,
            date_modified=stat.modified_at,
            folders=folders,
            files=files if include_files else None,
        )
        await self._events.emit(ProvenanceEvent(EventType.LIST_DIRECTORY, user, path))
        return listing

    async def root_listing(
        self,
        session: AsyncSession | None,
        user: str,
        root_path: str,
        *,
        label: str | None = None,
        claim_ownership: bool = False,
    ) -> ListingEntry:
        """Describe a single root directory as a listing entry."""
        root_path = normalize_path(root_path)
        logger.debug("root_listing %s %s", user, root_path)
        await self._claim_and_check(session, user, root_path, claim_ownership)
        stat = await self._backend.stat(root_path, session=session)
        return await self._entry(session, user, stat, label)

    async def shared_root_listing(
        self,
        session: AsyncSession | None,
        user: str,
        root_dir: str,
        *,
        include_files: bool = False,
        exclude_names: Iterable[str] | None = None,
    ) -> DirectoryListing:
        """List the shared root, granting *user* read on it first if needed."""
        root_dir = normalize_path(root_dir)
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user), gate.path_exists(root_dir))
        if not await self._backend.is_readable(user, root_dir, session=session):
            await self._backend.set_permission(
                user, root_dir, PermissionSet.read_only(), session=session
            )
        listing = await self.list_directory(
            session,
            user,
            root_dir,
            include_files=include_files,
            exclude_names=exclude_names,
        )
        listing.label = "Shared"
        return listing

    async def list_permissions(
        self, session: AsyncSession | None, user: str, paths: list[str]
    ) -> list[PathPermissions]:
        """Every other principal's permissions on each of *paths*.

        The requester and the service principal are left out.
        """
        paths = [normalize_path(p) for p in paths]
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.all_paths_exist(paths),
            gate.user_owns_paths(user, paths),
        )

        hidden = {user, self._config.service_user}
        results: list[PathPermissions] = []
        for path in paths:
            perms = await self._backend.list_permissions(path, session=session)
            results.append(
                PathPermissions(path=path, user_permissions=[p for p in perms if p.user not in hidden])
            )
            await self._events.emit(ProvenanceEvent(EventType.GET_PERMISSIONS, user, path))
        return results
