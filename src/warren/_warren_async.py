"""WarrenAsync — primary async class wiring backend, services and provenance."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from warren.events import EventBus
from warren.fs.content import ContentService
from warren.fs.database_fs import DatabaseFileSystem
from warren.fs.listing import ListingService
from warren.fs.metadata import MetadataService
from warren.fs.operations import OperationsService
from warren.fs.permissions import PermissionSet
from warren.fs.sharing import SharingService
from warren.fs.trash import TrashService
from warren.models import (
    AccessGrant,
    Account,
    CartRecord,
    MetadataTriple,
    QuotaAllocation,
    StoredObject,
    Ticket,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Iterable, Mapping

    from sqlalchemy.ext.asyncio import AsyncEngine

    from warren.config import WarrenConfig
    from warren.fs.protocol import StorageBackend
    from warren.fs.types import (
        AVU,
        CartResult,
        CopyResult,
        CreateResult,
        DirectoryListing,
        ListingEntry,
        ManifestResult,
        MetadataResult,
        MoveResult,
        ObjectStat,
        PathPermissions,
        PathsResult,
        QuotaEntry,
        RenameResult,
        RestoreResult,
        ShareResult,
        UnshareResult,
    )
    from warren.models.avus import AVUPayload, MetadataBatchPayload

logger = logging.getLogger(__name__)

_TABLES = (StoredObject, AccessGrant, MetadataTriple, Account, Ticket, CartRecord, QuotaAllocation)


class WarrenAsync:
    """Async facade over one storage zone.

    Every public operation runs in its own session: committed on
    success, rolled back on error, closed either way.

    Engine-based setup (primary API)::

        config = WarrenConfig(zone="iplant")
        w = await WarrenAsync.from_url("sqlite+aiosqlite:///warren.db", config)
        await w.share("alice", ["bob"], ["/iplant/home/alice/data"], {"read": True})

    Bring your own backend::

        w = WarrenAsync(config, backend)  # sessions are None for non-SQL backends
    """

    def __init__(
        self,
        config: WarrenConfig,
        backend: StorageBackend,
        *,
        session_factory: Callable[..., AsyncSession] | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = None
        self._closed = False

        self._event_bus = event_bus or EventBus(enabled=config.provenance_enabled)

        self._listing = ListingService(backend, config, self._event_bus)
        self._metadata = MetadataService(backend, config, self._event_bus)
        self._sharing = SharingService(backend, config, self._event_bus)
        self._operations = OperationsService(backend, config, self._event_bus)
        self._trash = TrashService(backend, config, self._event_bus)
        self._content = ContentService(backend, config, self._event_bus, self._metadata)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    async def from_engine(cls, engine: AsyncEngine, config: WarrenConfig) -> WarrenAsync:
        """Build a database-backed instance on *engine*, creating tables if needed."""
        async with engine.begin() as conn:
            for model in _TABLES:
                await conn.run_sync(
                    lambda c, m=model: m.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )

        backend = DatabaseFileSystem(
            config.zone,
            host=config.host,
            port=config.port,
            default_storage_resource=config.default_storage_resource,
        )
        sf = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        instance = cls(config, backend, session_factory=sf)
        await backend.open()
        return instance

    @classmethod
    async def from_url(cls, url: str, config: WarrenConfig, **engine_kwargs: Any) -> WarrenAsync:
        """Create an engine for *url* and build on it.  The engine is disposed on close."""
        engine = create_async_engine(url, **engine_kwargs)
        instance = await cls.from_engine(engine, config)
        instance._engine = engine
        return instance

    # ------------------------------------------------------------------
    # Session management
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session_for(self) -> AsyncGenerator[AsyncSession | None]:
        """Yield a session for one operation, or None for non-SQL backends."""
        if self._session_factory is None:
            yield None
            return

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_directory(
        self,
        user: str,
        path: str,
        *,
        include_files: bool = False,
        exclude_names: Iterable[str] | None = None,
        claim_ownership: bool = False,
    ) -> DirectoryListing:
        async with self._session_for() as sess:
            return await self._listing.list_directory(
                sess,
                user,
                path,
                include_files=include_files,
                exclude_names=exclude_names,
                claim_ownership=claim_ownership,
            )

    async def root_listing(
        self,
        user: str,
        root_path: str,
        *,
        label: str | None = None,
        claim_ownership: bool = False,
    ) -> ListingEntry:
        async with self._session_for() as sess:
            return await self._listing.root_listing(
                sess, user, root_path, label=label, claim_ownership=claim_ownership
            )

    async def shared_root_listing(
        self,
        user: str,
        root_dir: str,
        *,
        include_files: bool = False,
        exclude_names: Iterable[str] | None = None,
    ) -> DirectoryListing:
        async with self._session_for() as sess:
            return await self._listing.shared_root_listing(
                sess, user, root_dir, include_files=include_files, exclude_names=exclude_names
            )

    async def list_permissions(self, user: str, paths: list[str]) -> list[PathPermissions]:
        async with self._session_for() as sess:
            return await self._listing.list_permissions(sess, user, paths)

    # ------------------------------------------------------------------
    # Path operations
    # ------------------------------------------------------------------

    async def home_directory(self, user: str) -> str:
        async with self._session_for() as sess:
            return await self._operations.home_directory(sess, user)

    async def create(self, user: str, path: str) -> CreateResult:
        async with self._session_for() as sess:
            return await self._operations.create(sess, user, path)

    async def delete_directories(self, user: str, paths: list[str]) -> PathsResult:
        async with self._session_for() as sess:
            return await self._operations.delete_directories(sess, user, paths)

    async def delete_files(self, user: str, paths: list[str]) -> PathsResult:
        async with self._session_for() as sess:
            return await self._operations.delete_files(sess, user, paths)

    async def move_directories(self, user: str, sources: list[str], dest: str) -> MoveResult:
        async with self._session_for() as sess:
            return await self._operations.move_directories(sess, user, sources, dest)

    async def move_files(self, user: str, sources: list[str], dest: str) -> MoveResult:
        async with self._session_for() as sess:
            return await self._operations.move_files(sess, user, sources, dest)

    async def rename_directory(self, user: str, source: str, dest: str) -> RenameResult:
        async with self._session_for() as sess:
            return await self._operations.rename_directory(sess, user, source, dest)

    async def rename_file(self, user: str, source: str, dest: str) -> RenameResult:
        async with self._session_for() as sess:
            return await self._operations.rename_file(sess, user, source, dest)

    async def copy(self, user: str, sources: list[str], dest: str) -> CopyResult:
        async with self._session_for() as sess:
            return await self._operations.copy(sess, user, sources, dest)

    # ------------------------------------------------------------------
    # Trash
    # ------------------------------------------------------------------

    def restoration_path(
        self, user: str, path: str, name: str, trash_root: str | None = None
    ) -> str:
        return self._trash.restoration_path(user, path, name, trash_root)

    async def restore(
        self, user: str, path: str, name: str, trash_root: str | None = None
    ) -> RestoreResult:
        async with self._session_for() as sess:
            return await self._trash.restore(sess, user, path, name, trash_root)

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def share(
        self,
        owner: str,
        grantees: list[str],
        paths: list[str],
        permissions: PermissionSet | Mapping[str, Any],
    ) -> ShareResult:
        if not isinstance(permissions, PermissionSet):
            permissions = PermissionSet.from_mapping(permissions)
        async with self._session_for() as sess:
            return await self._sharing.share(sess, owner, grantees, paths, permissions)

    async def unshare(self, owner: str, revokees: list[str], paths: list[str]) -> UnshareResult:
        async with self._session_for() as sess:
            return await self._sharing.unshare(sess, owner, revokees, paths)

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_metadata(self, user: str, path: str) -> list[AVU]:
        async with self._session_for() as sess:
            return await self._metadata.get_metadata(sess, user, path)

    async def set_metadata(
        self, user: str, path: str, avu: AVUPayload | dict[str, Any]
    ) -> MetadataResult:
        async with self._session_for() as sess:
            return await self._metadata.set_metadata(sess, user, path, avu)

    async def delete_metadata(self, user: str, path: str, attr: str) -> MetadataResult:
        async with self._session_for() as sess:
            return await self._metadata.delete_metadata(sess, user, path, attr)

    async def set_metadata_batch(
        self, user: str, path: str, batch: MetadataBatchPayload | dict[str, Any]
    ) -> MetadataResult:
        async with self._session_for() as sess:
            return await self._metadata.set_metadata_batch(sess, user, path, batch)

    async def get_tree(self, user: str, path: str) -> list[Any]:
        async with self._session_for() as sess:
            return await self._metadata.get_tree(sess, user, path)

    async def set_tree(self, user: str, path: str, tree_urls: list[Any]) -> MetadataResult:
        async with self._session_for() as sess:
            return await self._metadata.set_tree(sess, user, path, tree_urls)

    # ------------------------------------------------------------------
    # Content, carts, quota
    # ------------------------------------------------------------------

    async def path_exists(self, path: str) -> bool:
        async with self._session_for() as sess:
            return await self._content.path_exists(sess, path)

    async def path_stat(self, path: str) -> ObjectStat:
        async with self._session_for() as sess:
            return await self._content.path_stat(sess, path)

    async def preview(self, user: str, path: str, size: int = 8192) -> str:
        async with self._session_for() as sess:
            return await self._content.preview(sess, user, path, size)

    async def download_file(self, user: str, path: str) -> bytes:
        async with self._session_for() as sess:
            return await self._content.download_file(sess, user, path)

    async def manifest(self, user: str, path: str) -> ManifestResult:
        async with self._session_for() as sess:
            return await self._content.manifest(sess, user, path)

    async def download_cart(self, user: str, paths: list[str]) -> CartResult:
        async with self._session_for() as sess:
            return await self._content.download_cart(sess, user, paths)

    async def upload_cart(self, user: str) -> CartResult:
        async with self._session_for() as sess:
            return await self._content.upload_cart(sess, user)

    async def quota(self, user: str) -> list[QuotaEntry]:
        async with self._session_for() as sess:
            return await self._content.quota(sess, user)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            await self._backend.close()
        except Exception:
            logger.warning("Backend close failed for zone %s", self._config.zone, exc_info=True)
        if self._engine is not None:
            await self._engine.dispose()

    async def __aenter__(self) -> WarrenAsync:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> WarrenConfig:
        return self._config

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def events(self) -> EventBus:
        return self._event_bus
