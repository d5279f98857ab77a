"""Main Warren class — synchronous wrapper around WarrenAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from warren._warren_async import WarrenAsync

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from warren.config import WarrenConfig
    from warren.events import EventBus
    from warren.fs.permissions import PermissionSet
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

logger = logging.getLogger(__name__)


class Warren:
    """Synchronous facade over one storage zone.

    Runs a private event loop in a background thread so callers can use
    Warren from plain sync code, or from inside an existing async
    context, without managing the loop themselves.

    Usage::

        with Warren("sqlite+aiosqlite:///warren.db", WarrenConfig(zone="iplant")) as w:
            w.create("alice", "/iplant/home/alice/analyses")
            w.share("alice", ["bob"], ["/iplant/home/alice/analyses"], {"read": True})
    """

    def __init__(self, url: str, config: WarrenConfig, **engine_kwargs: Any) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async: WarrenAsync = self._run(WarrenAsync.from_url(url, config, **engine_kwargs))

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the backend, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def __enter__(self) -> Warren:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    @property
    def aio(self) -> WarrenAsync:
        """The underlying async facade."""
        return self._async

    @property
    def events(self) -> EventBus:
        return self._async.events

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_directory(
        self,
        user: str,
        path: str,
        *,
        include_files: bool = False,
        exclude_names: Iterable[str] | None = None,
        claim_ownership: bool = False,
    ) -> DirectoryListing:
        return self._run(
            self._async.list_directory(
                user,
                path,
                include_files=include_files,
                exclude_names=exclude_names,
                claim_ownership=claim_ownership,
            )
        )

    def root_listing(
        self, user: str, root_path: str, *, label: str | None = None, claim_ownership: bool = False
    ) -> ListingEntry:
        return self._run(
            self._async.root_listing(user, root_path, label=label, claim_ownership=claim_ownership)
        )

    def shared_root_listing(
        self,
        user: str,
        root_dir: str,
        *,
        include_files: bool = False,
        exclude_names: Iterable[str] | None = None,
    ) -> DirectoryListing:
        return self._run(
            self._async.shared_root_listing(
                user, root_dir, include_files=include_files, exclude_names=exclude_names
            )
        )

    def list_permissions(self, user: str, paths: list[str]) -> list[PathPermissions]:
        return self._run(self._async.list_permissions(user, paths))

    # ------------------------------------------------------------------
    # Path operations
    # ------------------------------------------------------------------

    def home_directory(self, user: str) -> str:
        return self._run(self._async.home_directory(user))

    def create(self, user: str, path: str) -> CreateResult:
        return self._run(self._async.create(user, path))

    def delete_directories(self, user: str, paths: list[str]) -> PathsResult:
        return self._run(self._async.delete_directories(user, paths))

    def delete_files(self, user: str, paths: list[str]) -> PathsResult:
        return self._run(self._async.delete_files(user, paths))

    def move_directories(self, user: str, sources: list[str], dest: str) -> MoveResult:
        return self._run(self._async.move_directories(user, sources, dest))

    def move_files(self, user: str, sources: list[str], dest: str) -> MoveResult:
        return self._run(self._async.move_files(user, sources, dest))

    def rename_directory(self, user: str, source: str, dest: str) -> RenameResult:
        return self._run(self._async.rename_directory(user, source, dest))

    def rename_file(self, user: str, source: str, dest: str) -> RenameResult:
        return self._run(self._async.rename_file(user, source, dest))

    def copy(self, user: str, sources: list[str], dest: str) -> CopyResult:
        return self._run(self._async.copy(user, sources, dest))

    # ------------------------------------------------------------------
    # Trash
    # ------------------------------------------------------------------

    def restoration_path(
        self, user: str, path: str, name: str, trash_root: str | None = None
    ) -> str:
        return self._async.restoration_path(user, path, name, trash_root)

    def restore(
        self, user: str, path: str, name: str, trash_root: str | None = None
    ) -> RestoreResult:
        return self._run(self._async.restore(user, path, name, trash_root))

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def share(
        self,
        owner: str,
        grantees: list[str],
        paths: list[str],
        permissions: PermissionSet | Mapping[str, Any],
    ) -> ShareResult:
        return self._run(self._async.share(owner, grantees, paths, permissions))

    def unshare(self, owner: str, revokees: list[str], paths: list[str]) -> UnshareResult:
        return self._run(self._async.unshare(owner, revokees, paths))

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_metadata(self, user: str, path: str) -> list[AVU]:
        return self._run(self._async.get_metadata(user, path))

    def set_metadata(self, user: str, path: str, avu: Any) -> MetadataResult:
        return self._run(self._async.set_metadata(user, path, avu))

    def delete_metadata(self, user: str, path: str, attr: str) -> MetadataResult:
        return self._run(self._async.delete_metadata(user, path, attr))

    def set_metadata_batch(self, user: str, path: str, batch: Any) -> MetadataResult:
        return self._run(self._async.set_metadata_batch(user, path, batch))

    def get_tree(self, user: str, path: str) -> list[Any]:
        return self._run(self._async.get_tree(user, path))

    def set_tree(self, user: str, path: str, tree_urls: list[Any]) -> MetadataResult:
        return self._run(self._async.set_tree(user, path, tree_urls))

    # ------------------------------------------------------------------
    # Content, carts, quota
    # ------------------------------------------------------------------

    def path_exists(self, path: str) -> bool:
        return self._run(self._async.path_exists(path))

    def path_stat(self, path: str) -> ObjectStat:
        return self._run(self._async.path_stat(path))

    def preview(self, user: str, path: str, size: int = 8192) -> str:
        return self._run(self._async.preview(user, path, size))

    def download_file(self, user: str, path: str) -> bytes:
        return self._run(self._async.download_file(user, path))

    def manifest(self, user: str, path: str) -> ManifestResult:
        return self._run(self._async.manifest(user, path))

    def download_cart(self, user: str, paths: list[str]) -> CartResult:
        return self._run(self._async.download_cart(user, paths))

    def upload_cart(self, user: str) -> CartResult:
        return self._run(self._async.upload_cart(user))

    def quota(self, user: str) -> list[QuotaEntry]:
        return self._run(self._async.quota(user))
