"""ContentService — previews, downloads, manifests, transfer carts and quota."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote_plus

from warren.events import EventType, ProvenanceEvent

from .types import CartResult, ManifestResult
from .utils import basename, guess_mime_type, normalize_path
from .validators import Gate

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.config import WarrenConfig
    from warren.events import EventBus

    from .metadata import MetadataService
    from .protocol import StorageBackend
    from .types import ObjectStat, QuotaEntry

logger = logging.getLogger(__name__)


class ContentService:
    """Read-side operations on file content plus credential issuance."""

    def __init__(
        self,
        backend: StorageBackend,
        config: WarrenConfig,
        events: EventBus,
        metadata: MetadataService,
    ) -> None:
        self._backend = backend
        self._config = config
        self._events = events
        self._metadata = metadata

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------

    async def path_exists(self, session: AsyncSession | None, path: str) -> bool:
        return await self._backend.exists(normalize_path(path), session=session)

    async def path_stat(self, session: AsyncSession | None, path: str) -> ObjectStat:
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(gate.path_exists(path))
        return await self._backend.stat(path, session=session)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def preview(
        self, session: AsyncSession | None, user: str, path: str, size: int
    ) -> str:
        """Return up to *size* bytes of the file decoded as text."""
        path = normalize_path(path)
        logger.debug("preview %s %s %d", user, path, size)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(path),
            gate.path_readable(user, path),
            gate.path_is_file(path),
        )
        stat = await self._backend.stat(path, session=session)
        if stat.size_bytes == 0:
            text = ""
        else:
            data = await self._backend.read(path, min(size, stat.size_bytes), session=session)
            text = data.decode("utf-8", errors="replace")
        await self._events.emit(ProvenanceEvent(EventType.PREVIEW_FILE, user, path))
        return text

    async def download_file(self, session: AsyncSession | None, user: str, path: str) -> bytes:
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(path),
            gate.path_readable(user, path),
        )
        data = await self._backend.read(path, session=session)
        await self._events.emit(ProvenanceEvent(EventType.DOWNLOAD, user, path))
        return data

    async def manifest(self, session: AsyncSession | None, user: str, path: str) -> ManifestResult:
        """Describe a file: content type, tree URLs and a preview link."""
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(path),
            gate.path_is_file(path),
            gate.path_readable(user, path),
        )
        result = ManifestResult(
            content_type=guess_mime_type(basename(path)),
            tree_urls=await self._metadata.read_tree_urls(session, path),
            preview=f"file/preview?user={quote_plus(user)}&path={quote_plus(path)}",
        )
        await self._events.emit(ProvenanceEvent(EventType.FILE_MANIFEST, user, path))
        return result

    # ------------------------------------------------------------------
    # Carts
    # ------------------------------------------------------------------

    async def download_cart(
        self, session: AsyncSession | None, user: str, paths: list[str]
    ) -> CartResult:
        """Issue a single-use credential for a bulk download of *paths*."""
        paths = [normalize_path(p) for p in paths]
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.all_paths_exist(paths),
            gate.all_paths_readable(user, paths),
        )
        credential = await self._backend.issue_cart_credential(
            user, paths, "download", session=session
        )
        await self._events.emit(
            ProvenanceEvent(EventType.DOWNLOAD_CART, user, None, {"paths": paths})
        )
        return CartResult(
            action="download",
            user=user,
            home=self._config.home_dir(user),
            credential=credential,
        )

    async def upload_cart(self, session: AsyncSession | None, user: str) -> CartResult:
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user))
        credential = await self._backend.issue_cart_credential(
            user, [], "upload", session=session
        )
        await self._events.emit(ProvenanceEvent(EventType.UPLOAD_CART, user))
        return CartResult(
            action="upload",
            user=user,
            home=self._config.home_dir(user),
            credential=credential,
        )

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    async def quota(self, session: AsyncSession | None, user: str) -> list[QuotaEntry]:
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user))
        entries = await self._backend.quota(user, session=session)
        await self._events.emit(ProvenanceEvent(EventType.QUOTA, user))
        return entries
