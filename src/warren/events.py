"""EventBus and provenance event types.

Provenance is a best-effort side channel: every successful operation
reports what it touched, but a failing handler never fails the
operation that produced the event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Provenance events emitted by the operation layer."""

    LIST_DIRECTORY = "list-directory"
    CREATE_DIRECTORY = "create-directory"
    DELETE_DIRECTORY = "delete-directory"
    DELETE_FILE = "delete-file"
    MOVE_DIRECTORY = "move-directory"
    MOVE_FILE = "move-file"
    RENAME_DIRECTORY = "rename-directory"
    RENAME_FILE = "rename-file"
    COPY_FILE = "copy-file"
    COPY_DIRECTORY = "copy-directory"
    RESTORE_FILE = "restore-file"
    RESTORE_DIRECTORY = "restore-directory"
    SHARE_FILE = "share-file"
    SHARE_DIRECTORY = "share-directory"
    UNSHARE_FILE = "unshare-file"
    UNSHARE_DIRECTORY = "unshare-directory"
    GET_PERMISSIONS = "get-user-permissions"
    GET_METADATA = "get-metadata"
    SET_METADATA = "set-metadata"
    DELETE_METADATA = "delete-metadata"
    SET_METADATA_BATCH = "set-metadata-batch"
    GET_TREE_URLS = "get-tree-urls"
    SET_TREE_URLS = "set-tree-urls"
    PREVIEW_FILE = "preview-file"
    FILE_MANIFEST = "file-manifest"
    DOWNLOAD = "download"
    DOWNLOAD_CART = "download-cart"
    UPLOAD_CART = "upload-cart"
    QUOTA = "quota"


@dataclass(frozen=True, slots=True)
class ProvenanceEvent:
    """Immutable record of one operation on one object.

    Attributes:
        event_type: The kind of operation that occurred.
        user: The user who performed it.
        path: Object the event is about (destination for moves/restores).
        data: Extra event-specific details (old path, grantees, AVU, ...).
    """

    event_type: EventType
    user: str
    path: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


class EventBus:
    """Dispatches provenance events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated — a failing handler
    loses provenance, it does not fail the operation.
    """

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self._handlers: dict[EventType, list[Callable[..., Any]]] = {et: [] for et in EventType}

    def register(self, event_type: EventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def register_all(self, handler: Callable[..., Any]) -> None:
        """Register *handler* for every event type."""
        for event_type in EventType:
            self.register(event_type, handler)

    def unregister(self, event_type: EventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: ProvenanceEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        if not self.enabled:
            return
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Provenance handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.path,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
