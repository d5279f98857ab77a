"""Warren: access-controlled file operations over a remote storage zone.

Validated listing, create/delete/move/rename/copy, metadata, sharing and
trash restore, with ancestor visibility kept in step on share/unshare.
"""

__version__ = "0.1.0"

from warren._warren import Warren
from warren._warren_async import WarrenAsync
from warren.config import WarrenConfig
from warren.events import EventBus, EventType, ProvenanceEvent
from warren.fs.exceptions import ErrorCode, StorageError, ValidationError, Violation, WarrenError
from warren.fs.permissions import Permission, PermissionSet

__all__ = [
    "ErrorCode",
    "EventBus",
    "EventType",
    "Permission",
    "PermissionSet",
    "ProvenanceEvent",
    "StorageError",
    "ValidationError",
    "Violation",
    "Warren",
    "WarrenAsync",
    "WarrenConfig",
    "WarrenError",
    "__version__",
]
