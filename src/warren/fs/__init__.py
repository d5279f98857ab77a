"""Filesystem layer — storage backend, validation gate and operation services."""

from warren.fs.content import ContentService
from warren.fs.database_fs import DatabaseFileSystem
from warren.fs.exceptions import (
    ErrorCode,
    StorageError,
    ValidationError,
    Violation,
    WarrenError,
)
from warren.fs.listing import ListingService
from warren.fs.metadata import MetadataService
from warren.fs.operations import OperationsService
from warren.fs.permissions import Permission, PermissionSet
from warren.fs.protocol import StorageBackend
from warren.fs.sharing import SharingService
from warren.fs.trash import TrashService, trash_relative_path
from warren.fs.types import (
    AVU,
    CartCredential,
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
    UserPermission,
)
from warren.fs.validators import Gate, first_violation

__all__ = [
    "AVU",
    "CartCredential",
    "CartResult",
    "ContentService",
    "CopyResult",
    "CreateResult",
    "DatabaseFileSystem",
    "DirectoryListing",
    "ErrorCode",
    "Gate",
    "ListingEntry",
    "ListingService",
    "ManifestResult",
    "MetadataResult",
    "MetadataService",
    "MoveResult",
    "ObjectStat",
    "OperationsService",
    "PathPermissions",
    "PathsResult",
    "Permission",
    "PermissionSet",
    "QuotaEntry",
    "RenameResult",
    "RestoreResult",
    "ShareResult",
    "SharingService",
    "StorageBackend",
    "StorageError",
    "TrashService",
    "UnshareResult",
    "UserPermission",
    "ValidationError",
    "Violation",
    "WarrenError",
    "first_violation",
    "trash_relative_path",
]
