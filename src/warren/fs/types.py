"""Result types: ObjectStat, DirectoryListing, ShareResult, etc.

Every result knows how to render itself with ``to_dict()`` using the
keys API consumers already depend on (``date-created``, ``hasSubDirs``,
``file-size``, ...).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from .permissions import PermissionSet


def epoch_millis(value: datetime | None) -> str:
    """Render a timestamp as milliseconds since the epoch, as a string."""
    if value is None:
        return "0"
    return str(int(value.timestamp() * 1000))


@dataclass
class ObjectStat:
    """Live metadata for a single file or directory."""

    path: str
    name: str
    is_directory: bool
    size_bytes: int = 0
    created_at: datetime | None = None
    modified_at: datetime | None = None


@dataclass
class UserPermission:
    """One principal's permissions on a path."""

    user: str
    permissions: PermissionSet

    def to_dict(self) -> dict[str, Any]:
        return {"user": self.user, "permissions": self.permissions.to_dict()}


@dataclass
class ListingEntry:
    """A file or directory inside a listing."""

    id: str
    label: str
    permissions: PermissionSet
    is_directory: bool
    date_created: datetime | None = None
    date_modified: datetime | None = None
    file_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "permissions": self.permissions.to_dict(),
            "date-created": epoch_millis(self.date_created),
            "date-modified": epoch_millis(self.date_modified),
            "file-size": str(self.file_size),
        }
        if self.is_directory:
            data["hasSubDirs"] = True
        return data


@dataclass
class DirectoryListing:
    """Single-level snapshot of a directory.

    ``files`` is ``None`` when the caller did not ask for files; it is
    then left out of ``to_dict()`` entirely.
    """

    id: str
    label: str
    permissions: PermissionSet
    date_created: datetime | None = None
    date_modified: datetime | None = None
    has_sub_dirs: bool = True
    folders: list[ListingEntry] = field(default_factory=list)
    files: list[ListingEntry] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "hasSubDirs": self.has_sub_dirs,
            "date-created": epoch_millis(self.date_created),
            "date-modified": epoch_millis(self.date_modified),
            "permissions": self.permissions.to_dict(),
            "folders": [f.to_dict() for f in self.folders],
        }
        if self.files is not None:
            data["files"] = [f.to_dict() for f in self.files]
        return data


@dataclass
class PathPermissions:
    """Permissions other principals hold on one path."""

    path: str
    user_permissions: list[UserPermission] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "user-permissions": [p.to_dict() for p in self.user_permissions],
        }


@dataclass
class AVU:
    """An attribute/value/unit metadata triple."""

    attr: str
    value: str
    unit: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"attr": self.attr, "value": self.value, "unit": self.unit}


@dataclass
class CartCredential:
    """Single-use transfer credential issued by the storage service."""

    key: str
    password: str
    host: str
    port: int
    zone: str
    default_storage_resource: str = ""


@dataclass
class CartResult:
    """Response for a bulk upload/download request."""

    action: str
    user: str
    home: str
    credential: CartCredential
    status: str = "success"

    def to_dict(self) -> dict[str, Any]:
        cred = self.credential
        return {
            "action": self.action,
            "status": self.status,
            "data": {
                "user": self.user,
                "home": self.home,
                "password": cred.password,
                "host": cred.host,
                "port": cred.port,
                "zone": cred.zone,
                "defaultStorageResource": cred.default_storage_resource,
                "key": cred.key,
            },
        }


@dataclass
class QuotaEntry:
    """Usage against a quota for one storage resource."""

    resource: str
    limit_bytes: int
    used_bytes: int

    @property
    def over_bytes(self) -> int:
        return self.used_bytes - self.limit_bytes

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource": self.resource,
            "limit": self.limit_bytes,
            "used": self.used_bytes,
            "over": self.over_bytes,
        }


@dataclass
class CreateResult:
    """Result of a directory create."""

    path: str
    permissions: PermissionSet

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "permissions": self.permissions.to_dict()}


@dataclass
class PathsResult:
    """Result of a delete over a set of paths."""

    paths: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"paths": list(self.paths)}


@dataclass
class MoveResult:
    """Result of a batch move."""

    sources: list[str]
    dest: str

    def to_dict(self) -> dict[str, Any]:
        return {"sources": list(self.sources), "dest": self.dest}


@dataclass
class RenameResult:
    """Result of a rename."""

    source: str
    dest: str
    user: str

    def to_dict(self) -> dict[str, Any]:
        return {"source": self.source, "dest": self.dest, "user": self.user}


@dataclass
class CopyResult:
    """Result of a batch copy."""

    sources: list[str]
    dest: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": list(self.sources), "to": self.dest}


@dataclass
class RestoreResult:
    """Result of restoring an object out of the trash."""

    source: str
    dest: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.source, "to": self.dest}


@dataclass
class ShareResult:
    """Result of a share."""

    users: list[str]
    paths: list[str]
    permissions: PermissionSet

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": list(self.users),
            "path": list(self.paths),
            "permissions": self.permissions.to_dict(),
        }


@dataclass
class UnshareResult:
    """Result of an unshare."""

    users: list[str]
    paths: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"user": list(self.users), "path": list(self.paths)}


@dataclass
class MetadataResult:
    """Acknowledgement of a metadata mutation."""

    path: str
    user: str

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "user": self.user}


@dataclass
class ManifestResult:
    """Content description for a file."""

    content_type: str
    tree_urls: list[Any]
    preview: str
    action: str = "manifest"

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "content-type": self.content_type,
            "tree-urls": list(self.tree_urls),
            "preview": self.preview,
        }
