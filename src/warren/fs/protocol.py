"""StorageBackend protocol — the capability set consumed from the storage service.

Everything the operation layer knows about the remote hierarchy goes
through this interface.  Implementations own existence, permissions,
content, metadata persistence and credential issuance; the services in
this package only validate and sequence calls.

``session`` is accepted on every method so the caller's per-request
context is passed explicitly instead of living in global state.  SQL
backends should fail fast if ``session is None``.  Non-SQL backends
ignore it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from .permissions import PermissionSet
    from .types import AVU, CartCredential, ObjectStat, QuotaEntry, UserPermission

CartDirection = Literal["download", "upload"]


@runtime_checkable
class StorageBackend(Protocol):
    """Core interface every storage service adapter must implement."""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Called before first use.  No-op if not needed."""
        ...

    async def close(self) -> None:
        """Called on shutdown."""
        ...

    # ------------------------------------------------------------------
    # Identity and existence
    # ------------------------------------------------------------------

    async def user_exists(self, user: str, *, session: AsyncSession | None = None) -> bool: ...

    async def exists(self, path: str, *, session: AsyncSession | None = None) -> bool: ...

    async def is_dir(self, path: str, *, session: AsyncSession | None = None) -> bool: ...

    async def is_file(self, path: str, *, session: AsyncSession | None = None) -> bool: ...

    async def stat(self, path: str, *, session: AsyncSession | None = None) -> ObjectStat: ...

    async def list_children(
        self, path: str, *, session: AsyncSession | None = None
    ) -> list[ObjectStat]: ...

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    async def is_readable(
        self, user: str, path: str, *, session: AsyncSession | None = None
    ) -> bool: ...

    async def is_writable(
        self, user: str, path: str, *, session: AsyncSession | None = None
    ) -> bool: ...

    async def owns(self, user: str, path: str, *, session: AsyncSession | None = None) -> bool: ...

    async def get_permission(
        self, user: str, path: str, *, session: AsyncSession | None = None
    ) -> PermissionSet: ...

    async def list_permissions(
        self, path: str, *, session: AsyncSession | None = None
    ) -> list[UserPermission]: ...

    async def set_permission(
        self,
        user: str,
        path: str,
        permissions: PermissionSet,
        *,
        recursive: bool = False,
        session: AsyncSession | None = None,
    ) -> None: ...

    async def remove_permission(
        self,
        user: str,
        path: str,
        *,
        recursive: bool = False,
        session: AsyncSession | None = None,
    ) -> None: ...

    async def set_inheritance(
        self, path: str, inherit: bool, *, session: AsyncSession | None = None
    ) -> None: ...

    async def set_owner(self, path: str, user: str, *, session: AsyncSession | None = None) -> None: ...

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    async def mkdir(self, path: str, *, session: AsyncSession | None = None) -> None: ...

    async def mkdirs(self, path: str, *, session: AsyncSession | None = None) -> None: ...

    async def delete(self, path: str, *, session: AsyncSession | None = None) -> None: ...

    async def move(
        self, src: str, dest: str, *, session: AsyncSession | None = None
    ) -> list[str]:
        """Move *src* to the full path *dest*.

        Returns the paths that could not be moved; an empty list means the
        move completed.
        """
        ...

    async def copy(
        self,
        src: str,
        dest: str,
        *,
        owner: str | None = None,
        session: AsyncSession | None = None,
    ) -> None:
        """Copy *src* (recursively for directories) to the full path *dest*.

        When *owner* is given, every new object is owned by that user.
        """
        ...

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def read(
        self, path: str, size: int | None = None, *, session: AsyncSession | None = None
    ) -> bytes: ...

    async def write(
        self, path: str, data: bytes, *, session: AsyncSession | None = None
    ) -> None: ...

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_metadata(self, path: str, *, session: AsyncSession | None = None) -> list[AVU]: ...

    async def get_attribute(
        self, path: str, attr: str, *, session: AsyncSession | None = None
    ) -> list[AVU]: ...

    async def has_attribute(
        self, path: str, attr: str, *, session: AsyncSession | None = None
    ) -> bool: ...

    async def set_metadata(
        self,
        path: str,
        attr: str,
        value: str,
        unit: str,
        *,
        session: AsyncSession | None = None,
    ) -> None:
        """Replace every triple under *attr* with a single new triple."""
        ...

    async def add_metadata(
        self,
        path: str,
        attr: str,
        value: str,
        unit: str,
        *,
        session: AsyncSession | None = None,
    ) -> None: ...

    async def delete_metadata(
        self, path: str, attr: str, *, session: AsyncSession | None = None
    ) -> None: ...

    # ------------------------------------------------------------------
    # Tickets, credentials, quota
    # ------------------------------------------------------------------

    async def ticket_exists(
        self, user: str, ticket_id: str, *, session: AsyncSession | None = None
    ) -> bool: ...

    async def issue_cart_credential(
        self,
        user: str,
        paths: list[str],
        direction: CartDirection,
        *,
        session: AsyncSession | None = None,
    ) -> CartCredential: ...

    async def quota(self, user: str, *, session: AsyncSession | None = None) -> list[QuotaEntry]: ...
