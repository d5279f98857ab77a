"""Permission bits and the per-(user, path) permission set."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


class Permission(str, Enum):
    """A single permission bit."""

    READ = "read"
    WRITE = "write"
    OWN = "own"


@dataclass(frozen=True)
class PermissionSet:
    """Independently settable ``{read, write, own}`` bits for one user on one path.

    The storage service does not imply one bit from another; callers
    request the full set they need.
    """

    read: bool = False
    write: bool = False
    own: bool = False

    @classmethod
    def none(cls) -> PermissionSet:
        return cls()

    @classmethod
    def read_only(cls) -> PermissionSet:
        return cls(read=True)

    @classmethod
    def full(cls) -> PermissionSet:
        return cls(read=True, write=True, own=True)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PermissionSet:
        """Build from a ``{"read": ..., "write": ..., "own": ...}`` mapping.

        Missing keys are treated as ``False``.
        """
        return cls(
            read=bool(data.get("read", False)),
            write=bool(data.get("write", False)),
            own=bool(data.get("own", False)),
        )

    def with_read(self) -> PermissionSet:
        """Return a copy with ``read`` forced on and the other bits preserved."""
        return replace(self, read=True)

    def without_read(self) -> PermissionSet:
        return replace(self, read=False)

    def allows(self, bit: Permission) -> bool:
        return bool(getattr(self, bit.value))

    @property
    def is_empty(self) -> bool:
        return not (self.read or self.write or self.own)

    def to_dict(self) -> dict[str, bool]:
        return {"read": self.read, "write": self.write, "own": self.own}
