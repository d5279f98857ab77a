"""WarrenConfig — zone layout, service principal and storage coordinates."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from warren.fs.utils import normalize_path, path_join

RESERVED_UNIT = "ipc-reserved-unit"
"""Unit stored in place of an empty unit; translated back to ``""`` on read."""

TREE_URLS_ATTRIBUTE = "tree-urls"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class WarrenConfig:
    """Configuration for one storage zone."""

    zone: str
    """Administrative namespace; every path lives under ``/{zone}``."""

    service_user: str = "rods"
    """Service principal that keeps ownership of everything it creates."""

    host: str = "localhost"
    port: int = 1247
    default_storage_resource: str = ""

    reserved_unit: str = RESERVED_UNIT
    tree_urls_attribute: str = TREE_URLS_ATTRIBUTE

    exclude_names: set[str] = field(default_factory=set)
    """Names (or absolute ids) hidden from every listing."""

    provenance_enabled: bool = True
    """If False, no provenance events are emitted."""

    def __post_init__(self) -> None:
        self.zone = self.zone.strip("/")
        if not self.zone:
            raise ValueError("zone must not be empty")

    @property
    def realm_root(self) -> str:
        """``/{zone}`` — ancestor walks stop here."""
        return normalize_path(self.zone)

    @property
    def home_root(self) -> str:
        return path_join(self.realm_root, "home")

    def home_dir(self, user: str) -> str:
        return path_join(self.home_root, user)

    def trash_dir(self, user: str) -> str:
        return path_join(self.realm_root, "trash", "home", user)

    @classmethod
    def from_env(cls, prefix: str = "WARREN_") -> WarrenConfig:
        """Build a config from ``{prefix}ZONE``, ``{prefix}SERVICE_USER``, etc."""
        zone = os.getenv(f"{prefix}ZONE")
        if not zone:
            raise ValueError(f"{prefix}ZONE is not set")
        excluded = os.getenv(f"{prefix}EXCLUDE_NAMES", "")
        return cls(
            zone=zone,
            service_user=os.getenv(f"{prefix}SERVICE_USER", "rods"),
            host=os.getenv(f"{prefix}HOST", "localhost"),
            port=int(os.getenv(f"{prefix}PORT", "1247")),
            default_storage_resource=os.getenv(f"{prefix}DEFAULT_RESOURCE", ""),
            exclude_names={n.strip() for n in excluded.split(",") if n.strip()},
            provenance_enabled=_env_bool(os.getenv(f"{prefix}PROVENANCE_ENABLED"), True),
        )
