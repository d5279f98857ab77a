"""StoredObject model — one row per file or directory in the hierarchy.

Provides ``StoredObjectBase`` (non-table) and ``StoredObject`` (concrete table).
Subclass ``StoredObjectBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, LargeBinary
from sqlmodel import Field, SQLModel


class StoredObjectBase(SQLModel):
    """Base fields for a stored object. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    path: str = Field(index=True, unique=True)
    parent_path: str = Field(default="", index=True)
    name: str = Field(default="")
    is_directory: bool = Field(default=False)
    content: bytes | None = Field(default=None, sa_type=LargeBinary)  # type: ignore[invalid-argument-type]
    size_bytes: int = Field(default=0)
    inherit: bool = Field(default=False)
    """Directories only: new children copy this directory's grants."""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class StoredObject(StoredObjectBase, table=True):
    """Default object table — ``warren_objects``."""

    __tablename__ = "warren_objects"
