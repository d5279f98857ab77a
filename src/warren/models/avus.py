"""MetadataTriple model and the payload shapes accepted by the metadata service."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class MetadataTripleBase(SQLModel):
    """Base fields for an AVU. Subclass with ``table=True`` for a concrete table.

    ``attr`` is not unique per path; several triples may share it.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    path: str = Field(index=True)
    attr: str = Field(index=True)
    value: str = Field(default="")
    unit: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class MetadataTriple(MetadataTripleBase, table=True):
    """Default AVU table — ``warren_metadata``."""

    __tablename__ = "warren_metadata"


# ---------------------------------------------------------------------------
# Request payloads (validated, never stored)
# ---------------------------------------------------------------------------


class AVUPayload(SQLModel):
    """One triple as submitted by a caller.  A blank unit means "no unit"."""

    attr: str = Field(min_length=1)
    value: str
    unit: str | None = None


class MetadataBatchPayload(SQLModel):
    """Batch request: attributes to delete, then triples to add."""

    add: list[AVUPayload] = Field(default_factory=list)
    delete: list[str] = Field(default_factory=list)

