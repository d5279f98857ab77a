"""AccessGrant model — ``{read, write, own}`` bits for one user on one path."""

from __future__ import annotations

import uuid

from sqlmodel import Field, SQLModel


class AccessGrantBase(SQLModel):
    """Base fields for an access grant. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    path: str = Field(index=True)
    user_name: str = Field(index=True)
    read: bool = Field(default=False)
    write: bool = Field(default=False)
    own: bool = Field(default=False)


class AccessGrant(AccessGrantBase, table=True):
    """Default grant table — ``warren_access_grants``."""

    __tablename__ = "warren_access_grants"
