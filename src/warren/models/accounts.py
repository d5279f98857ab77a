"""Identity-side models: accounts, tickets, issued carts and quota allocations."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _now() -> datetime:
    return datetime.now(UTC)


class AccountBase(SQLModel):
    """A user known to the identity directory."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    created_at: datetime = Field(
        default_factory=_now,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Account(AccountBase, table=True):
    """Default account table — ``warren_accounts``."""

    __tablename__ = "warren_accounts"


class TicketBase(SQLModel):
    """An access ticket a user has issued on a path."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    ticket_id: str = Field(index=True, unique=True)
    user_name: str = Field(index=True)
    path: str = Field(default="")
    created_at: datetime = Field(
        default_factory=_now,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Ticket(TicketBase, table=True):
    """Default ticket table — ``warren_tickets``."""

    __tablename__ = "warren_tickets"


class CartRecordBase(SQLModel):
    """A single-use transfer credential as issued."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    key: str = Field(index=True)
    user_name: str = Field(index=True)
    direction: str = Field(default="download")
    password: str = Field(default="")
    paths: str = Field(default="[]")
    """JSON-encoded list of paths covered by the cart."""
    created_at: datetime = Field(
        default_factory=_now,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class CartRecord(CartRecordBase, table=True):
    """Default cart table — ``warren_carts``."""

    __tablename__ = "warren_carts"


class QuotaAllocationBase(SQLModel):
    """Byte limit for one user on one storage resource."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_name: str = Field(index=True)
    resource: str = Field(default="")
    limit_bytes: int = Field(default=0)


class QuotaAllocation(QuotaAllocationBase, table=True):
    """Default quota table — ``warren_quotas``."""

    __tablename__ = "warren_quotas"
