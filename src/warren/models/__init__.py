"""SQLModel database models for Warren."""

from warren.models.accounts import Account, CartRecord, QuotaAllocation, Ticket
from warren.models.avus import AVUPayload, MetadataBatchPayload, MetadataTriple
from warren.models.grants import AccessGrant
from warren.models.objects import StoredObject

__all__ = [
    "AVUPayload",
    "AccessGrant",
    "Account",
    "CartRecord",
    "MetadataBatchPayload",
    "MetadataTriple",
    "QuotaAllocation",
    "StoredObject",
    "Ticket",
]
