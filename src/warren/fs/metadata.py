"""MetadataService — AVU reads and writes, batches and tree URLs."""

from __future__ import annotations

import base64
import json
import logging
from typing import TYPE_CHECKING, Any

import pydantic

from warren.events import EventType, ProvenanceEvent
from warren.models.avus import AVUPayload, MetadataBatchPayload

from .exceptions import ErrorCode, ValidationError, Violation
from .types import AVU, MetadataResult
from .utils import normalize_path
from .validators import Gate

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.config import WarrenConfig
    from warren.events import EventBus

    from .protocol import StorageBackend

logger = logging.getLogger(__name__)


def encode_value(value: str) -> str:
    """Base64-encode an AVU value."""
    return base64.b64encode(value.encode()).decode("ascii")


def flatten(items: Iterable[Any]) -> list[Any]:
    """Flatten arbitrarily nested lists into one list, preserving order."""
    flat: list[Any] = []
    for item in items:
        if isinstance(item, list):
            flat.extend(flatten(item))
        else:
            flat.append(item)
    return flat


class MetadataService:
    """Validated AVU operations on a single path.

    Blank units are stored as the reserved unit and reported back as
    ``""``.  Nothing here is transactional: a batch that fails midway
    leaves the earlier writes in place.
    """

    def __init__(self, backend: StorageBackend, config: WarrenConfig, events: EventBus) -> None:
        self._backend = backend
        self._config = config
        self._events = events

    def _store_unit(self, unit: str | None) -> str:
        if unit is None or not unit.strip():
            return self._config.reserved_unit
        return unit

    def _read_unit(self, unit: str) -> str:
        return "" if unit == self._config.reserved_unit else unit

    @staticmethod
    def _parse(model: type[pydantic.BaseModel], data: Any, path: str) -> Any:
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as exc:
            logger.debug("Invalid metadata payload for %s: %s", path, exc)
            raise ValidationError(Violation(ErrorCode.INVALID_JSON, {"path": path})) from exc

    async def _require_writable(self, session: AsyncSession | None, user: str, path: str) -> None:
        gate = Gate(self._backend, session)
        await gate.require(
            gate.path_exists(path),
            gate.path_writable(user, path),
        )

    async def _encode_then_delete(self, session: AsyncSession | None, path: str, attr: str) -> None:
        """Delete every triple under *attr*.

        The first triple's value is rewritten base64-encoded before the
        delete; some stored values cannot be deleted in their raw form.
        """
        current = await self._backend.get_attribute(path, attr, session=session)
        if current:
            first = current[0]
            await self._backend.set_metadata(
                path, attr, encode_value(first.value), first.unit, session=session
            )
        await self._backend.delete_metadata(path, attr, session=session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_metadata(self, session: AsyncSession | None, user: str, path: str) -> list[AVU]:
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(path),
            gate.path_readable(user, path),
        )
        avus = [
            AVU(attr=a.attr, value=a.value, unit=self._read_unit(a.unit))
            for a in await self._backend.get_metadata(path, session=session)
        ]
        await self._events.emit(ProvenanceEvent(EventType.GET_METADATA, user, path))
        return avus

    async def get_tree(self, session: AsyncSession | None, user: str, path: str) -> list[Any]:
        """Return the stored tree URL list, or ``[]`` when none is stored."""
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(path),
            gate.path_readable(user, path),
        )
        urls = await self.read_tree_urls(session, path)
        await self._events.emit(ProvenanceEvent(EventType.GET_TREE_URLS, user, path))
        return urls

    async def read_tree_urls(self, session: AsyncSession | None, path: str) -> list[Any]:
        """Unvalidated tree URL read, for callers that already checked access."""
        stored = await self._backend.get_attribute(
            path, self._config.tree_urls_attribute, session=session
        )
        if not stored:
            return []
        try:
            return json.loads(stored[0].value)
        except json.JSONDecodeError as exc:
            logger.debug("Unreadable tree URLs on %s: %s", path, exc)
            raise ValidationError(Violation(ErrorCode.INVALID_JSON, {"path": path})) from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_metadata(
        self,
        session: AsyncSession | None,
        user: str,
        path: str,
        avu: AVUPayload | dict[str, Any],
    ) -> MetadataResult:
        """Replace the triples under ``avu.attr`` with the given one."""
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user))
        payload: AVUPayload = self._parse(AVUPayload, avu, path)
        await self._require_writable(session, user, path)

        logger.debug("set_metadata %s %s %s", user, path, payload.attr)
        await self._backend.set_metadata(
            path, payload.attr, payload.value, self._store_unit(payload.unit), session=session
        )
        await self._events.emit(
            ProvenanceEvent(EventType.SET_METADATA, user, path, {"attr": payload.attr})
        )
        return MetadataResult(path=path, user=user)

    async def delete_metadata(
        self, session: AsyncSession | None, user: str, path: str, attr: str
    ) -> MetadataResult:
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user))
        await self._require_writable(session, user, path)

        logger.debug("delete_metadata %s %s %s", user, path, attr)
        await self._encode_then_delete(session, path, attr)
        await self._events.emit(
            ProvenanceEvent(EventType.DELETE_METADATA, user, path, {"attr": attr})
        )
        return MetadataResult(path=path, user=user)

    async def set_metadata_batch(
        self,
        session: AsyncSession | None,
        user: str,
        path: str,
        batch: MetadataBatchPayload | dict[str, Any],
    ) -> MetadataResult:
        """Apply every delete, then every add in input order.

        Deleting an attribute the path does not carry is a no-op.
        """
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(gate.user_exists(user))
        payload: MetadataBatchPayload = self._parse(MetadataBatchPayload, batch, path)
        await self._require_writable(session, user, path)

        logger.debug(
            "set_metadata_batch %s %s: %d deletes, %d adds",
            user,
            path,
            len(payload.delete),
            len(payload.add),
        )
        for attr in payload.delete:
            if await self._backend.has_attribute(path, attr, session=session):
                await self._encode_then_delete(session, path, attr)
        for avu in payload.add:
            await self._backend.set_metadata(
                path, avu.attr, avu.value, self._store_unit(avu.unit), session=session
            )
        await self._events.emit(
            ProvenanceEvent(
                EventType.SET_METADATA_BATCH,
                user,
                path,
                {"add": [a.attr for a in payload.add], "delete": list(payload.delete)},
            )
        )
        return MetadataResult(path=path, user=user)

    async def set_tree(
        self,
        session: AsyncSession | None,
        user: str,
        path: str,
        tree_urls: list[Any],
    ) -> MetadataResult:
        """Append *tree_urls* to the stored list and write it back flattened.

        Read and write are separate calls with no guard between them, so
        two concurrent callers can lose one another's update.
        """
        path = normalize_path(path)
        gate = Gate(self._backend, session)
        await gate.require(
            gate.user_exists(user),
            gate.path_exists(path),
            gate.path_writable(user, path),
        )
        if not isinstance(tree_urls, list):
            raise ValidationError(Violation(ErrorCode.INVALID_JSON, {"path": path}))

        current = await self.read_tree_urls(session, path)
        updated = flatten([current, tree_urls])
        await self._backend.set_metadata(
            path,
            self._config.tree_urls_attribute,
            json.dumps(updated),
            self._config.reserved_unit,
            session=session,
        )
        await self._events.emit(
            ProvenanceEvent(EventType.SET_TREE_URLS, user, path, {"count": len(updated)})
        )
        return MetadataResult(path=path, user=user)
