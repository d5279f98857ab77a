"""DatabaseFileSystem — SQL-backed storage service, stateless, no base class."""

from __future__ import annotations

import json
import logging
import secrets
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete as sa_delete
from sqlalchemy import func
from sqlmodel import select

from .exceptions import StorageError
from .permissions import PermissionSet
from .types import AVU, CartCredential, ObjectStat, QuotaEntry, UserPermission
from .utils import normalize_path, split_path

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from warren.models.avus import MetadataTripleBase
    from warren.models.grants import AccessGrantBase
    from warren.models.objects import StoredObjectBase

    from .protocol import CartDirection

logger = logging.getLogger(__name__)


class DatabaseFileSystem:
    """Database-backed storage service — stateless, sessions provided per-operation.

    Stands in for the remote storage service: objects, grants, AVUs,
    accounts, tickets and carts all live in SQL tables.  Works with
    SQLite, PostgreSQL, etc.

    Every mutating call commits before returning, so a failure later in
    a request never undoes writes that already happened.

    Permission semantics: a user can read with any of ``read``, ``write``
    or ``own``; can write with ``write`` or ``own``; owns with ``own``.

    Implements the ``StorageBackend`` protocol.
    """

    def __init__(
        self,
        zone: str,
        *,
        host: str = "localhost",
        port: int = 1247,
        default_storage_resource: str = "",
        object_model: type[StoredObjectBase] | None = None,
        grant_model: type[AccessGrantBase] | None = None,
        metadata_model: type[MetadataTripleBase] | None = None,
    ) -> None:
        from warren.models.avus import MetadataTriple
        from warren.models.grants import AccessGrant
        from warren.models.objects import StoredObject

        self.zone = zone.strip("/")
        self.host = host
        self.port = port
        self.default_storage_resource = default_storage_resource
        self._object_model: type[StoredObjectBase] = object_model or StoredObject  # type: ignore[assignment]
        self._grant_model: type[AccessGrantBase] = grant_model or AccessGrant  # type: ignore[assignment]
        self._metadata_model: type[MetadataTripleBase] = metadata_model or MetadataTriple  # type: ignore[assignment]

    @property
    def object_model(self) -> type[StoredObjectBase]:
        return self._object_model

    @property
    def grant_model(self) -> type[AccessGrantBase]:
        return self._grant_model

    @property
    def metadata_model(self) -> type[MetadataTripleBase]:
        return self._metadata_model

    def _require_session(self, session: AsyncSession | None) -> AsyncSession:
        if session is None:
            raise StorageError("DatabaseFileSystem requires a session")
        return session

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """No-op — DFS is stateless."""

    async def close(self) -> None:
        """No-op — DFS has no resources to release."""

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    async def _get_object(self, session: AsyncSession, path: str) -> StoredObjectBase | None:
        model = self._object_model
        result = await session.execute(select(model).where(model.path == normalize_path(path)))
        return result.scalar_one_or_none()

    async def _require_object(self, session: AsyncSession, path: str) -> StoredObjectBase:
        obj = await self._get_object(session, path)
        if obj is None:
            raise StorageError(f"No such path: {path}")
        return obj

    async def _descendants(self, session: AsyncSession, path: str) -> list[StoredObjectBase]:
        model = self._object_model
        result = await session.execute(
            select(model).where(
                model.path.startswith(path + "/", autoescape=True),  # type: ignore[union-attr]
            )
        )
        return list(result.scalars().all())

    async def _get_grant(
        self, session: AsyncSession, user: str, path: str
    ) -> AccessGrantBase | None:
        model = self._grant_model
        result = await session.execute(
            select(model).where(
                model.path == normalize_path(path),
                model.user_name == user,
            )
        )
        return result.scalar_one_or_none()

    async def _put_grant(
        self, session: AsyncSession, user: str, path: str, permissions: PermissionSet
    ) -> None:
        grant = await self._get_grant(session, user, path)
        if permissions.is_empty:
            if grant is not None:
                await session.delete(grant)
            return
        if grant is None:
            grant = self._grant_model(path=path, user_name=user)
            session.add(grant)
        grant.read = permissions.read
        grant.write = permissions.write
        grant.own = permissions.own

    async def _create_object(
        self,
        session: AsyncSession,
        path: str,
        *,
        is_directory: bool,
        content: bytes | None = None,
    ) -> StoredObjectBase:
        """Insert one object whose parent already exists.

        Copies the parent's grants when the parent has the inheritance
        flag set; a new subdirectory inherits the flag too.
        """
        parent_path, name = split_path(path)
        parent = await self._get_object(session, parent_path) if parent_path != "/" else None
        if parent_path != "/" and parent is None:
            raise StorageError(f"Parent directory does not exist: {parent_path}")
        if parent is not None and not parent.is_directory:
            raise StorageError(f"Parent is not a directory: {parent_path}")

        obj = self._object_model(
            path=path,
            parent_path=parent_path,
            name=name,
            is_directory=is_directory,
            content=content,
            size_bytes=len(content) if content else 0,
        )
        session.add(obj)

        if parent is not None and parent.inherit:
            obj.inherit = is_directory
            for grant in await self._grants_on(session, parent_path):
                session.add(
                    self._grant_model(
                        path=path,
                        user_name=grant.user_name,
                        read=grant.read,
                        write=grant.write,
                        own=grant.own,
                    )
                )
        await session.flush()
        return obj

    async def _grants_on(self, session: AsyncSession, path: str) -> list[AccessGrantBase]:
        model = self._grant_model
        result = await session.execute(select(model).where(model.path == path))
        return list(result.scalars().all())

    async def _repath(
        self, session: AsyncSession, old_prefix: str, new_prefix: str
    ) -> None:
        """Rewrite grant and AVU paths from *old_prefix* to *new_prefix*."""
        for model in (self._grant_model, self._metadata_model):
            result = await session.execute(
                select(model).where(
                    (model.path == old_prefix)
                    | model.path.startswith(old_prefix + "/", autoescape=True)  # type: ignore[union-attr]
                )
            )
            for row in result.scalars().all():
                row.path = new_prefix + row.path[len(old_prefix) :]

    @staticmethod
    def _to_stat(obj: StoredObjectBase) -> ObjectStat:
        return ObjectStat(
            path=obj.path,
            name=obj.name,
            is_directory=obj.is_directory,
            size_bytes=obj.size_bytes,
            created_at=obj.created_at,
            modified_at=obj.updated_at,
        )

    # ------------------------------------------------------------------
    # Identity and existence
    # ------------------------------------------------------------------

    async def user_exists(self, user: str, *, session: AsyncSession | None = None) -> bool:
        from warren.models.accounts import Account

        sess = self._require_session(session)
        result = await sess.execute(select(Account.id).where(Account.name == user))
        return result.first() is not None

    async def add_user(self, user: str, *, session: AsyncSession | None = None) -> None:
        """Register *user* with the identity directory.  No-op if present."""
        from warren.models.accounts import Account

        sess = self._require_session(session)
        if await self.user_exists(user, session=sess):
            return
        sess.add(Account(name=user))
        await sess.commit()

    async def exists(self, path: str, *, session: AsyncSession | None = None) -> bool:
        sess = self._require_session(session)
        path = normalize_path(path)
        if path == "/":
            return True
        return await self._get_object(sess, path) is not None

    async def is_dir(self, path: str, *, session: AsyncSession | None = None) -> bool:
        sess = self._require_session(session)
        path = normalize_path(path)
        if path == "/":
            return True
        obj = await self._get_object(sess, path)
        return obj is not None and obj.is_directory

    async def is_file(self, path: str, *, session: AsyncSession | None = None) -> bool:
        sess = self._require_session(session)
        obj = await self._get_object(sess, path)
        return obj is not None and not obj.is_directory

    async def stat(self, path: str, *, session: AsyncSession | None = None) -> ObjectStat:
        sess = self._require_session(session)
        return self._to_stat(await self._require_object(sess, path))

    async def list_children(
        self, path: str, *, session: AsyncSession | None = None
    ) -> list[ObjectStat]:
        sess = self._require_session(session)
        model = self._object_model
        result = await sess.execute(
            select(model)
            .where(model.parent_path == normalize_path(path))
            .order_by(model.name)  # type: ignore[arg-type]
        )
        return [self._to_stat(obj) for obj in result.scalars().all()]

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    async def get_permission(
        self, user: str, path: str, *, session: AsyncSession | None = None
    ) -> PermissionSet:
        sess = self._require_session(session)
        grant = await self._get_grant(sess, user, path)
        if grant is None:
            return PermissionSet.none()
        return PermissionSet(read=grant.read, write=grant.write, own=grant.own)

    async def is_readable(
        self, user: str, path: str, *, session: AsyncSession | None = None
    ) -> bool:
        return not (await self.get_permission(user, path, session=session)).is_empty

    async def is_writable(
        self, user: str, path: str, *, session: AsyncSession | None = None
    ) -> bool:
        perms = await self.get_permission(user, path, session=session)
        return perms.write or perms.own

    async def owns(self, user: str, path: str, *, session: AsyncSession | None = None) -> bool:
        return (await self.get_permission(user, path, session=session)).own

    async def list_permissions(
        self, path: str, *, session: AsyncSession | None = None
    ) -> list[UserPermission]:
        sess = self._require_session(session)
        grants = await self._grants_on(sess, normalize_path(path))
        return [
            UserPermission(
                user=g.user_name,
                permissions=PermissionSet(read=g.read, write=g.write, own=g.own),
            )
            for g in sorted(grants, key=lambda g: g.user_name)
        ]

    async def set_permission(
        self,
        user: str,
        path: str,
        permissions: PermissionSet,
        *,
        recursive: bool = False,
        session: AsyncSession | None = None,
    ) -> None:
        sess = self._require_session(session)
        obj = await self._require_object(sess, path)
        targets = [obj.path]
        if recursive and obj.is_directory:
            targets.extend(d.path for d in await self._descendants(sess, obj.path))
        for target in targets:
            await self._put_grant(sess, user, target, permissions)
        await sess.commit()

    async def remove_permission(
        self,
        user: str,
        path: str,
        *,
        recursive: bool = False,
        session: AsyncSession | None = None,
    ) -> None:
        sess = self._require_session(session)
        path = normalize_path(path)
        model = self._grant_model
        condition = model.path == path
        if recursive:
            condition = condition | model.path.startswith(path + "/", autoescape=True)  # type: ignore[union-attr]
        await sess.execute(sa_delete(model).where(model.user_name == user, condition))
        await sess.commit()

    async def set_inheritance(
        self, path: str, inherit: bool, *, session: AsyncSession | None = None
    ) -> None:
        sess = self._require_session(session)
        obj = await self._require_object(sess, path)
        if not obj.is_directory:
            raise StorageError(f"Inheritance applies to directories only: {path}")
        obj.inherit = inherit
        await sess.commit()

    async def set_owner(self, path: str, user: str, *, session: AsyncSession | None = None) -> None:
        sess = self._require_session(session)
        await self._require_object(sess, path)
        await self._put_grant(sess, user, normalize_path(path), PermissionSet.full())
        await sess.commit()

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    async def mkdir(self, path: str, *, session: AsyncSession | None = None) -> None:
        sess = self._require_session(session)
        path = normalize_path(path)
        if await self._get_object(sess, path) is not None:
            raise StorageError(f"Path already exists: {path}")
        await self._create_object(sess, path, is_directory=True)
        await sess.commit()

    async def mkdirs(self, path: str, *, session: AsyncSession | None = None) -> None:
        sess = self._require_session(session)
        path = normalize_path(path)
        missing: list[str] = []
        current = path
        while current != "/":
            existing = await self._get_object(sess, current)
            if existing is not None:
                if not existing.is_directory:
                    raise StorageError(f"Path exists as file: {current}")
                break
            missing.insert(0, current)
            current = split_path(current)[0]
        for dir_path in missing:
            await self._create_object(sess, dir_path, is_directory=True)
        await sess.commit()

    async def delete(self, path: str, *, session: AsyncSession | None = None) -> None:
        sess = self._require_session(session)
        obj = await self._require_object(sess, path)
        for child in await self._descendants(sess, obj.path):
            await sess.delete(child)
        for model in (self._grant_model, self._metadata_model):
            await sess.execute(
                sa_delete(model).where(
                    (model.path == obj.path)
                    | model.path.startswith(obj.path + "/", autoescape=True)  # type: ignore[union-attr]
                )
            )
        await sess.delete(obj)
        await sess.commit()

    async def move(
        self, src: str, dest: str, *, session: AsyncSession | None = None
    ) -> list[str]:
        sess = self._require_session(session)
        src = normalize_path(src)
        dest = normalize_path(dest)
        obj = await self._require_object(sess, src)
        if await self._get_object(sess, dest) is not None:
            raise StorageError(f"Destination already exists: {dest}")
        if obj.is_directory and dest.startswith(src + "/"):
            raise StorageError(f"Cannot move directory into itself: {dest} is inside {src}")
        dest_parent, dest_name = split_path(dest)
        if not await self.is_dir(dest_parent, session=sess):
            raise StorageError(f"Destination parent is not a directory: {dest_parent}")

        now = datetime.now(UTC)
        for desc in await self._descendants(sess, src):
            new_path = dest + desc.path[len(src) :]
            desc.path = new_path
            desc.parent_path, desc.name = split_path(new_path)
        obj.path = dest
        obj.parent_path = dest_parent
        obj.name = dest_name
        obj.updated_at = now
        await self._repath(sess, src, dest)
        await sess.commit()
        return []

    async def copy(
        self,
        src: str,
        dest: str,
        *,
        owner: str | None = None,
        session: AsyncSession | None = None,
    ) -> None:
        sess = self._require_session(session)
        src = normalize_path(src)
        dest = normalize_path(dest)
        obj = await self._require_object(sess, src)
        if await self._get_object(sess, dest) is not None:
            raise StorageError(f"Destination already exists: {dest}")

        sources = [obj, *sorted(await self._descendants(sess, src), key=lambda o: o.path)]
        for item in sources:
            new_path = dest + item.path[len(src) :]
            await self._create_object(
                sess, new_path, is_directory=item.is_directory, content=item.content
            )
            if owner is not None:
                await self._put_grant(sess, owner, new_path, PermissionSet.full())
        await sess.commit()

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def read(
        self, path: str, size: int | None = None, *, session: AsyncSession | None = None
    ) -> bytes:
        sess = self._require_session(session)
        obj = await self._require_object(sess, path)
        if obj.is_directory:
            raise StorageError(f"Path is a directory, not a file: {path}")
        content = obj.content or b""
        return content if size is None else content[:size]

    async def write(
        self, path: str, data: bytes, *, session: AsyncSession | None = None
    ) -> None:
        sess = self._require_session(session)
        path = normalize_path(path)
        obj = await self._get_object(sess, path)
        if obj is None:
            await self._create_object(sess, path, is_directory=False, content=data)
        elif obj.is_directory:
            raise StorageError(f"Path is a directory: {path}")
        else:
            obj.content = data
            obj.size_bytes = len(data)
            obj.updated_at = datetime.now(UTC)
        await sess.commit()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def _select_avus(
        self, session: AsyncSession, path: str, attr: str | None = None
    ) -> list[MetadataTripleBase]:
        model = self._metadata_model
        query = select(model).where(model.path == normalize_path(path))
        if attr is not None:
            query = query.where(model.attr == attr)
        result = await session.execute(query.order_by(model.created_at, model.id))  # type: ignore[arg-type]
        return list(result.scalars().all())

    async def get_metadata(self, path: str, *, session: AsyncSession | None = None) -> list[AVU]:
        sess = self._require_session(session)
        return [AVU(attr=m.attr, value=m.value, unit=m.unit) for m in await self._select_avus(sess, path)]

    async def get_attribute(
        self, path: str, attr: str, *, session: AsyncSession | None = None
    ) -> list[AVU]:
        sess = self._require_session(session)
        return [
            AVU(attr=m.attr, value=m.value, unit=m.unit)
            for m in await self._select_avus(sess, path, attr)
        ]

    async def has_attribute(
        self, path: str, attr: str, *, session: AsyncSession | None = None
    ) -> bool:
        return bool(await self.get_attribute(path, attr, session=session))

    async def set_metadata(
        self,
        path: str,
        attr: str,
        value: str,
        unit: str,
        *,
        session: AsyncSession | None = None,
    ) -> None:
        sess = self._require_session(session)
        path = normalize_path(path)
        await self._require_object(sess, path)
        for existing in await self._select_avus(sess, path, attr):
            await sess.delete(existing)
        sess.add(self._metadata_model(path=path, attr=attr, value=value, unit=unit))
        await sess.commit()

    async def add_metadata(
        self,
        path: str,
        attr: str,
        value: str,
        unit: str,
        *,
        session: AsyncSession | None = None,
    ) -> None:
        sess = self._require_session(session)
        path = normalize_path(path)
        await self._require_object(sess, path)
        sess.add(self._metadata_model(path=path, attr=attr, value=value, unit=unit))
        await sess.commit()

    async def delete_metadata(
        self, path: str, attr: str, *, session: AsyncSession | None = None
    ) -> None:
        sess = self._require_session(session)
        model = self._metadata_model
        await sess.execute(
            sa_delete(model).where(model.path == normalize_path(path), model.attr == attr)
        )
        await sess.commit()

    # ------------------------------------------------------------------
    # Tickets, credentials, quota
    # ------------------------------------------------------------------

    async def ticket_exists(
        self, user: str, ticket_id: str, *, session: AsyncSession | None = None
    ) -> bool:
        from warren.models.accounts import Ticket

        sess = self._require_session(session)
        result = await sess.execute(
            select(Ticket.id).where(Ticket.ticket_id == ticket_id, Ticket.user_name == user)
        )
        return result.first() is not None

    async def add_ticket(
        self, user: str, ticket_id: str, path: str, *, session: AsyncSession | None = None
    ) -> None:
        from warren.models.accounts import Ticket

        sess = self._require_session(session)
        sess.add(Ticket(ticket_id=ticket_id, user_name=user, path=normalize_path(path)))
        await sess.commit()

    async def issue_cart_credential(
        self,
        user: str,
        paths: list[str],
        direction: CartDirection,
        *,
        session: AsyncSession | None = None,
    ) -> CartCredential:
        from warren.models.accounts import CartRecord

        sess = self._require_session(session)
        key = str(time.time_ns() // 1_000_000)
        password = secrets.token_urlsafe(16)
        sess.add(
            CartRecord(
                key=key,
                user_name=user,
                direction=direction,
                password=password,
                paths=json.dumps([normalize_path(p) for p in paths]),
            )
        )
        await sess.commit()
        logger.debug("Issued %s cart %s for %s", direction, key, user)
        return CartCredential(
            key=key,
            password=password,
            host=self.host,
            port=self.port,
            zone=self.zone,
            default_storage_resource=self.default_storage_resource,
        )

    async def set_quota(
        self,
        user: str,
        resource: str,
        limit_bytes: int,
        *,
        session: AsyncSession | None = None,
    ) -> None:
        from warren.models.accounts import QuotaAllocation

        sess = self._require_session(session)
        result = await sess.execute(
            select(QuotaAllocation).where(
                QuotaAllocation.user_name == user,
                QuotaAllocation.resource == resource,
            )
        )
        allocation = result.scalar_one_or_none()
        if allocation is None:
            sess.add(QuotaAllocation(user_name=user, resource=resource, limit_bytes=limit_bytes))
        else:
            allocation.limit_bytes = limit_bytes
        await sess.commit()

    async def quota(self, user: str, *, session: AsyncSession | None = None) -> list[QuotaEntry]:
        from warren.models.accounts import QuotaAllocation

        sess = self._require_session(session)
        objects = self._object_model
        grants = self._grant_model
        used_result = await sess.execute(
            select(func.coalesce(func.sum(objects.size_bytes), 0))
            .select_from(objects)
            .join(grants, grants.path == objects.path)  # type: ignore[arg-type]
            .where(
                grants.user_name == user,
                grants.own == True,  # noqa: E712
                objects.is_directory == False,  # noqa: E712
            )
        )
        used = int(used_result.scalar_one())
        result = await sess.execute(
            select(QuotaAllocation)
            .where(QuotaAllocation.user_name == user)
            .order_by(QuotaAllocation.resource)  # type: ignore[arg-type]
        )
        return [
            QuotaEntry(resource=a.resource, limit_bytes=a.limit_bytes, used_bytes=used)
            for a in result.scalars().all()
        ]
