"""Validation gate — precondition checks that run before any mutation.

Each check is a zero-argument coroutine function resolving to
``Violation | None``.  Set-valued checks report exactly the members that
fail, not just the first one.  ``Gate.require`` runs checks in order and
raises on the first violation without running the rest.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import ErrorCode, ValidationError, Violation
from .utils import normalize_path

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from .protocol import StorageBackend

    Check = Callable[[], Awaitable[Violation | None]]
    PathPredicate = Callable[[str], Awaitable[bool]]

logger = logging.getLogger(__name__)


async def first_violation(checks: Iterable[Check]) -> Violation | None:
    """Run *checks* in order; return the first violation, or None."""
    for check in checks:
        violation = await check()
        if violation is not None:
            return violation
    return None


async def _failing(items: Iterable[str], predicate: PathPredicate) -> list[str]:
    """Members of *items* for which *predicate* is false, in input order."""
    return [item for item in items if not await predicate(item)]


async def _passing(items: Iterable[str], predicate: PathPredicate) -> list[str]:
    return [item for item in items if await predicate(item)]


class Gate:
    """Builds checks bound to one backend and one request session."""

    def __init__(self, backend: StorageBackend, session: AsyncSession | None) -> None:
        self._backend = backend
        self._session = session

    async def require(self, *checks: Check) -> None:
        """Raise ``ValidationError`` for the first failing check."""
        violation = await first_violation(checks)
        if violation is not None:
            logger.debug("Validation failed: %s %s", violation.code.value, violation.subjects)
            raise ValidationError(violation)

    # ------------------------------------------------------------------
    # Predicates bound to the session
    # ------------------------------------------------------------------

    async def _user_exists(self, user: str) -> bool:
        return await self._backend.user_exists(user, session=self._session)

    async def _exists(self, path: str) -> bool:
        return await self._backend.exists(path, session=self._session)

    async def _is_dir(self, path: str) -> bool:
        return await self._backend.is_dir(path, session=self._session)

    async def _is_file(self, path: str) -> bool:
        return await self._backend.is_file(path, session=self._session)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def user_exists(self, user: str) -> Check:
        async def check() -> Violation | None:
            if await self._user_exists(user):
                return None
            return Violation(ErrorCode.NOT_A_USER, {"user": user})

        return check

    def all_users_exist(self, users: list[str]) -> Check:
        async def check() -> Violation | None:
            missing = await _failing(users, self._user_exists)
            if not missing:
                return None
            return Violation(ErrorCode.NOT_A_USER, {"users": missing})

        return check

    # ------------------------------------------------------------------
    # Existence
    # ------------------------------------------------------------------

    def path_exists(self, path: str) -> Check:
        async def check() -> Violation | None:
            if await self._exists(path):
                return None
            return Violation(ErrorCode.DOES_NOT_EXIST, {"path": path})

        return check

    def all_paths_exist(self, paths: list[str]) -> Check:
        async def check() -> Violation | None:
            missing = await _failing(paths, self._exists)
            if not missing:
                return None
            return Violation(ErrorCode.DOES_NOT_EXIST, {"paths": missing})

        return check

    def path_not_exists(self, path: str) -> Check:
        async def check() -> Violation | None:
            if not await self._exists(path):
                return None
            return Violation(ErrorCode.EXISTS, {"path": path})

        return check

    def no_paths_exist(self, paths: list[str]) -> Check:
        async def check() -> Violation | None:
            present = await _passing(paths, self._exists)
            if not present:
                return None
            return Violation(ErrorCode.EXISTS, {"paths": present})

        return check

    def distinct_targets(self, targets: list[str]) -> Check:
        """Fail when two sources would land on the same target path."""

        async def check() -> Violation | None:
            seen: set[str] = set()
            duplicates: list[str] = []
            for target in targets:
                if target in seen and target not in duplicates:
                    duplicates.append(target)
                seen.add(target)
            if not duplicates:
                return None
            return Violation(ErrorCode.EXISTS, {"paths": duplicates})

        return check

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def path_readable(self, user: str, path: str) -> Check:
        async def check() -> Violation | None:
            if await self._backend.is_readable(user, path, session=self._session):
                return None
            return Violation(ErrorCode.NOT_READABLE, {"path": path, "user": user})

        return check

    def all_paths_readable(self, user: str, paths: list[str]) -> Check:
        async def readable(path: str) -> bool:
            return await self._backend.is_readable(user, path, session=self._session)

        async def check() -> Violation | None:
            denied = await _failing(paths, readable)
            if not denied:
                return None
            return Violation(ErrorCode.NOT_READABLE, {"paths": denied, "user": user})

        return check

    def path_writable(self, user: str, path: str) -> Check:
        async def check() -> Violation | None:
            if await self._backend.is_writable(user, path, session=self._session):
                return None
            return Violation(ErrorCode.NOT_WRITEABLE, {"path": path, "user": user})

        return check

    def all_paths_writable(self, user: str, paths: list[str]) -> Check:
        async def writable(path: str) -> bool:
            return await self._backend.is_writable(user, path, session=self._session)

        async def check() -> Violation | None:
            denied = await _failing(paths, writable)
            if not denied:
                return None
            return Violation(ErrorCode.NOT_WRITEABLE, {"paths": denied, "user": user})

        return check

    def user_owns_path(self, user: str, path: str) -> Check:
        async def check() -> Violation | None:
            if await self._backend.owns(user, path, session=self._session):
                return None
            return Violation(ErrorCode.NOT_OWNER, {"path": path, "user": user})

        return check

    def user_owns_paths(self, user: str, paths: list[str]) -> Check:
        async def owned(path: str) -> bool:
            return await self._backend.owns(user, path, session=self._session)

        async def check() -> Violation | None:
            foreign = await _failing(paths, owned)
            if not foreign:
                return None
            return Violation(ErrorCode.NOT_OWNER, {"paths": foreign, "user": user})

        return check

    # ------------------------------------------------------------------
    # Kind
    # ------------------------------------------------------------------

    def path_is_dir(self, path: str) -> Check:
        async def check() -> Violation | None:
            if await self._is_dir(path):
                return None
            return Violation(ErrorCode.NOT_A_FOLDER, {"path": path})

        return check

    def path_is_file(self, path: str) -> Check:
        async def check() -> Violation | None:
            if await self._is_file(path):
                return None
            return Violation(ErrorCode.NOT_A_FILE, {"path": path})

        return check

    def all_paths_are_dirs(self, paths: list[str]) -> Check:
        async def check() -> Violation | None:
            wrong = await _failing(paths, self._is_dir)
            if not wrong:
                return None
            return Violation(ErrorCode.NOT_A_FOLDER, {"paths": wrong})

        return check

    def all_paths_are_files(self, paths: list[str]) -> Check:
        async def check() -> Violation | None:
            wrong = await _failing(paths, self._is_file)
            if not wrong:
                return None
            return Violation(ErrorCode.NOT_A_FILE, {"paths": wrong})

        return check

    # ------------------------------------------------------------------
    # Protected paths
    # ------------------------------------------------------------------

    def none_protected(self, protected: str, paths: list[str]) -> Check:
        """Fail with NOT_AUTHORIZED for every path equal to *protected*."""
        target = normalize_path(protected)

        async def check() -> Violation | None:
            hits = [p for p in paths if normalize_path(p) == target]
            if not hits:
                return None
            return Violation(ErrorCode.NOT_AUTHORIZED, {"paths": hits})

        return check

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    async def _ticket_exists(self, user: str, ticket_id: str) -> bool:
        return await self._backend.ticket_exists(user, ticket_id, session=self._session)

    def ticket_exists(self, user: str, ticket_id: str) -> Check:
        async def check() -> Violation | None:
            if await self._ticket_exists(user, ticket_id):
                return None
            return Violation(
                ErrorCode.TICKET_DOES_NOT_EXIST, {"user": user, "ticket-id": ticket_id}
            )

        return check

    def ticket_does_not_exist(self, user: str, ticket_id: str) -> Check:
        async def check() -> Violation | None:
            if not await self._ticket_exists(user, ticket_id):
                return None
            return Violation(ErrorCode.TICKET_EXISTS, {"user": user, "ticket-id": ticket_id})

        return check

    def all_tickets_exist(self, user: str, ticket_ids: list[str]) -> Check:
        async def known(ticket_id: str) -> bool:
            return await self._ticket_exists(user, ticket_id)

        async def check() -> Violation | None:
            missing = await _failing(ticket_ids, known)
            if not missing:
                return None
            return Violation(
                ErrorCode.TICKET_DOES_NOT_EXIST, {"user": user, "ticket-ids": missing}
            )

        return check

    def all_tickets_nonexistent(self, user: str, ticket_ids: list[str]) -> Check:
        async def known(ticket_id: str) -> bool:
            return await self._ticket_exists(user, ticket_id)

        async def check() -> Violation | None:
            present = await _passing(ticket_ids, known)
            if not present:
                return None
            return Violation(ErrorCode.TICKET_EXISTS, {"user": user, "ticket-ids": present})

        return check
