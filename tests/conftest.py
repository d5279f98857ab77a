"""Shared fixtures for Warren tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import warren.models  # noqa: F401  registers tables on SQLModel.metadata
from warren.config import WarrenConfig
from warren.events import EventBus
from warren.fs.content import ContentService
from warren.fs.database_fs import DatabaseFileSystem
from warren.fs.listing import ListingService
from warren.fs.metadata import MetadataService
from warren.fs.operations import OperationsService
from warren.fs.sharing import SharingService
from warren.fs.trash import TrashService
from warren.fs.utils import split_path

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


class Seeder:
    """Builds a small zone directly through the backend, bypassing validation."""

    def __init__(self, backend: DatabaseFileSystem, session: AsyncSession, service_user: str) -> None:
        self.backend = backend
        self.session = session
        self.service_user = service_user

    async def users(self, *names: str) -> None:
        for name in names:
            await self.backend.add_user(name, session=self.session)

    async def directory(self, path: str, owner: str) -> str:
        await self.backend.mkdirs(path, session=self.session)
        await self.backend.set_owner(path, owner, session=self.session)
        await self.backend.set_owner(path, self.service_user, session=self.session)
        return path

    async def file(self, path: str, data: bytes, owner: str) -> str:
        await self.backend.mkdirs(split_path(path)[0], session=self.session)
        await self.backend.write(path, data, session=self.session)
        await self.backend.set_owner(path, owner, session=self.session)
        return path


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def config() -> WarrenConfig:
    return WarrenConfig(zone="zoneA", service_user="rods", exclude_names={".DS_Store"})


@pytest.fixture
def backend(config: WarrenConfig) -> DatabaseFileSystem:
    return DatabaseFileSystem(
        config.zone,
        host="irods.example.org",
        port=1247,
        default_storage_resource="demoResc",
    )


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
async def seed(
    backend: DatabaseFileSystem, async_session: AsyncSession, config: WarrenConfig
) -> Seeder:
    """Zone ``/zoneA`` with homes for alice and bob and a small tree under alice.

    /zoneA/home/alice/proj/data/f.txt   "hello world"
    /zoneA/home/alice/proj/notes.txt    "notes"
    /zoneA/home/alice/other/
    """
    s = Seeder(backend, async_session, config.service_user)
    await s.users("alice", "bob", "carol", "rods")
    await s.directory("/zoneA", "rods")
    await s.directory("/zoneA/home", "rods")
    await s.directory("/zoneA/home/alice", "alice")
    await s.directory("/zoneA/home/bob", "bob")
    await s.directory("/zoneA/home/alice/proj", "alice")
    await s.directory("/zoneA/home/alice/proj/data", "alice")
    await s.directory("/zoneA/home/alice/other", "alice")
    await s.file("/zoneA/home/alice/proj/data/f.txt", b"hello world", "alice")
    await s.file("/zoneA/home/alice/proj/notes.txt", b"notes", "alice")
    return s


@pytest.fixture
def listing(backend: DatabaseFileSystem, config: WarrenConfig, events: EventBus) -> ListingService:
    return ListingService(backend, config, events)


@pytest.fixture
def metadata(backend: DatabaseFileSystem, config: WarrenConfig, events: EventBus) -> MetadataService:
    return MetadataService(backend, config, events)


@pytest.fixture
def sharing(backend: DatabaseFileSystem, config: WarrenConfig, events: EventBus) -> SharingService:
    return SharingService(backend, config, events)


@pytest.fixture
def operations(
    backend: DatabaseFileSystem, config: WarrenConfig, events: EventBus
) -> OperationsService:
    return OperationsService(backend, config, events)


@pytest.fixture
def trash(backend: DatabaseFileSystem, config: WarrenConfig, events: EventBus) -> TrashService:
    return TrashService(backend, config, events)


@pytest.fixture
def content(
    backend: DatabaseFileSystem,
    config: WarrenConfig,
    events: EventBus,
    metadata: MetadataService,
) -> ContentService:
    return ContentService(backend, config, events, metadata)
