from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

from taskvault.bootstrap import Backend, build_backend
from taskvault.config import Settings
from taskvault.domain.derived import MS_PER_DAY
from taskvault.domain.errors import StorageError
from taskvault.infra.db import create_db_engine

START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, days: int = 0, ms: int = 0) -> int:
        self.now += days * MS_PER_DAY + ms
        return self.now


class RecordingStorage:
    """Attachment storage that only records what it was asked to do."""

    def __init__(self) -> None:
        self.stored: list[str] = []
        self.deleted: list[str] = []
        self.deleted_dirs: list[str] = []
        self.fail_deletes = False

    def store_file(self, task_id: str, source_path: str | Path) -> str:
        relative = f"{task_id}/{Path(source_path).name}"
        self.stored.append(relative)
        return relative

    def store_bytes(self, task_id: str, data: bytes, suffix: str = ".png") -> str:
        relative = f"{task_id}/paste_{len(self.stored)}{suffix}"
        self.stored.append(relative)
        return relative

    def resolve(self, relative_path: str) -> Path:
        return Path("/vault") / relative_path

    def delete(self, relative_path: str) -> None:
        if self.fail_deletes:
            raise StorageError(f"disk says no: {relative_path}")
        self.deleted.append(relative_path)

    def delete_all(self, task_id: str) -> None:
        if self.fail_deletes:
            raise StorageError(f"disk says no: {task_id}")
        self.deleted_dirs.append(task_id)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url="sqlite://",
        attachments_dir=tmp_path / "attachments",
        log_dir=str(tmp_path / "logs"),
    )


@pytest.fixture()
def engine():
    engine = create_db_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture()
def backend(settings, engine, storage, clock) -> Backend:
    return build_backend(settings, engine=engine, storage=storage, clock=clock)


@pytest.fixture()
def repo(backend):
    return backend.repository


@pytest.fixture()
def service(backend):
    return backend.service


@pytest.fixture()
def gamification(backend):
    return backend.gamification
