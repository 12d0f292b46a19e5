from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from sqlalchemy.engine import Engine

from taskvault.config import Settings
from taskvault.domain.derived import now_ms
from taskvault.infra.attachments import AttachmentStorage, LocalAttachmentStorage
from taskvault.infra.db import create_db_engine, create_session_factory, init_db
from taskvault.infra.repository import TaskRepository
from taskvault.services.gamification import GamificationEngine, GamificationHook
from taskvault.services.notifications import ChangeNotifier
from taskvault.services.retention import RetentionSweeper
from taskvault.services.task_service import TaskService


@dataclass
class Backend:
    engine: Engine
    repository: TaskRepository
    gamification: GamificationEngine
    service: TaskService
    sweeper: RetentionSweeper
    notifier: ChangeNotifier

    def close(self) -> None:
        self.engine.dispose()


def build_backend(
    settings: Settings,
    *,
    engine: Engine | None = None,
    storage: AttachmentStorage | None = None,
    clock: Callable[[], int] = now_ms,
) -> Backend:
    engine = engine or create_db_engine(settings.database_url)
    init_db(engine)
    session_factory = create_session_factory(engine)
    storage = storage or LocalAttachmentStorage(settings.attachments_dir)

    repository = TaskRepository(
        session_factory, storage, clock=clock, retention_days=settings.retention_days
    )
    gamification = GamificationEngine(session_factory, repository, clock=clock)
    repository.register_hook(GamificationHook(gamification))

    notifier = ChangeNotifier()
    service = TaskService(repository, gamification, storage, notifier)
    return Backend(
        engine=engine,
        repository=repository,
        gamification=gamification,
        service=service,
        sweeper=RetentionSweeper(repository),
        notifier=notifier,
    )
