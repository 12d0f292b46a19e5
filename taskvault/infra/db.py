from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from taskvault.domain.errors import PersistenceError

logger = logging.getLogger(__name__)

Base = declarative_base()

GAMIFICATION_KEY = "user_stats"


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, **kwargs) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def transaction(session_factory: sessionmaker) -> Iterator[Session]:
    """One logical operation: commit on success, roll back on any error."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Transaction rolled back")
        raise PersistenceError(f"Store rejected the operation: {exc}") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    from .models import GamificationModel

    try:
        Base.metadata.create_all(engine)
        with Session(engine) as session:
            exists = session.scalar(
                select(GamificationModel.key).where(GamificationModel.key == GAMIFICATION_KEY)
            )
            if exists is None:
                session.add(GamificationModel(key=GAMIFICATION_KEY))
                session.commit()
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Cannot initialise database: {exc}") from exc
    logger.info("Database ready url=%s", engine.url.render_as_string(hide_password=True))
