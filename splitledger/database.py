from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import Settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


class StoreError(Exception):
    """The store could not complete an atomic unit; nothing was committed."""


class ConstraintViolation(StoreError):
    """A unique or foreign key constraint rejected the atomic unit."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Store:
    """
    Handle on the relational store.

    Created once per process and passed explicitly to every ledger operation.
    `transaction()` scopes an all-or-nothing unit of work; `snapshot()` scopes
    a consistent read.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        snapshot_engine = engine
        if engine.dialect.name == "postgresql":
            snapshot_engine = engine.execution_options(isolation_level="REPEATABLE READ")
        self._snapshots = sessionmaker(bind=snapshot_engine, autoflush=False, expire_on_commit=False)

    def init_db(self) -> None:
        # models must be imported for their tables to be registered on Base
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        with self._scope(self._sessions) as session:
            yield session

    @contextmanager
    def snapshot(self) -> Iterator[Session]:
        with self._scope(self._snapshots) as session:
            yield session

    @contextmanager
    def _scope(self, factory: sessionmaker) -> Iterator[Session]:
        session = factory()
        try:
            with session.begin():
                yield session
        except IntegrityError as exc:
            logger.warning("store_constraint_violation", error=str(exc.orig))
            raise ConstraintViolation(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.error("store_failure", error=str(exc))
            raise StoreError(str(exc)) from exc
        finally:
            session.close()


def _configure_sqlite(engine: Engine) -> None:
    # pysqlite's implicit BEGIN is disabled so that every unit takes the
    # write lock up front; foreign keys are off by default in SQLite.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_store(settings: Settings) -> Store:
    if settings.is_sqlite:
        engine = create_engine(
            settings.database_url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False, "timeout": settings.database_timeout_seconds},
        )
        _configure_sqlite(engine)
    else:
        engine = create_engine(
            settings.database_url,
            echo=settings.database_echo,
            pool_pre_ping=True,
            pool_timeout=settings.database_timeout_seconds,
        )
    logger.info("store_created", dialect=engine.dialect.name)
    return Store(engine)
