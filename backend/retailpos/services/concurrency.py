# Overview: Transaction boundaries and row locking for multi-write operations.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, StoreUnavailableError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite writers are serialized by begin_write() instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    Without BEGIN IMMEDIATE two SQLite connections can both read and then
    race to upgrade their locks; with it the second writer waits.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_connection = db.session.connection().connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def atomic():
    """
    One unit of work: every write inside the block commits together or not at all.

    No retries happen here. Document numbers are allocated per attempt, so a
    retry is the caller's decision.
    """
    try:
        begin_write()
        yield db.session
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(
            "Uniqueness constraint violated",
            details={"constraint": str(exc.orig)},
        ) from exc
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError("Record was modified by another transaction") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Store failure; transaction rolled back")
        raise StoreUnavailableError("Persistent store unavailable") from exc
    except Exception:
        db.session.rollback()
        raise
