# Overview: Storage gateway; runs each ledger operation as one all-or-nothing unit of work.

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..validation import StorageError, ValidationError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the whole unit is
    serialized by BEGIN IMMEDIATE in atomic().
    """
    return query.with_for_update()


@contextmanager
def atomic(operation: str):
    """
    Run the enclosed writes as a single transaction.

    - SQLite: BEGIN IMMEDIATE takes the write lock up front, so a second
      writer waits on the storage layer instead of interleaving.
    - Success: commit, then log the operation.
    - Any exception (including validation failures raised half-way through):
      roll back every write made inside the block and re-raise.
    - SQLAlchemy faults are logged and surfaced as an opaque StorageError.

    Callers must not hold uncommitted writes when entering; any open
    transaction left over from earlier reads is ended first.
    """
    session = db.session()
    if session.in_transaction():
        session.rollback()

    try:
        if db.engine.dialect.name == "sqlite":
            session.execute(text("BEGIN IMMEDIATE"))
        yield session
        session.commit()
    except (ValidationError, StorageError):
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.exception("Storage failure during %s", operation)
        raise StorageError(f"Storage failure during {operation}") from exc
    except Exception:
        session.rollback()
        raise

    current_app.logger.info("Committed %s", operation)
