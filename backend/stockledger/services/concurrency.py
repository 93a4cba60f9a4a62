# Overview: Service-layer concurrency helpers; row locks, per-key critical sections and retry.

from __future__ import annotations

import threading
import time
import weakref
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, InternalError, ServiceError
from ..extensions import db
from . import security_service


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id column on Material and KeyedLock cover SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute a DB unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be re-runnable from scratch:
    it re-reads everything it depends on.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.info("Retrying unit of work after %s (attempt %d)", type(exc).__name__, attempt + 1)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


class _KeyLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.Lock()


class KeyedLock:
    """
    In-process mutex per key (material id, tenant id).

    Operations on the same key are totally ordered; different keys never
    contend. Entries disappear once no thread holds or waits on them.
    """

    def __init__(self, name: str):
        self.name = name
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[str, _KeyLock]" = weakref.WeakValueDictionary()

    def _get(self, key: str) -> _KeyLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            return entry

    @contextmanager
    def hold(self, key: str, timeout: float | None = None):
        if timeout is None:
            timeout = current_app.config.get("LEDGER_LOCK_TIMEOUT_SECONDS", 10)
        entry = self._get(key)
        if not entry.lock.acquire(timeout=timeout):
            raise ConflictError(f"{self.name} {key} is busy; retry the request")
        try:
            yield
        finally:
            entry.lock.release()


material_locks = KeyedLock("material")
tenant_locks = KeyedLock("tenant")


@contextmanager
def unit_of_work(ctx, action: str):
    """
    Error boundary around one service operation.

    Any failure rolls the session back before the error leaves the service,
    so no partial write is ever visible or later committed by accident.
    Security-relevant denials are recorded after the rollback.
    """
    try:
        yield
    except ServiceError as exc:
        db.session.rollback()
        security_service.audit_denial(ctx, exc, action=action)
        raise
    except StaleDataError as exc:
        db.session.rollback()
        current_app.logger.warning("%s gave up after repeated concurrent modification", action)
        raise ConflictError("The record was modified concurrently; retry the request") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Unit of work %s failed", action)
        raise InternalError() from exc
