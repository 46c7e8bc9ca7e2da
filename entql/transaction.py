"""Thread-local transactions with SAVEPOINT nesting, one manager per named connection."""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Optional

from pydantic import BaseModel

from .connection import DEFAULT_CONNECTION_NAME, _get_connection, get_dialect
from .dialects import Dialect

logger = logging.getLogger("entql")


class TransactionError(Exception):
    """Misuse of a transaction: stale handle, outer handle used inside a nested block..."""


class ExecutionResult(BaseModel):
    """What one statement produced: fetched rows (if any), affected row count, last row id."""

    rows: Optional[list[dict[str, Any]]] = None
    rowcount: int = -1
    lastrowid: Any = None


class TransactionManager:
    """Per-thread connection and stack of open transactions for one connection name.

    The outermost block runs BEGIN/COMMIT; each nested block is a SAVEPOINT
    named after its depth.
    """

    def __init__(self, connection_factory: Callable[[], Any], dialect: Dialect):
        self._connection_factory = connection_factory
        self.dialect = dialect
        self._local = threading.local()

    def connection(self):
        """This thread's connection, opened on first use."""
        connection = getattr(self._local, "connection", None)
        if connection is None:
            connection = self._local.connection = self._connection_factory()
        return connection

    def close(self):
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            self._local.connection = None
            connection.close()

    @property
    def stack(self) -> list["Transaction"]:
        if not hasattr(self._local, "stack"):
            self._local.stack = []
        return self._local.stack

    @property
    def depth(self) -> int:
        return len(self.stack)

    def current(self) -> Optional["Transaction"]:
        """Innermost transaction open in this thread, or None"""
        return self.stack[-1] if self.stack else None

    @contextmanager
    def transaction(self):
        """Open a transaction, or a savepoint inside the current one.

        Leaving the block commits (releases the savepoint) unless ``rollback()``
        was called on it; an exception rolls back and propagates.
        """
        connection = self.connection()
        handle = Transaction(connection, self, self.depth + 1)
        savepoint = f"savepoint_{handle.level}" if handle.level > 1 else None
        self.stack.append(handle)
        try:
            self._statement(connection, f"SAVEPOINT {savepoint}" if savepoint else None)
            yield handle
            if handle.rollback_only:
                self._undo(connection, savepoint)
            elif savepoint:
                self._statement(connection, f"RELEASE SAVEPOINT {savepoint}")
            else:
                logger.debug("COMMIT")
                connection.commit()
        except Exception:
            self._undo(connection, savepoint)
            raise
        finally:
            handle.active = False
            self.stack.pop()

    def _statement(self, connection, sql: Optional[str]):
        """Run a transaction-control statement; None opens the outermost transaction."""
        if sql is None:
            logger.debug("BEGIN")
            self.dialect.begin(connection)
            return
        logger.debug(sql)
        connection.cursor().execute(sql)

    def _undo(self, connection, savepoint: Optional[str]):
        if savepoint is None:
            logger.debug("ROLLBACK")
            connection.rollback()
            return
        self._statement(connection, f"ROLLBACK TO SAVEPOINT {savepoint}")
        self._statement(connection, f"RELEASE SAVEPOINT {savepoint}")


class Transaction:
    """Handle yielded by ``transaction()``; only usable while it is the innermost one."""

    def __init__(self, connection, manager: TransactionManager, level: int):
        self._connection = connection
        self._manager = manager
        self.level = level
        self.active = True
        self.rollback_only = False

    def _check_usable(self):
        if not self.active:
            raise TransactionError("Transaction is no longer active")
        depth = self._manager.depth
        if depth > self.level:
            raise TransactionError(
                f"Cannot use transaction level {self.level} from level {depth}. "
                "Higher-level transactions cannot be accessed from nested transactions."
            )

    def execute(self, sql: str, parameters=()) -> ExecutionResult:
        """Run ``sql`` (``?`` placeholders) and fetch its rows as dicts, if it returns any."""
        self._check_usable()
        logger.debug("%s :: %s", sql, list(parameters))
        cursor = self._connection.cursor()
        cursor.execute(self._manager.dialect.format_sql(sql), tuple(parameters))
        rows = None
        if cursor.description:
            names = [column[0] for column in cursor.description]
            rows = [dict(zip(names, row)) for row in cursor.fetchall()]
        return ExecutionResult(
            rows=rows,
            rowcount=-1 if cursor.rowcount is None else cursor.rowcount,
            lastrowid=getattr(cursor, "lastrowid", None),
        )

    def rollback(self):
        """Discard this transaction's work when its block ends, without raising."""
        if not self.active:
            raise TransactionError("Transaction is no longer active")
        self.rollback_only = True


_managers: dict[str, TransactionManager] = {}
_managers_lock = threading.Lock()


def _get_manager(connection_name: str = DEFAULT_CONNECTION_NAME) -> TransactionManager:
    manager = _managers.get(connection_name)
    if manager is not None:
        return manager
    with _managers_lock:
        # another thread may have created it while we waited
        manager = _managers.get(connection_name)
        if manager is None:
            manager = _managers[connection_name] = TransactionManager(
                connection_factory=lambda: _get_connection(name=connection_name),
                dialect=get_dialect(connection_name),
            )
    return manager


def _forget_connection(connection_name: str) -> None:
    """Drop the manager (and this thread's connection) of a re-configured connection name."""
    with _managers_lock:
        manager = _managers.pop(connection_name, None)
    if manager is not None:
        manager.close()


def transaction(connection_name: str = DEFAULT_CONNECTION_NAME):
    """Open a (possibly nested) transaction on the named connection."""
    return _get_manager(connection_name).transaction()


def rollback(connection_name: str = DEFAULT_CONNECTION_NAME) -> None:
    """Mark the innermost open transaction of this thread to be rolled back on exit."""
    current = _get_manager(connection_name).current()
    if current is None:
        raise TransactionError("rollback() called outside of a transaction")
    current.rollback()


def execute(sql: str, parameters=(), connection_name: str = DEFAULT_CONNECTION_NAME) -> ExecutionResult:
    """Run one statement in the current transaction, or in its own one when none is open."""
    manager = _get_manager(connection_name)
    current = manager.current()
    if current is not None:
        return current.execute(sql, parameters)
    with manager.transaction() as t:
        return t.execute(sql, parameters)
