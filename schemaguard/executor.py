"""Apply migration SQL against the shadow database.

The whole migration runs in one implicit transaction unless the script
contains its own transaction-control statements, in which case those are
respected. Execution stops at the first SQL error; such errors are
recorded on the result as product findings rather than raised.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol

from schemaguard.sqlsplit import has_explicit_transaction, split_statements


class ExecutorError(Exception):
    """The executor could not carry out the migration run itself."""


class Connection(Protocol):
    """The part of a database connection the executor uses."""

    def execute(self, sql: str) -> object: ...


@dataclass
class StatementResult:
    """Outcome and timing of one migration statement."""

    index: int
    sql: str
    started_at: datetime | None = None
    duration: timedelta = timedelta(0)
    error: BaseException | None = None

    def end_at(self) -> datetime | None:
        """Wall-clock time at which the statement finished."""
        if self.started_at is None:
            return None
        return self.started_at + self.duration


@dataclass
class MigrationResult:
    """Structured outcome of a single migration run."""

    statements: list[StatementResult] = field(default_factory=list)
    explicit_tx: bool = False
    failed: bool = False
    failure_index: int = -1
    failure_error: BaseException | None = None
    total_duration: timedelta = timedelta(0)

    def ok(self) -> bool:
        """Report whether the migration ran to completion."""
        return not self.failed

    def _fail(self, index: int, error: BaseException) -> None:
        self.failed = True
        self.failure_index = index
        self.failure_error = error


def _exec_one(conn: Connection, index: int, stmt: str) -> StatementResult:
    started_at = datetime.now(timezone.utc)
    begin = time.perf_counter()
    error: BaseException | None = None
    try:
        conn.execute(stmt)
    except Exception as exc:  # any driver error is a migration finding
        error = exc
    return StatementResult(
        index=index,
        sql=stmt,
        started_at=started_at,
        duration=timedelta(seconds=time.perf_counter() - begin),
        error=error,
    )


def _run_statements(
    conn: Connection,
    stmts: list[str],
    result: MigrationResult,
    cancel: threading.Event | None,
) -> None:
    for index, stmt in enumerate(stmts):
        if cancel is not None and cancel.is_set():
            error = ExecutorError("migration cancelled")
            result.statements.append(StatementResult(index=index, sql=stmt, error=error))
            result._fail(index, error)
            return
        outcome = _exec_one(conn, index, stmt)
        result.statements.append(outcome)
        if outcome.error is not None:
            result._fail(index, outcome.error)
            return


def _run_wrapped(
    conn: Connection,
    stmts: list[str],
    result: MigrationResult,
    cancel: threading.Event | None,
) -> None:
    try:
        conn.execute("BEGIN")
    except Exception as exc:
        raise ExecutorError(f"begin transaction: {exc}") from exc

    _run_statements(conn, stmts, result, cancel)

    if result.failed:
        # The original migration error is what matters; a rollback error is dropped.
        try:
            conn.execute("ROLLBACK")
        except Exception:
            pass
        return

    try:
        conn.execute("COMMIT")
    except Exception as exc:
        commit_error = ExecutorError(f"commit transaction: {exc}")
        commit_error.__cause__ = exc
        result.failed = True
        result.failure_error = commit_error


def run(
    conn: Connection | None,
    migration_sql: str,
    cancel: threading.Event | None = None,
) -> MigrationResult:
    """Execute ``migration_sql`` on ``conn`` and describe every statement's outcome.

    SQL errors are recorded on the result (``failed``, ``failure_index``,
    ``failure_error``). :class:`ExecutorError` is raised only when the run
    cannot be carried out, such as a missing connection or a failure to
    open the implicit transaction. Setting ``cancel`` stops the run before
    the next statement.
    """
    if conn is None:
        raise ExecutorError("no connection")

    stmts = split_statements(migration_sql)
    result = MigrationResult(explicit_tx=has_explicit_transaction(stmts))
    if not stmts:
        return result

    begin = time.perf_counter()
    try:
        if result.explicit_tx:
            _run_statements(conn, stmts, result, cancel)
        else:
            _run_wrapped(conn, stmts, result, cancel)
    finally:
        result.total_duration = timedelta(seconds=time.perf_counter() - begin)
    return result