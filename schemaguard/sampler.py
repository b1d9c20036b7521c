"""Poll pg_locks for the migration backend while the migration runs.

A :class:`Sampler` runs on its own thread against a dedicated
connection, never the migration connection. Sharing that connection
would queue the sampler behind the migration's transaction. It collects
one :class:`~schemaguard.lockanalysis.Sample` per relation-level lock
held or awaited by the target backend, every polling interval.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

from schemaguard.lockanalysis import DEFAULT_SAMPLING_INTERVAL, Sample

# Relation-level locks held or awaited by one backend, with system
# schemas filtered out as noise. The single parameter is the backend PID.
SAMPLE_QUERY = """
SELECT l.mode,
       l.granted,
       l.relation::regclass::text AS object
FROM pg_locks l
JOIN pg_class c ON l.relation = c.oid
JOIN pg_namespace n ON c.relnamespace = n.oid
WHERE l.pid = %s
  AND l.locktype = 'relation'
  AND n.nspname NOT IN ('pg_catalog', 'information_schema', 'pg_toast')
"""


class LockQueryConnection(Protocol):
    """The part of a database connection the sampler uses."""

    def execute(self, sql: str, params: Sequence[Any]) -> Iterable[Sequence[Any]]: ...


class Sampler:
    """Collect lock samples for one backend until told to stop.

    Start :meth:`run` on a thread, set the stop event once the migration
    has returned, then :meth:`wait` for the loop to drain before reading
    :meth:`samples`.
    """

    def __init__(
        self,
        conn: LockQueryConnection,
        target_pid: int,
        interval: timedelta | None = DEFAULT_SAMPLING_INTERVAL,
    ) -> None:
        if interval is None or interval <= timedelta(0):
            interval = DEFAULT_SAMPLING_INTERVAL
        self._conn = conn
        self.target_pid = target_pid
        self.interval = interval
        self._lock = threading.Lock()
        self._samples: list[Sample] = []
        self._errors: list[BaseException] = []
        self._done = threading.Event()

    def run(self, stop: threading.Event) -> None:
        """Sample immediately, then every interval until ``stop`` is set.

        Query errors are collected but never end the loop, so a transient
        failure does not cost later samples.
        """
        try:
            self._record(stop)
            seconds = self.interval.total_seconds()
            while not stop.wait(seconds):
                self._record(stop)
        finally:
            self._done.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until :meth:`run` has returned; False if ``timeout`` ran out."""
        return self._done.wait(timeout)

    def samples(self) -> list[Sample]:
        """A copy of every sample recorded so far."""
        with self._lock:
            return list(self._samples)

    def errors(self) -> list[BaseException]:
        """A copy of every error the sampling loop has met."""
        with self._lock:
            return list(self._errors)

    def _add_error(self, error: BaseException) -> None:
        with self._lock:
            self._errors.append(error)

    def _record(self, stop: threading.Event) -> None:
        at = datetime.now(timezone.utc)
        try:
            rows = self._conn.execute(SAMPLE_QUERY, (self.target_pid,))
        except Exception as exc:
            # A failure while shutting down is expected, not worth keeping.
            if not stop.is_set():
                self._add_error(exc)
            return

        batch: list[Sample] = []
        try:
            for row in rows:
                try:
                    mode, granted, relation = row
                except (TypeError, ValueError) as exc:
                    self._add_error(exc)
                    return
                batch.append(
                    Sample(at=at, mode=str(mode), granted=bool(granted), relation=str(relation))
                )
        except Exception as exc:
            if not stop.is_set():
                self._add_error(exc)

        if batch:
            with self._lock:
                self._samples.extend(batch)