"""Turn raw pg_locks samples into lock-risk findings.

Samples are grouped by (relation, mode); each group is attributed to
the statement window it overlaps most, classified by severity, and
flagged as a probable full-table rewrite when the observed behaviour
says so. The SQL text is never inspected.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from schemaguard.lockfinding import (
    ACCESS_EXCLUSIVE,
    Finding,
    FindingKind,
    Severity,
    classify_severity,
    format_duration,
    mode_blocks_reads,
    mode_blocks_writes,
)

DEFAULT_SAMPLING_INTERVAL = timedelta(milliseconds=50)

_REWRITE_MIN_STATEMENT = timedelta(milliseconds=100)
_REWRITE_MIN_COVERAGE_PCT = 80


@dataclass(frozen=True)
class Sample:
    """One lock held or waited on by the target backend at a point in time."""

    at: datetime
    mode: str
    granted: bool
    relation: str


@dataclass(frozen=True)
class StatementWindow:
    """The execution window of one migration statement."""

    index: int
    started_at: datetime
    end_at: datetime
    sql: str = ""

    def duration(self) -> timedelta:
        """Width of the statement window."""
        return self.end_at - self.started_at


@dataclass
class _Group:
    first_at: datetime
    last_at: datetime
    all_granted: bool = True

    def add(self, sample: Sample) -> None:
        self.first_at = min(self.first_at, sample.at)
        self.last_at = max(self.last_at, sample.at)
        self.all_granted = self.all_granted and sample.granted


def _attribute(
    lock_start: datetime, lock_end: datetime, windows: Sequence[StatementWindow]
) -> int:
    """Index of the window overlapping [lock_start, lock_end] most; -1 if none.

    Ties go to the earliest window with the largest overlap.
    """
    best_index = -1
    best_overlap = timedelta(0)
    for window in windows:
        start = max(lock_start, window.started_at)
        end = min(lock_end, window.end_at)
        if end <= start:
            continue
        overlap = end - start
        if overlap > best_overlap:
            best_overlap = overlap
            best_index = window.index
    return best_index


def _statement_duration(index: int, windows: Sequence[StatementWindow]) -> timedelta:
    return next((w.duration() for w in windows if w.index == index), timedelta(0))


def _percent_of_window(
    lock_duration: timedelta, index: int, windows: Sequence[StatementWindow]
) -> int:
    stmt_duration = _statement_duration(index, windows)
    if stmt_duration <= timedelta(0):
        return 0
    pct = (lock_duration * 100) // stmt_duration
    return max(0, min(100, pct))


def _is_likely_table_rewrite(
    mode: str, lock_duration: timedelta, index: int, windows: Sequence[StatementWindow]
) -> bool:
    return (
        mode == ACCESS_EXCLUSIVE
        and index >= 0
        and _statement_duration(index, windows) >= _REWRITE_MIN_STATEMENT
        and _percent_of_window(lock_duration, index, windows) >= _REWRITE_MIN_COVERAGE_PCT
    )


def _default_reason(mode: str, duration: timedelta, index: int) -> str:
    if index < 0:
        return f"{mode} observed for {format_duration(duration)} (no statement window)"
    return f"{mode} observed for {format_duration(duration)} during statement #{index + 1}"


def analyze(
    samples: Iterable[Sample],
    windows: Sequence[StatementWindow],
    interval: timedelta = DEFAULT_SAMPLING_INTERVAL,
) -> list[Finding]:
    """Group ``samples`` into findings, most severe first.

    ``interval`` is the sampler's polling interval; it pads durations so
    a lock seen in a single sample still has a non-zero lifetime. A
    non-positive interval falls back to the default.
    """
    if interval <= timedelta(0):
        interval = DEFAULT_SAMPLING_INTERVAL

    groups: dict[tuple[str, str], _Group] = {}
    for sample in samples:
        key = (sample.relation, sample.mode)
        group = groups.get(key)
        if group is None:
            groups[key] = _Group(sample.at, sample.at, sample.granted)
        else:
            group.add(sample)

    half = interval / 2
    findings = []
    for (relation, mode), group in groups.items():
        duration = group.last_at - group.first_at + interval
        index = _attribute(group.first_at - half, group.last_at + half, windows)
        severity = classify_severity(mode, duration)
        kind = FindingKind.LOCK
        reason = _default_reason(mode, duration, index)

        if _is_likely_table_rewrite(mode, duration, index, windows):
            kind = FindingKind.TABLE_REWRITE
            severity = max(severity, Severity.CAUTION)
            reason = (
                f"probable full table rewrite: {mode} held for "
                f"{format_duration(duration)} (covers "
                f"~{_percent_of_window(duration, index, windows)}% of statement "
                f"#{index + 1}'s {format_duration(_statement_duration(index, windows))})"
            )

        findings.append(
            Finding(
                kind=kind,
                statement_index=index,
                relation=relation,
                mode=mode,
                granted=group.all_granted,
                duration=duration,
                blocks_reads=mode_blocks_reads(mode),
                blocks_writes=mode_blocks_writes(mode),
                severity=severity,
                reason=reason,
            )
        )

    findings.sort(key=lambda f: (-f.severity, f.statement_index, f.relation))
    return findings