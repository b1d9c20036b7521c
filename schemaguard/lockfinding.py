"""Structured lock-risk findings and the rules that classify them.

A finding describes one observed (relation, lock mode) pair held or
waited on by the migration backend. This module only defines the data
and the classification rules. Turning findings into human-readable
reports is left to the caller.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import timedelta

ACCESS_EXCLUSIVE = "AccessExclusiveLock"

_BLOCKS_READS = frozenset({ACCESS_EXCLUSIVE})
_BLOCKS_WRITES = frozenset(
    {ACCESS_EXCLUSIVE, "ExclusiveLock", "ShareRowExclusiveLock", "ShareLock"}
)

# (modes, caution above, stop above); any mode not listed is always info.
_SEVERITY_THRESHOLDS: tuple[tuple[frozenset[str], timedelta, timedelta], ...] = (
    (
        frozenset({ACCESS_EXCLUSIVE}),
        timedelta(milliseconds=100),
        timedelta(milliseconds=500),
    ),
    (
        frozenset({"ExclusiveLock", "ShareRowExclusiveLock"}),
        timedelta(milliseconds=200),
        timedelta(seconds=1),
    ),
    (
        frozenset({"ShareLock", "ShareUpdateExclusiveLock"}),
        timedelta(seconds=1),
        timedelta(seconds=5),
    ),
)


class Severity(enum.IntEnum):
    """How dangerous a lock finding is for a production deployment."""

    INFO = 0
    CAUTION = 1
    STOP = 2

    def __str__(self) -> str:
        return self.name.lower()


class FindingKind(enum.Enum):
    """A generic lock observation or a probable full-table rewrite."""

    LOCK = "lock"
    TABLE_REWRITE = "table_rewrite"


@dataclass(frozen=True)
class Finding:
    """One observed lock event, aggregated over the sample stream.

    ``duration`` is a lower bound on the real lock lifetime because the
    sampler is discrete; ``statement_index`` is -1 when the lock could
    not be attributed to any statement window.
    """

    kind: FindingKind
    statement_index: int
    relation: str
    mode: str
    granted: bool
    duration: timedelta
    blocks_reads: bool
    blocks_writes: bool
    severity: Severity
    reason: str


def mode_blocks_reads(mode: str) -> bool:
    """Report whether ``mode`` conflicts with the AccessShare lock of a SELECT."""
    return mode in _BLOCKS_READS


def mode_blocks_writes(mode: str) -> bool:
    """Report whether ``mode`` conflicts with the RowExclusive lock of DML."""
    return mode in _BLOCKS_WRITES


def classify_severity(mode: str, duration: timedelta) -> Severity:
    """Assign a first-pass severity from the lock mode and observed duration."""
    for modes, caution_above, stop_above in _SEVERITY_THRESHOLDS:
        if mode in modes:
            if duration > stop_above:
                return Severity.STOP
            if duration > caution_above:
                return Severity.CAUTION
            return Severity.INFO
    return Severity.INFO


def format_duration(duration: timedelta) -> str:
    """Render ``duration`` rounded to the millisecond, e.g. ``"250ms"`` or ``"1m2.5s"``."""
    micros = duration // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    millis = (abs(micros) + 500) // 1000
    if millis == 0:
        return "0s"
    if millis < 1000:
        return f"{sign}{millis}ms"

    hours, rest = divmod(millis, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    seconds, frac = divmod(rest, 1000)
    secs = str(seconds)
    if frac:
        secs += "." + f"{frac:03d}".rstrip("0")
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"