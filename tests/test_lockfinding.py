from datetime import timedelta

import pytest

from schemaguard.lockfinding import (
    Finding,
    FindingKind,
    Severity,
    classify_severity,
    format_duration,
    mode_blocks_reads,
    mode_blocks_writes,
)


def ms(n):
    return timedelta(milliseconds=n)


@pytest.mark.parametrize(
    "duration, expected",
    [(ms(50), Severity.INFO), (ms(200), Severity.CAUTION), (ms(600), Severity.STOP)],
)
def test_classify_access_exclusive(duration, expected):
    assert classify_severity("AccessExclusiveLock", duration) is expected


def test_classify_access_exclusive_boundaries_are_strict():
    assert classify_severity("AccessExclusiveLock", ms(100)) is Severity.INFO
    assert classify_severity("AccessExclusiveLock", ms(500)) is Severity.CAUTION


def test_classify_exclusive():
    assert classify_severity("ExclusiveLock", ms(100)) is Severity.INFO
    assert classify_severity("ShareRowExclusiveLock", ms(500)) is Severity.CAUTION
    assert classify_severity("ExclusiveLock", timedelta(seconds=2)) is Severity.STOP


def test_classify_share():
    assert classify_severity("ShareLock", ms(500)) is Severity.INFO
    assert (
        classify_severity("ShareUpdateExclusiveLock", timedelta(seconds=2))
        is Severity.CAUTION
    )
    assert classify_severity("ShareLock", timedelta(seconds=10)) is Severity.STOP


@pytest.mark.parametrize("mode", ["AccessShareLock", "RowShareLock", "RowExclusiveLock"])
def test_weak_locks_always_info(mode):
    assert classify_severity(mode, timedelta(seconds=10)) is Severity.INFO


def test_mode_blocking_matrix():
    assert mode_blocks_reads("AccessExclusiveLock") is True
    assert mode_blocks_reads("ExclusiveLock") is False
    assert mode_blocks_writes("AccessExclusiveLock") is True
    assert mode_blocks_writes("ExclusiveLock") is True
    assert mode_blocks_writes("ShareLock") is True
    assert mode_blocks_writes("AccessShareLock") is False


def test_severity_labels_and_order():
    info = classify_severity("AccessExclusiveLock", ms(50))
    caution = classify_severity("AccessExclusiveLock", ms(200))
    stop = classify_severity("AccessExclusiveLock", ms(600))
    assert [str(info), str(caution), str(stop)] == ["info", "caution", "stop"]
    assert info < caution < stop


@pytest.mark.parametrize(
    "duration, expected",
    [
        (timedelta(0), "0s"),
        (timedelta(microseconds=400), "0s"),
        (timedelta(microseconds=500), "1ms"),
        (ms(200), "200ms"),
        (ms(999), "999ms"),
        (timedelta(seconds=1), "1s"),
        (ms(1500), "1.5s"),
        (ms(1234), "1.234s"),
        (timedelta(seconds=90), "1m30s"),
        (timedelta(hours=1), "1h0m0s"),
        (-ms(200), "-200ms"),
    ],
)
def test_format_duration(duration, expected):
    assert format_duration(duration) == expected


def test_finding_is_immutable():
    finding = Finding(
        kind=FindingKind.LOCK,
        statement_index=0,
        relation="public.users",
        mode="AccessShareLock",
        granted=True,
        duration=ms(50),
        blocks_reads=False,
        blocks_writes=False,
        severity=Severity.INFO,
        reason="r",
    )
    with pytest.raises(AttributeError):
        finding.severity = Severity.STOP  # type: ignore[misc]
    assert finding.severity is Severity.INFO