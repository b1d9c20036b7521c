import io
from datetime import datetime, timedelta, timezone

import pytest

from schemaguard.check import (
    load_migration,
    run_check,
    statement_windows_from_result,
    validate_format,
)
from schemaguard.executor import MigrationResult, StatementResult


def _run(args):
    stdout, stderr = io.StringIO(), io.StringIO()
    code = run_check(args, stdout, stderr)
    return code, stdout.getvalue(), stderr.getvalue()


@pytest.mark.parametrize("fmt", ["text", "json", "markdown"])
def test_validate_format_accepts_supported(fmt):
    assert validate_format(fmt) is None


def test_validate_format_rejects_unknown():
    with pytest.raises(ValueError, match="unknown --format"):
        validate_format("html")


def test_load_migration_single_file(tmp_path):
    path = tmp_path / "m.sql"
    path.write_text("SELECT 1;\n")
    assert load_migration(path) == "SELECT 1;\n"


def test_load_migration_directory_in_lexical_order(tmp_path):
    (tmp_path / "b.sql").write_text("SELECT 2;")
    (tmp_path / "a.sql").write_text("SELECT 1;")
    (tmp_path / "notes.txt").write_text("ignored")
    (tmp_path / "sub.sql").mkdir()
    expected = (
        "\n-- schemaguard: a.sql\nSELECT 1;\n"
        "\n-- schemaguard: b.sql\nSELECT 2;\n"
    )
    assert load_migration(tmp_path) == expected


def test_load_migration_empty_directory_raises(tmp_path):
    (tmp_path / "readme.md").write_text("x")
    with pytest.raises(ValueError, match="no .sql files"):
        load_migration(tmp_path)


def test_load_migration_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_migration(tmp_path / "missing.sql")


def test_statement_windows_from_none():
    assert statement_windows_from_result(None) == []


def test_statement_windows_from_result():
    start = datetime(2026, 4, 11, 14, 0, tzinfo=timezone.utc)
    result = MigrationResult(
        statements=[
            StatementResult(index=0, sql="SELECT 1", started_at=start,
                            duration=timedelta(milliseconds=30)),
            StatementResult(index=1, sql="SELECT 2"),
        ]
    )
    windows = statement_windows_from_result(result)
    assert len(windows) == 1
    assert windows[0].index == 0
    assert windows[0].sql == "SELECT 1"
    assert windows[0].started_at == start
    assert windows[0].end_at == start + timedelta(milliseconds=30)


def test_check_help_lists_all_flags():
    code, _, err = _run(["-h"])
    assert code == 0
    for flag in ["--migration", "--snapshot", "--config", "--dbt-manifest",
                 "--format", "--out", "--verbose"]:
        assert flag in err


def test_check_help_mentions_exit_codes():
    _, _, err = _run(["--help"])
    for needle in ["green", "yellow", "red", "tool error"]:
        assert needle in err


def test_missing_migration_flag():
    code, _, err = _run(["--snapshot", "/nonexistent.dump"])
    assert code == 3
    assert "--migration is required" in err


def test_missing_snapshot_flag():
    code, _, err = _run(["--migration", "/nonexistent.sql"])
    assert code == 3
    assert "--snapshot is required" in err


def test_unknown_format():
    code, _, err = _run(["--migration", "m.sql", "--snapshot", "d.dump",
                         "--format", "html"])
    assert code == 3
    assert "unknown --format" in err


def test_missing_migration_file():
    code, _, err = _run([
        "--migration", "/definitely/not/a/real/path/m.sql",
        "--snapshot", "/definitely/not/a/real/path/d.dump",
    ])
    assert code == 3
    assert "loading migration" in err


def test_missing_snapshot_file(tmp_path):
    mig = tmp_path / "m.sql"
    mig.write_text("SELECT 1;\n")
    code, _, err = _run([
        "--migration", str(mig),
        "--snapshot", "/definitely/not/a/real/path/d.dump",
    ])
    assert code == 3
    assert "snapshot file" in err


def test_snapshot_is_directory(tmp_path):
    mig = tmp_path / "m.sql"
    mig.write_text("SELECT 1;\n")
    code, _, err = _run(["--migration", str(mig), "--snapshot", str(tmp_path)])
    assert code == 3
    assert "is a directory" in err


def test_missing_config_file(tmp_path):
    mig = tmp_path / "m.sql"
    mig.write_text("SELECT 1;\n")
    code, _, err = _run(["--migration", str(mig), "--snapshot", "d.dump",
                         "--config", str(tmp_path / "none.yaml")])
    assert code == 3
    assert "loading config" in err


def test_unknown_flag_is_tool_error():
    code, _, err = _run(["--bogus"])
    assert code == 3
    assert "flag provided but not defined: -bogus" in err


def test_flag_needs_argument():
    code, _, err = _run(["--migration"])
    assert code == 3
    assert "flag needs an argument: -migration" in err


def test_equals_syntax_is_accepted(tmp_path):
    mig = tmp_path / "m.sql"
    mig.write_text("SELECT 1;\n")
    code, _, err = _run([f"--migration={mig}", "-snapshot=/not/real/d.dump",
                         "--verbose"])
    assert code == 3
    assert "snapshot file" in err


def test_valid_inputs_stop_at_shadow_database(tmp_path):
    mig = tmp_path / "m.sql"
    mig.write_text("SELECT 1;\n")
    snap = tmp_path / "d.dump"
    snap.write_bytes(b"dump")
    code, out, err = _run(["--migration", str(mig), "--snapshot", str(snap)])
    assert code == 3
    assert out == ""
    assert "shadow database" in err