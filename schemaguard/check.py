"""The ``check`` subcommand: validate inputs and prepare a migration check.

Progress and error messages go to stderr so a report written to stdout
stays clean. Exit codes follow :class:`~schemaguard.exitcodes.ExitCode`.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from schemaguard.executor import MigrationResult
from schemaguard.exitcodes import ExitCode
from schemaguard.lockanalysis import StatementWindow

SUPPORTED_FORMATS = ("text", "json", "markdown")

CHECK_USAGE = """\
schemaguard check — verify a Postgres migration against a shadow database

Usage:
  schemaguard check --migration <path> --snapshot <path> [flags]

Required:
      --migration <path>       Path to the migration SQL file or directory
      --snapshot <path>        Path to a Postgres dump file (.sql, .dump, or
                               .tar) that will be restored into an ephemeral
                               Docker-based shadow database

Optional:
      --config <path>          YAML config with top queries and plan-
                               regression threshold overrides. When
                               absent, plan analysis is silently
                               disabled; the tool still runs migration
                               and lock analysis.
      --format <fmt>           Output format: text, json, or markdown
                               (default: text).
      --out <path>             Write the report to a file instead of
                               stdout. Progress messages continue to
                               stream to stderr.

Not yet implemented (parsed so they do not cause "unknown flag" errors):
      --dbt-manifest <path>    Path to a dbt manifest.json
      --verbose                Extra logging for debugging runs
  -h, --help                   Show this help

Exit codes:
  0  green       — no significant findings
  1  yellow      — caution-level findings, merge with care
  2  red         — stop-level findings, do not merge (includes a migration
                   that halted on its own SQL error)
  3  tool error  — bad inputs, snapshot restore failure, Docker unavailable,
                   or internal crash
"""

_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


@dataclass
class _CheckOptions:
    migration: str = ""
    snapshot: str = ""
    config: str = ""
    dbt_manifest: str = ""
    format: str = "text"
    out: str = ""
    verbose: bool = False


_STRING_FLAGS = {
    "migration": "migration",
    "snapshot": "snapshot",
    "config": "config",
    "dbt-manifest": "dbt_manifest",
    "format": "format",
    "out": "out",
}
_BOOL_FLAGS = {"verbose": "verbose"}


class _HelpRequested(Exception):
    """The user asked for the subcommand's help."""


class _FlagError(Exception):
    """The command line could not be parsed."""


def _parse_check_args(args: Sequence[str]) -> _CheckOptions:
    """Parse ``-name value``, ``--name=value`` style flags up to the first non-flag."""
    opts = _CheckOptions()
    it = iter(args)
    for arg in it:
        if len(arg) < 2 or not arg.startswith("-"):
            break
        if arg == "--":
            break
        body = arg[2:] if arg.startswith("--") else arg[1:]
        if not body or body[0] in "-=":
            raise _FlagError(f"bad flag syntax: {arg}")
        name, has_value, value = body.partition("=")

        if name in _BOOL_FLAGS:
            if has_value:
                if value in _TRUE_WORDS:
                    flag_value = True
                elif value in _FALSE_WORDS:
                    flag_value = False
                else:
                    raise _FlagError(
                        f'invalid boolean value "{value}" for -{name}: parse error'
                    )
            else:
                flag_value = True
            setattr(opts, _BOOL_FLAGS[name], flag_value)
        elif name in _STRING_FLAGS:
            if not has_value:
                try:
                    value = next(it)
                except StopIteration:
                    raise _FlagError(f"flag needs an argument: -{name}") from None
            setattr(opts, _STRING_FLAGS[name], value)
        elif name in ("h", "help"):
            raise _HelpRequested
        else:
            raise _FlagError(f"flag provided but not defined: -{name}")
    return opts


def validate_format(fmt: str) -> None:
    """Raise ValueError unless ``fmt`` is a supported report format."""
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(
            f'unknown --format "{fmt}" (supported: text, json, markdown)'
        )


def _extension(name: str) -> str:
    _, dot, tail = name.rpartition(".")
    return "." + tail if dot else ""


def load_migration(path: str | os.PathLike[str]) -> str:
    """Read a migration file, or concatenate the ``.sql`` files of a directory.

    Directory entries are taken in lexical order; subdirectories and
    files without a ``.sql`` extension are skipped. Raises ValueError
    when a directory holds no ``.sql`` files.
    """
    source = Path(path)
    if not source.is_dir():
        return source.read_text(encoding="utf-8")

    parts = []
    for entry in sorted(source.iterdir(), key=lambda p: p.name):
        if entry.is_dir() or _extension(entry.name) != ".sql":
            continue
        body = entry.read_text(encoding="utf-8")
        parts.append(f"\n-- schemaguard: {entry.name}\n{body}\n")
    if not parts:
        raise ValueError("no .sql files found in migration directory")
    return "".join(parts)


def statement_windows_from_result(
    result: MigrationResult | None,
) -> list[StatementWindow]:
    """The statement windows the lock analysis needs from a migration result.

    Statements that never started (a run cancelled before them) have no
    window and are left out; they cannot overlap any lock anyway.
    """
    if result is None:
        return []
    return [
        StatementWindow(
            index=stmt.index,
            started_at=stmt.started_at,
            end_at=stmt.started_at + stmt.duration,
            sql=stmt.sql,
        )
        for stmt in result.statements
        if stmt.started_at is not None
    ]


def run_check(
    args: Sequence[str],
    stdout: TextIO,
    stderr: TextIO,
    cancel: threading.Event | None = None,
) -> int:
    """Run the ``check`` subcommand and return its exit code."""
    try:
        opts = _parse_check_args(args)
    except _HelpRequested:
        stderr.write(CHECK_USAGE)
        return int(ExitCode.GREEN)
    except _FlagError as exc:
        stderr.write(f"{exc}\n")
        stderr.write(CHECK_USAGE)
        return int(ExitCode.TOOL_ERROR)

    if not opts.migration:
        print("error: --migration is required", file=stderr)
        return int(ExitCode.TOOL_ERROR)
    if not opts.snapshot:
        print("error: --snapshot is required", file=stderr)
        return int(ExitCode.TOOL_ERROR)
    try:
        validate_format(opts.format)
    except ValueError as exc:
        print(f"error: {exc}", file=stderr)
        return int(ExitCode.TOOL_ERROR)

    try:
        load_migration(opts.migration)
    except (OSError, ValueError, UnicodeDecodeError) as exc:
        print(f"error: loading migration: {exc}", file=stderr)
        return int(ExitCode.TOOL_ERROR)

    if opts.config:
        config_path = Path(opts.config)
        if not config_path.is_file():
            print(
                f"error: loading config: {opts.config}: no such file",
                file=stderr,
            )
            return int(ExitCode.TOOL_ERROR)

    snapshot = Path(opts.snapshot).absolute()
    try:
        is_dir = snapshot.stat() and snapshot.is_dir()
    except OSError as exc:
        print(f"error: snapshot file: {exc}", file=stderr)
        return int(ExitCode.TOOL_ERROR)
    if is_dir:
        print(
            f'error: snapshot path "{snapshot}" is a directory, expected a dump file',
            file=stderr,
        )
        return int(ExitCode.TOOL_ERROR)

    if cancel is not None and cancel.is_set():
        print("error: interrupted", file=stderr)
        return int(ExitCode.TOOL_ERROR)

    print(
        "error: shadow database unavailable: no Docker-based shadow Postgres "
        "provisioner is available to restore the snapshot",
        file=stderr,
    )
    return int(ExitCode.TOOL_ERROR)