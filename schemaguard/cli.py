"""Command-line entry point: top-level dispatch, help and version."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import TextIO

from schemaguard.check import run_check
from schemaguard.cleanup import install_signal_handler
from schemaguard.exitcodes import VERSION, ExitCode

ROOT_HELP = """\
schemaguard — verify Postgres migrations against production-like data before deployment

Usage:
  schemaguard <command> [flags]

Commands:
  check       Run a migration against a shadow database and report risks
  version     Show the tool version
  help        Show this help

Global flags:
  -h, --help      Show help
      --version   Show version

Run "schemaguard check --help" for details on the check command.
"""


def run(args: Sequence[str], stdout: TextIO, stderr: TextIO) -> int:
    """Dispatch ``args`` (program name first) and return the exit code."""
    cancelled, stop = install_signal_handler()
    try:
        if len(args) < 2:
            stdout.write(ROOT_HELP)
            return int(ExitCode.GREEN)

        command = args[1]
        if command in ("help", "--help", "-h"):
            stdout.write(ROOT_HELP)
            return int(ExitCode.GREEN)
        if command in ("version", "--version"):
            print(f"schemaguard {VERSION}", file=stdout)
            return int(ExitCode.GREEN)
        if command == "check":
            return run_check(list(args[2:]), stdout, stderr, cancelled)

        kind = "flag" if command.startswith("-") else "command"
        stderr.write(f'error: unknown {kind} "{command}"\n\n')
        stderr.write(ROOT_HELP)
        return int(ExitCode.TOOL_ERROR)
    finally:
        stop()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; ``argv`` excludes the program name."""
    if argv is None:
        argv = sys.argv[1:]
    return run(["schemaguard", *argv], sys.stdout, sys.stderr)


if __name__ == "__main__":
    sys.exit(main())