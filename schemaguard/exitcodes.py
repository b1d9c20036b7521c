"""Process exit codes and the tool version.

A product finding, including a migration that halts on its own SQL
error, exits RED. A malfunction of the tool itself exits TOOL_ERROR.
CI systems must be able to tell the two apart.
"""

from __future__ import annotations

import enum

VERSION = "0.0.0-dev"


class ExitCode(enum.IntEnum):
    """Exit status of a check run."""

    GREEN = 0
    """No significant findings."""

    YELLOW = 1
    """Caution-level findings; merge with care."""

    RED = 2
    """Stop-level findings or a halted migration; do not merge."""

    TOOL_ERROR = 3
    """Bad inputs, snapshot restore failure, Docker unavailable or a crash."""