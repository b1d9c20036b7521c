# schemaguard

schemaguard is a toolkit for checking Postgres migrations before they
reach production. It splits migration scripts into statements, runs them
on a database connection with per-statement timing, samples `pg_locks`
while they run, and turns the observed locks into findings with a
severity that CI can act on.

It has no runtime dependencies beyond the Python standard library
(Python 3.10 or later). The database connection is supplied by you.

## Command line

    schemaguard --help        # or: schemaguard help, schemaguard -h
    schemaguard version       # or: schemaguard --version
    schemaguard check --migration <path> --snapshot <path> [flags]
    schemaguard check --help

`check` accepts these flags (written `-name value`, `--name value` or
`--name=value`):

- `--migration <path>` (required): a `.sql` file, or a directory whose
  `.sql` files are concatenated in lexical order; other entries are
  skipped.
- `--snapshot <path>` (required): a Postgres dump file.
- `--config <path>`: must name an existing file.
- `--format <fmt>`: `text` (default), `json` or `markdown`.
- `--out <path>`, `--dbt-manifest <path>`, `--verbose`: accepted, no
  effect.

Messages are written to standard error.

### Exit codes

`schemaguard.exitcodes.ExitCode`:

| Code | Name         | Meaning                                                        |
|------|--------------|----------------------------------------------------------------|
| 0    | `GREEN`      | no significant findings (also help and version)                |
| 1    | `YELLOW`     | caution-level findings                                         |
| 2    | `RED`        | stop-level findings, or a migration halted on its own SQL error |
| 3    | `TOOL_ERROR` | bad input, unknown command or flag, or the check could not run |

`schemaguard.exitcodes.VERSION` holds the version that `schemaguard
version` prints.

### What the command does not do

`schemaguard check` validates its inputs and then stops: the package has
no shadow database provisioner, so it cannot restore the snapshot, run
the migration against it or write a report. After successful validation
it prints `error: shadow database unavailable: ...` and exits with 3.
There is no report generator (the `text`, `json` and `markdown` formats
are only validated), no YAML config loading and no query-plan
comparison. To check a migration, drive the library below with your own
Postgres connections.

## Library

### Splitting scripts: `schemaguard.sqlsplit`

`split_statements(sql)` splits on top-level semicolons only. Semicolons
inside line comments, nested block comments, single-quoted strings,
double-quoted identifiers and dollar-quoted bodies (`$$ ... $$`,
`$tag$ ... $tag$`) stay in their statement. Empty and comment-only
statements are dropped; the rest are stripped of surrounding whitespace.

```python
from schemaguard.sqlsplit import split_statements, has_explicit_transaction

split_statements("INSERT INTO t VALUES ('it''s ok; really'); SELECT 1;")
# ["INSERT INTO t VALUES ('it''s ok; really')", "SELECT 1"]

has_explicit_transaction(["BEGIN", "CREATE TABLE t (id int)", "COMMIT"])
# True
```

`is_tx_control(stmt)` recognises `BEGIN`, `COMMIT`, `ROLLBACK`, `END`
and `START TRANSACTION`, case-insensitively and after leading comments.
`trim_leading_comments(s)` strips leading whitespace and comments.

### Running a migration: `schemaguard.executor`

`run(conn, migration_sql, cancel=None)` needs an object with an
`execute(sql)` method. Unless the script manages its own transaction, it
sends `BEGIN` first and `COMMIT` at the end (`ROLLBACK` on failure). It
stops at the first failing statement and returns a `MigrationResult`:

- `statements`: one `StatementResult` per statement attempted
  (`index`, `sql`, `started_at`, `duration`, `error`, `end_at()`)
- `explicit_tx`, `failed`, `failure_index` (-1 if none, or for a commit
  failure), `failure_error`, `total_duration`, `ok()`

SQL errors are recorded on the result, not raised. `ExecutorError` is
raised for a missing connection or a failed `BEGIN`. Setting the
`cancel` event (a `threading.Event`) fails the run before the next
statement.

### Sampling locks: `schemaguard.sampler`

`Sampler(conn, target_pid, interval)` polls for the relation-level locks
held or awaited by one backend, skipping system schemas. `conn` must be
a second connection whose `execute(sql, params)` returns rows of
`(mode, granted, relation)`; the query uses a `%s` placeholder. Call
`run(stop)` on a thread: it samples at once, then every `interval`
(50 ms by default) until `stop` is set. `wait(timeout)` blocks until the
loop has ended; `samples()` and `errors()` return copies of what was
collected. Query errors are kept but never end the loop.

### Analysing locks: `schemaguard.lockanalysis` and `schemaguard.lockfinding`

`analyze(samples, windows, interval)` groups `Sample` records by
relation and mode, attributes each group to the `StatementWindow` it
overlaps most (or -1), and returns `Finding` objects sorted by severity
(most severe first), then statement index, then relation. A group's
duration is the span from its first to its last sample plus one
interval.

```python
from datetime import datetime, timedelta, timezone
from schemaguard.lockanalysis import Sample, StatementWindow, analyze

t0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
ms = lambda n: t0 + timedelta(milliseconds=n)
windows = [StatementWindow(0, ms(0), ms(500), "ALTER TABLE users ...")]
samples = [
    Sample(ms(10), "AccessExclusiveLock", True, "public.users"),
    Sample(ms(450), "AccessExclusiveLock", True, "public.users"),
]
finding = analyze(samples, windows)[0]
finding.kind, str(finding.severity), finding.duration
# (FindingKind.TABLE_REWRITE, 'caution', timedelta(microseconds=490000))
```

`Finding` carries `kind`, `statement_index`, `relation`, `mode`,
`granted` (false if any sample was waiting), `duration`,
`blocks_reads`, `blocks_writes`, `severity` and `reason`.
`classify_severity(mode, duration)` assigns the severity:

| Mode                                 | caution above | stop above |
|--------------------------------------|---------------|------------|
| AccessExclusiveLock                  | 100 ms        | 500 ms     |
| ExclusiveLock, ShareRowExclusiveLock | 200 ms        | 1 s        |
| ShareLock, ShareUpdateExclusiveLock  | 1 s           | 5 s        |
| any other mode                       | never         | never      |

An `AccessExclusiveLock` covering at least 80% of a statement that ran
at least 100 ms is reported as `FindingKind.TABLE_REWRITE`, never below
`Severity.CAUTION`. `mode_blocks_reads`, `mode_blocks_writes` and
`format_duration` are also available.

### Cleanup on exit: `schemaguard.cleanup`

`CleanupRegistry` runs its hooks once, last registered first.
`register_cleanup` and `run_cleanup` use a process-wide registry.
`install_signal_handler(registry)` runs the hooks on SIGINT or SIGTERM
and returns `(cancelled, stop)`: an event that is set on a signal or on
`stop()`, and a function that restores the previous handlers and runs
the hooks.