"""Split and run Postgres migrations, sample their locks and classify lock risks."""

__version__ = "0.0.0.dev0"