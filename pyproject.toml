[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "schemaguard"
version = "0.0.0.dev0"
description = "Split and run Postgres migrations, sample their locks and classify lock risks"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "postgres",
    "postgresql",
    "migration",
    "schema",
    "locks",
    "pg_locks",
    "sql",
    "ci",
    "database",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
schemaguard = "schemaguard.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["schemaguard"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
