"""Root conftest — shared test configuration."""

import os

# Ensure tests never reach a real PostgreSQL through Settings defaults
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
