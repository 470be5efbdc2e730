"""Infrastructure Layer — SQLAlchemy-backed builders, database handles and transactions.

Invariants:
    - Infrastructure implements the protocols core/ declares; core never imports from here
    - All driver errors mapped to core/errors.py types at this boundary

Design Decisions:
    - Async SQLAlchemy throughout (ADR: asyncpg in production, aiosqlite in tests)
"""
