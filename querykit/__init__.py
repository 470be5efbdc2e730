"""querykit — composable query selectors and ambient transactions over SQLAlchemy.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)

Design Decisions:
    - Empty __init__.py: explicit imports from querykit.core / querykit.infrastructure only
"""
