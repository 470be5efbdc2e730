"""Core Layer — pure query composition logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from infrastructure/ or db/
    - All functions are pure and deterministic; selectors only mutate the builder handed to them

Design Decisions:
    - Functional core separated from imperative shell (ADR: selectors are data, execution is IO)
"""
