"""Database Models — SQLAlchemy declarative base and reusable column mixins.

Invariants:
    - Tables queried through querykit builders inherit from Base or are plain Tables
"""
