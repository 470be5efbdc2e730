"""Domain Types — argument markers, order maps and defaults shared by selectors and builders.

Invariants:
    - Ident values are always rendered as quoted identifiers, never as bound parameters
    - In values are always rendered as an expanding bound-parameter list
    - Order maps are caller-owned; lookups never raise

Design Decisions:
    - Frozen dataclasses for markers: hashable, comparable in tests, zero behavior
    - Default column names as module constants: single source of truth for Where resolution
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias


# ─── Column Defaults ─────────────────────────────────────────────

DEFAULT_ID_COL = "id"
DEFAULT_FLAGS_COL = "flags"
DEFAULT_CREATED_AT_COL = "created_at"
DEFAULT_UPDATED_AT_COL = "updated_at"
DEFAULT_SOFT_DELETE_COL = "deleted_at"


# ─── Value Types ─────────────────────────────────────────────────

# Sort key -> column name, resolved when a Where is applied
Order: TypeAlias = dict[int, str]


class DeletedMode(str, Enum):
    """Soft-delete visibility of a select query."""
    DEFAULT = "default"
    ONLY_DELETED = "only_deleted"
    WITH_DELETED = "with_deleted"


# ─── Template Arguments ──────────────────────────────────────────

@dataclass(frozen=True)
class Ident:
    """SQL identifier placeholder argument (column or table name)."""
    name: str


@dataclass(frozen=True, init=False)
class In:
    """Expanding list placeholder argument for IN / NOT IN. A bare str or bytes is one value."""
    values: tuple[Any, ...]

    def __init__(self, values: Any):
        if isinstance(values, (str, bytes)):
            values = (values,)
        object.__setattr__(self, "values", tuple(values))

