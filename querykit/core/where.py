"""Filter Descriptor — declarative filter / sort / pagination shape applied to a select builder.

Invariants:
    - apply_filters and apply_select are total: they never raise, None descriptor is identity
    - Filters are emitted in a fixed order: id, ids, not_in_ids, has_flags, has_not_flags,
      deleted mode, created bounds, updated bounds
    - only_deleted takes precedence over with_deleted
    - Blank column overrides resolve to defaults on a derived copy; the caller's Where is never mutated
    - An unknown sort_by key silently emits no ORDER BY

Design Decisions:
    - pydantic model: binds straight from request query/JSON with the same field names
      used on the wire (ADR: one DTO, no hand-written parsing)
    - order map excluded from serialization: it's caller configuration, not request data
    - Range bounds are millisecond epochs converted to aware UTC datetimes; values outside
      the datetime range are rejected at validation, so applying never fails
"""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, Field

from querykit.core.domain_types import (
    DEFAULT_CREATED_AT_COL, DEFAULT_FLAGS_COL, DEFAULT_ID_COL,
    DEFAULT_UPDATED_AT_COL, Ident, In, Order,
)
from querykit.core.protocols import SelectQueryLike


def order_asc(col: str) -> str:
    return f"{col} asc"


def order_desc(col: str) -> str:
    return f"{col} desc"


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Millisecond epochs of datetime.min and the last millisecond of datetime.max (UTC)
MIN_UNIX_MS = -62_135_596_800_000
MAX_UNIX_MS = 253_402_300_799_999


def _from_unix_ms(ms: int) -> datetime:
    return EPOCH + timedelta(milliseconds=ms)


class Where(BaseModel):
    """Common filter, projection, pagination and sort options for list queries."""

    id: str | None = None
    ids: list[str] = Field(default_factory=list)
    not_in_ids: list[str] = Field(default_factory=list)

    has_flags: list[int] = Field(default_factory=list)
    has_not_flags: list[int] = Field(default_factory=list)

    only_deleted: bool = False
    with_deleted: bool = False

    limit: int | None = None
    offset: int | None = None

    id_col: str = ""
    flags_col: str = ""
    created_at_col: str = ""
    updated_at_col: str = ""

    created_after: int | None = Field(default=None, ge=MIN_UNIX_MS, le=MAX_UNIX_MS)
    created_before: int | None = Field(default=None, ge=MIN_UNIX_MS, le=MAX_UNIX_MS)
    updated_after: int | None = Field(default=None, ge=MIN_UNIX_MS, le=MAX_UNIX_MS)
    updated_before: int | None = Field(default=None, ge=MIN_UNIX_MS, le=MAX_UNIX_MS)

    select_columns: list[str] = Field(default_factory=list)
    exclude_columns: list[str] = Field(default_factory=list)

    sort_by: int = 0
    sort_desc: bool = False

    order: Order = Field(default_factory=dict, exclude=True)

    def resolved(self) -> "Where":
        """Copy with blank column overrides replaced by the defaults."""
        return self.model_copy(update={
            "id_col": self.id_col or DEFAULT_ID_COL,
            "flags_col": self.flags_col or DEFAULT_FLAGS_COL,
            "created_at_col": self.created_at_col or DEFAULT_CREATED_AT_COL,
            "updated_at_col": self.updated_at_col or DEFAULT_UPDATED_AT_COL,
        })

    def apply_filters(self, q: SelectQueryLike) -> SelectQueryLike:
        w = self.resolved()

        if w.id:
            q = q.where("?TableAlias.? = ?", Ident(w.id_col), w.id)
        if w.ids:
            q = q.where("?TableAlias.? IN ?", Ident(w.id_col), In(w.ids))
        if w.not_in_ids:
            q = q.where("?TableAlias.? NOT IN ?", Ident(w.id_col), In(w.not_in_ids))

        for flag in w.has_flags:
            q = q.where("?TableAlias.? & ? = ?", Ident(w.flags_col), flag, flag)
        for flag in w.has_not_flags:
            q = q.where("?TableAlias.? & ? = 0", Ident(w.flags_col), flag)

        if w.only_deleted:
            q = q.where_deleted()
        elif w.with_deleted:
            q = q.where_all_with_deleted()

        if w.created_after is not None:
            q = q.where("?TableAlias.? >= ?", Ident(w.created_at_col), _from_unix_ms(w.created_after))
        if w.created_before is not None:
            q = q.where("?TableAlias.? <= ?", Ident(w.created_at_col), _from_unix_ms(w.created_before))

        if w.updated_after is not None:
            q = q.where("?TableAlias.? >= ?", Ident(w.updated_at_col), _from_unix_ms(w.updated_after))
        if w.updated_before is not None:
            q = q.where("?TableAlias.? <= ?", Ident(w.updated_at_col), _from_unix_ms(w.updated_before))

        return q

    def apply_select(self, q: SelectQueryLike) -> SelectQueryLike:
        if self.select_columns:
            q = q.column(*self.select_columns)
        if self.exclude_columns:
            q = q.exclude_column(*self.exclude_columns)

        if self.limit is not None:
            q = q.limit(self.limit)
        if self.offset is not None:
            q = q.offset(self.offset)

        col = self.order.get(self.sort_by)
        if col is not None:
            q = q.order(order_desc(col) if self.sort_desc else order_asc(col))

        return q


def apply_where(where: Where | None, q: SelectQueryLike) -> SelectQueryLike:
    """Where.apply_filters that tolerates a missing descriptor."""
    if where is None:
        return q
    return where.apply_filters(q)


def apply_select(where: Where | None, q: SelectQueryLike) -> SelectQueryLike:
    """Where.apply_select that tolerates a missing descriptor."""
    if where is None:
        return q
    return where.apply_select(q)
