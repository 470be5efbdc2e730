"""Selectors — composable WHERE fragments as functions from builder to builder.

Invariants:
    - Selectors are lazy: factories only close over their arguments, nothing runs until applied
    - Values are always bound parameters; identifiers always go through Ident
    - JSON path segments are the only interpolated text, escaped as SQL string literals
    - None is the "no selector" sentinel: apply() skips it, apply_if(False, ...) returns it

Design Decisions:
    - Closures over a tagged class hierarchy: composition is just function calls
      (ADR: selectors never need introspection after construction)
    - or_() wraps each argument in its own OR group inside one AND group,
      so composite arguments keep their own boundaries
"""

from datetime import datetime
from typing import Any

from querykit.core.domain_types import DEFAULT_ID_COL, Ident, In
from querykit.core.protocols import SelectQueryLike, Selector
from querykit.core.where import Where, apply_where

AND = " AND "
OR = " OR "


# ─── Combinators ─────────────────────────────────────────────────

def apply(*selectors: Selector | None) -> Selector:
    """Combine selectors into one, applied in argument order; None entries are skipped."""
    def _apply(q: SelectQueryLike) -> SelectQueryLike:
        for selector in selectors:
            if selector is not None:
                q = selector(q)
        return q
    return _apply


def apply_if(cond: bool, *selectors: Selector | None) -> Selector | None:
    """apply(*selectors) when cond holds, otherwise None so callers can skip it."""
    if not cond:
        return None
    return apply(*selectors)


def or_group(*selectors: Selector | None) -> Selector:
    """Add a group whose members are joined by OR, joined to prior conditions by OR."""
    def _or_group(q: SelectQueryLike) -> SelectQueryLike:
        return q.where_group(OR, apply(*selectors))
    return _or_group


def and_group(*selectors: Selector | None) -> Selector:
    """Add a group whose members are joined by AND, joined to prior conditions by AND."""
    def _and_group(q: SelectQueryLike) -> SelectQueryLike:
        return q.where_group(AND, apply(*selectors))
    return _and_group


def or_(*selectors: Selector | None) -> Selector:
    """AND group of single-member OR groups, one per argument."""
    return and_group(*(or_group(s) for s in selectors))


def use_where(where: Where | None) -> Selector:
    """Reuse Where.apply_filters as a selector."""
    def _use_where(q: SelectQueryLike) -> SelectQueryLike:
        return apply_where(where, q)
    return _use_where


# ─── JSONB ───────────────────────────────────────────────────────

def escape_json_path_segment(segment: str) -> str:
    """Double single quotes for use inside a SQL string literal. Not idempotent."""
    return segment.replace("'", "''")


def jsonb_path_expression(path: list[str], want_text: bool) -> str:
    """Build `?TableAlias.? -> 'a' ->> 'b'` over the column placeholder.

    Empty segments are skipped. With want_text the last non-empty segment
    uses the text extraction operator.
    """
    segments = [s for s in path if s != ""]
    expr = "?TableAlias.?"
    for idx, segment in enumerate(segments):
        operator = "->"
        if want_text and idx == len(segments) - 1:
            operator = "->>"
        expr += f" {operator} '{escape_json_path_segment(segment)}'"
    return expr


def where_jsonb_equal(col: str, field: str, value: Any) -> Selector:
    """Compare a top-level JSONB field, extracted as text, to value."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? ->> ? = ?", Ident(col), field, value)
    return _selector


def where_jsonb_path_equal(col: str, path: list[str], value: Any) -> Selector:
    """Compare the JSONB text value at path to value."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where(jsonb_path_expression(path, True) + " = ?", Ident(col), value)
    return _selector


def where_jsonb_objects_array_key_value_equal(
    col: str, key: str, field: str, value: Any,
) -> Selector:
    """The JSONB array of objects at key contains an object with field == value."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where(
            "?TableAlias.? -> ? @> jsonb_build_array(jsonb_build_object(?::text, ?::text))",
            Ident(col), key, field, value,
        )
    return _selector


def where_jsonb_path_objects_array_key_value_equal(
    col: str, path: list[str], field: str, value: Any,
) -> Selector:
    """Same containment check for the array of objects located at path."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where(
            jsonb_path_expression(path, False)
            + " @> jsonb_build_array(jsonb_build_object(?::text, ?::text))",
            Ident(col), field, value,
        )
    return _selector


# ─── Column Predicates ───────────────────────────────────────────

def where_equal(col: str, value: Any) -> Selector:
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? = ?", Ident(col), value)
    return _selector


def where_not_equal(col: str, value: Any) -> Selector:
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? != ?", Ident(col), value)
    return _selector


def where_null(col: str) -> Selector:
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? IS NULL", Ident(col))
    return _selector


def where_not_null(col: str) -> Selector:
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? IS NOT NULL", Ident(col))
    return _selector


def where_in(col: str, values: Any) -> Selector:
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? IN ?", Ident(col), In(values))
    return _selector


def where_not_in(col: str, values: Any) -> Selector:
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? NOT IN ?", Ident(col), In(values))
    return _selector


def where_contains(col: str, substr: str) -> Selector:
    """Case-insensitive substring match."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? ILIKE ?", Ident(col), f"%{substr}%")
    return _selector


def where_begins(col: str, substr: str) -> Selector:
    """Case-insensitive prefix match."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? ILIKE ?", Ident(col), f"{substr}%")
    return _selector


def where_ends(col: str, substr: str) -> Selector:
    """Case-insensitive suffix match."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? ILIKE ?", Ident(col), f"%{substr}")
    return _selector


def where_before(col: str, t: datetime) -> Selector:
    """col <= t (inclusive)."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? <= ?", Ident(col), t)
    return _selector


def where_after(col: str, t: datetime) -> Selector:
    """col >= t (inclusive)."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.where("?TableAlias.? >= ?", Ident(col), t)
    return _selector


def where_distinct_on(col: str) -> Selector:
    """DISTINCT ON col, ordered by col then id so the kept row is deterministic."""
    def _selector(q: SelectQueryLike) -> SelectQueryLike:
        return q.distinct_on(col).order_expr(f"{col}, {DEFAULT_ID_COL}")
    return _selector
