"""Selectors — tests for the combinator library and elementary predicate factories.

Tests cover:
    - apply skips None and keeps argument order
    - apply_if returns None when false, behaves like apply when true
    - or_group / and_group joiners, prefixes and empty groups
    - or_ wraps each argument in its own OR group inside an AND group
    - Column predicates render identifiers quoted and values as bound parameters
    - Selectors are lazy: building one never touches a query
"""

from datetime import datetime, timezone

from sqlalchemy.dialects import postgresql

from querykit.core.selectors import (
    and_group, apply, apply_if, or_, or_group, use_where,
    where_after, where_before, where_begins, where_contains, where_distinct_on,
    where_ends, where_equal, where_in, where_not_equal, where_not_in,
    where_not_null, where_null,
)
from querykit.core.where import Where
from querykit.infrastructure.query_builder import SelectQuery
from tests.models import tags


def _query() -> SelectQuery:
    return SelectQuery().model(tags)


def _compiled(q: SelectQuery) -> str:
    return str(q.statement().compile(dialect=postgresql.dialect()))


# ─── apply / apply_if ────────────────────────────────────────────

def test_apply_runs_selectors_in_order():
    q = apply(where_equal("name", "test"), where_not_null("id"))(_query())
    sql, params = q.where_clause()
    assert sql == '("tags"."name" = :w_0) AND ("tags"."id" IS NOT NULL)'
    assert params == {"w_0": "test"}


def test_apply_skips_none():
    q = apply(None, where_equal("name", "a"), None)(_query())
    assert q.where_clause() == ('("tags"."name" = :w_0)', {"w_0": "a"})


def test_apply_with_nothing_is_identity():
    q = _query()
    assert apply()(q) is q
    assert q.where_clause() == ("", {})


def test_apply_equals_sequential_application():
    selectors = [where_equal("name", "a"), None, where_in("id", ["1", "2"])]
    combined = apply(*selectors)(_query())

    manual = _query()
    for s in selectors:
        if s is not None:
            manual = s(manual)

    assert combined.where_clause() == manual.where_clause()


def test_apply_if_false_returns_none():
    assert apply_if(False, where_equal("name", "test")) is None


def test_apply_if_true_matches_apply():
    selector = apply_if(True, where_equal("name", "test"))
    assert selector is not None
    assert selector(_query()).where_clause() == apply(where_equal("name", "test"))(_query()).where_clause()


def test_apply_if_none_result_is_skipped_by_apply():
    q = apply(apply_if(False, where_equal("name", "x")), where_null("meta"))(_query())
    assert q.where_clause() == ('("tags"."meta" IS NULL)', {})


def test_selector_construction_is_lazy():
    q = _query()
    where_equal("name", "x")
    or_group(where_equal("name", "y"))
    assert q.where_clause() == ("", {})


# ─── groups ──────────────────────────────────────────────────────

def test_or_group_members_joined_by_or():
    q = or_group(where_equal("name", "t1"), where_equal("name", "t2"))(_query())
    sql, params = q.where_clause()
    assert sql == '(("tags"."name" = :w_0) OR ("tags"."name" = :w_1))'
    assert params == {"w_0": "t1", "w_1": "t2"}


def test_or_group_prefixed_by_or_after_existing_condition():
    q = where_equal("id", "1")(_query())
    q = or_group(where_equal("name", "t1"), where_equal("name", "t2"))(q)
    sql, _ = q.where_clause()
    assert sql == (
        '("tags"."id" = :w_0) OR '
        '(("tags"."name" = :w_1) OR ("tags"."name" = :w_2))'
    )


def test_and_group_members_joined_by_and():
    q = where_equal("id", "1")(_query())
    q = and_group(where_equal("name", "t1"), where_not_null("id"))(q)
    sql, _ = q.where_clause()
    assert sql == (
        '("tags"."id" = :w_0) AND '
        '(("tags"."name" = :w_1) AND ("tags"."id" IS NOT NULL))'
    )


def test_group_boundary_preserved_when_nested():
    q = or_group(
        and_group(where_equal("name", "a"), where_equal("id", "1")),
        where_null("meta"),
    )(_query())
    sql, _ = q.where_clause()
    assert sql == (
        '((("tags"."name" = :w_0) AND ("tags"."id" = :w_1)) OR ("tags"."meta" IS NULL))'
    )


def test_empty_group_renders_nothing():
    q = where_equal("name", "a")(_query())
    q = or_group()(q)
    q = and_group(None, apply_if(False, where_null("id")))(q)
    assert q.where_clause() == ('("tags"."name" = :w_0)', {"w_0": "a"})


def test_or_of_atomic_selectors_is_a_conjunction():
    q = or_(
        where_equal("name", "test1"),
        where_equal("name", "test2"),
        where_equal("name", "test3"),
    )(_query())
    sql, params = q.where_clause()
    assert sql == (
        '((("tags"."name" = :w_0)) AND (("tags"."name" = :w_1)) AND (("tags"."name" = :w_2)))'
    )
    assert params == {"w_0": "test1", "w_1": "test2", "w_2": "test3"}


def test_or_of_composite_selectors_ors_inside_each_argument():
    q = or_(
        apply(where_equal("name", "a"), where_equal("name", "b")),
        apply(where_equal("id", "1"), where_equal("id", "2")),
    )(_query())
    sql, _ = q.where_clause()
    assert sql == (
        '((("tags"."name" = :w_0) OR ("tags"."name" = :w_1)) AND '
        '(("tags"."id" = :w_2) OR ("tags"."id" = :w_3)))'
    )


def test_use_where_applies_filters():
    q = use_where(Where(ids=["1", "2", "3"]))(_query())
    assert q.where_clause() == ('("tags"."id" IN :w_0)', {"w_0": ["1", "2", "3"]})


def test_use_where_none_is_identity():
    q = _query()
    assert use_where(None)(q) is q


# ─── column predicates ───────────────────────────────────────────

def test_where_not_equal():
    sql, params = where_not_equal("name", "x")(_query()).where_clause()
    assert sql == '("tags"."name" != :w_0)'
    assert params == {"w_0": "x"}


def test_where_null_and_not_null():
    assert where_null("meta")(_query()).where_clause()[0] == '("tags"."meta" IS NULL)'
    assert where_not_null("meta")(_query()).where_clause()[0] == '("tags"."meta" IS NOT NULL)'


def test_where_in_and_not_in_bind_lists():
    sql, params = where_in("id", ("1", "2"))(_query()).where_clause()
    assert sql == '("tags"."id" IN :w_0)'
    assert params == {"w_0": ["1", "2"]}

    sql, params = where_not_in("id", ["3"])(_query()).where_clause()
    assert sql == '("tags"."id" NOT IN :w_0)'
    assert params == {"w_0": ["3"]}


def test_where_in_compiles_to_expanding_parameter():
    sql = _compiled(where_in("id", ["1", "2"])(_query()))
    assert '"tags"."id" IN (__[POSTCOMPILE_w_0])' in sql


def test_ilike_patterns():
    assert where_contains("name", "ab")(_query()).where_clause() == (
        '("tags"."name" ILIKE :w_0)', {"w_0": "%ab%"},
    )
    assert where_begins("name", "ab")(_query()).where_clause()[1] == {"w_0": "ab%"}
    assert where_ends("name", "ab")(_query()).where_clause()[1] == {"w_0": "%ab"}


def test_user_input_never_interpolated():
    sql, params = where_equal("name", "x' OR 1=1 --")(_query()).where_clause()
    assert "OR 1=1" not in sql
    assert params == {"w_0": "x' OR 1=1 --"}


def test_before_and_after_are_inclusive():
    t = datetime(2024, 1, 2, tzinfo=timezone.utc)
    assert where_before("created_at", t)(_query()).where_clause() == (
        '("tags"."created_at" <= :w_0)', {"w_0": t},
    )
    assert where_after("created_at", t)(_query()).where_clause() == (
        '("tags"."created_at" >= :w_0)', {"w_0": t},
    )


def test_where_distinct_on_orders_by_column_then_id():
    sql = _compiled(where_distinct_on("name")(_query()))
    assert "DISTINCT ON (tags.name)" in sql
    assert "ORDER BY name, id" in sql


def test_where_in_with_single_string_is_one_value():
    sql, params = where_in("id", "abc")(_query()).where_clause()
    assert sql == '("tags"."id" IN :w_0)'
    assert params == {"w_0": ["abc"]}
