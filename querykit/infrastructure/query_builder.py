"""Statement Builders — mutable select/insert/update/delete builders over SQLAlchemy Core.

Invariants:
    - Conditions are stored unrendered and rendered once per statement build, so bound
      parameter names (w_0, w_1, ...) are unique within a statement
    - Template placeholders: ?TableAlias -> quoted table name; ? -> next argument
      (Ident -> quoted identifier, In -> expanding parameter list, else bound parameter)
    - ? and : inside single-quoted literals are plain text, never placeholders
    - A group's members are joined by the group's joiner; a group is joined to the
      conditions before it by that same joiner and has no prefix when it comes first
    - Empty groups render nothing
    - Inside a group every member is joined by the group's joiner; where_or() only changes
      the separator at the top level
    - Projection and DISTINCT ON names that are not table columns are rendered as quoted
      identifiers, never as raw SQL
    - Soft-delete filtering only applies to selects on tables that have the soft-delete column

Design Decisions:
    - One rendered TextClause for the whole WHERE: templates stay readable and selectors
      stay dialect-agnostic, while values still travel as bound parameters
    - PostgreSQL identifier quoting everywhere: double quotes are also valid on SQLite
    - Builders hold an executor (Database or Transaction) so the Querier decides where a
      statement runs, not the caller
"""

import re
from typing import Any, Callable, Protocol, Self

from sqlalchemy import (
    Table, bindparam, delete, func, insert, literal_column, select, text, update,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql import ClauseElement, Select

from querykit.core.domain_types import DEFAULT_SOFT_DELETE_COL, DeletedMode, Ident, In

AND = " AND "
OR = " OR "

_PREPARER = postgresql.dialect().identifier_preparer


def quote_ident(name: str) -> str:
    return _PREPARER.quote_identifier(name)


class Executor(Protocol):
    """Where built statements run — implemented by Database and Transaction."""
    async def fetch_all(self, statement: ClauseElement) -> list[dict]: ...
    async def fetch_one(self, statement: ClauseElement) -> dict: ...
    async def scalar(self, statement: ClauseElement) -> Any: ...
    async def execute(self, statement: ClauseElement) -> int: ...


# ─── Condition Tree ──────────────────────────────────────────────

class _Condition:
    __slots__ = ("template", "args")

    def __init__(self, template: str, args: tuple):
        self.template = template
        self.args = args


class _Group:
    """joiner=None keeps each member's own separator (top level)."""
    __slots__ = ("joiner", "items")

    def __init__(self, joiner: str | None, items: list):
        self.joiner = joiner
        self.items = items


class _TemplateRenderer:
    """Renders condition templates into TextClause SQL, collecting bound parameters."""

    _TOKENS = re.compile(r"'(?:[^']|'')*'|\?TableAlias|\?|:")

    def __init__(self, alias: str):
        self.alias = alias
        self.params: dict[str, Any] = {}
        self.expanding: set[str] = set()

    def render_items(self, items: list, joiner: str | None) -> str:
        parts = []
        for idx, (sep, node) in enumerate(items):
            if idx > 0:
                parts.append(joiner or sep)
            parts.append(self.render_node(node))
        return "".join(parts)

    def render_node(self, node) -> str:
        if isinstance(node, _Group):
            return "(" + self.render_items(node.items, node.joiner) + ")"
        return "(" + self.format(node.template, node.args) + ")"

    def format(self, template: str, args: tuple) -> str:
        remaining = list(args)

        def _sub(m: re.Match) -> str:
            token = m.group(0)
            if token == "?TableAlias":
                return quote_ident(self.alias)
            if token == "?":
                # Missing argument: left in place, fails when the statement executes
                if not remaining:
                    return token
                return self._arg(remaining.pop(0))
            # Literal or bare colon: escape so text() doesn't read a bind name
            return token.replace(":", "\\:")

        return self._TOKENS.sub(_sub, template)

    def _arg(self, arg: Any) -> str:
        if isinstance(arg, Ident):
            return quote_ident(arg.name)
        name = f"w_{len(self.params)}"
        if isinstance(arg, In):
            self.params[name] = list(arg.values)
            self.expanding.add(name)
        else:
            self.params[name] = arg
        return f":{name}"

    def text_clause(self, sql: str):
        return text(sql).bindparams(*(
            bindparam(name, value, expanding=name in self.expanding)
            for name, value in self.params.items()
        ))


def _table_of(model: Any) -> Table:
    """Accept a mapped class or a Table."""
    return getattr(model, "__table__", model)


# ─── Builders ────────────────────────────────────────────────────

class _BaseQuery:
    def __init__(self, executor: Executor | None = None):
        self._executor = executor
        self._table: Table | None = None

    def model(self, model: Any) -> Self:
        self._table = _table_of(model)
        return self

    @property
    def table(self) -> Table | None:
        return self._table

    @property
    def executor(self) -> Executor | None:
        return self._executor

    def _require_executor(self) -> Executor:
        if self._executor is None:
            raise RuntimeError("Query is not bound to a database")
        return self._executor

    def _column(self, name: str):
        """Table column by name; anything else is quoted as a (dotted) identifier."""
        if self._table is not None and name in self._table.c:
            return self._table.c[name]
        return literal_column(".".join(quote_ident(part) for part in name.split(".")))


class _WhereQuery(_BaseQuery):
    def __init__(self, executor: Executor | None = None):
        super().__init__(executor)
        self._where: list[tuple[str, _Condition | _Group]] = []

    def where(self, template: str, *args: Any) -> Self:
        self._where.append((AND, _Condition(template, args)))
        return self

    def where_or(self, template: str, *args: Any) -> Self:
        self._where.append((OR, _Condition(template, args)))
        return self

    def where_group(self, joiner: str, fn: Callable[[Self], Any]) -> Self:
        saved = self._where
        self._where = []
        try:
            fn(self)
        finally:
            collected = self._where
            self._where = saved
        if collected:
            self._where.append((joiner, _Group(joiner, collected)))
        return self

    def _where_items(self) -> list:
        return self._where

    def where_clause(self) -> tuple[str, dict[str, Any]]:
        """Rendered WHERE SQL (as fed to text()) and its bound parameters."""
        sql, renderer = self._render_where()
        return sql, dict(renderer.params)

    def _render_where(self) -> tuple[str, _TemplateRenderer]:
        alias = self._table.name if self._table is not None else ""
        renderer = _TemplateRenderer(alias)
        return renderer.render_items(self._where_items(), None), renderer

    def _apply_where(self, stmt):
        sql, renderer = self._render_where()
        if not sql:
            return stmt
        return stmt.where(renderer.text_clause(sql))


class SelectQuery(_WhereQuery):
    """SELECT builder: selectors and Where descriptors operate on this."""

    def __init__(
        self,
        executor: Executor | None = None,
        soft_delete_column: str = DEFAULT_SOFT_DELETE_COL,
    ):
        super().__init__(executor)
        self._soft_delete_column = soft_delete_column
        self._deleted_mode = DeletedMode.DEFAULT
        self._columns: list[str] = []
        self._excluded: set[str] = set()
        self._orders: list[str] = []
        self._distinct_on: list[str] = []
        self._limit: int | None = None
        self._offset: int | None = None

    # ── building ──

    def column(self, *columns: str) -> Self:
        self._columns.extend(columns)
        return self

    def exclude_column(self, *columns: str) -> Self:
        self._excluded.update(columns)
        return self

    def limit(self, n: int) -> Self:
        self._limit = n
        return self

    def offset(self, n: int) -> Self:
        self._offset = n
        return self

    def order(self, *orders: str) -> Self:
        """Column orders like "name desc"; the column part is quoted."""
        for order in orders:
            col, _, direction = order.strip().partition(" ")
            quoted = ".".join(quote_ident(part) for part in col.split("."))
            self._orders.append(f"{quoted} {direction.strip().upper()}".rstrip())
        return self

    def order_expr(self, expr: str) -> Self:
        """Raw ORDER BY expression, used as is."""
        self._orders.append(expr)
        return self

    def distinct_on(self, *columns: str) -> Self:
        self._distinct_on.extend(columns)
        return self

    def where_deleted(self) -> Self:
        self._deleted_mode = DeletedMode.ONLY_DELETED
        return self

    def where_all_with_deleted(self) -> Self:
        self._deleted_mode = DeletedMode.WITH_DELETED
        return self

    @property
    def deleted_mode(self) -> DeletedMode:
        return self._deleted_mode

    # ── rendering ──

    def _soft_delete_condition(self) -> _Condition | None:
        if self._table is None or self._soft_delete_column not in self._table.c:
            return None
        if self._deleted_mode == DeletedMode.WITH_DELETED:
            return None
        if self._deleted_mode == DeletedMode.ONLY_DELETED:
            return _Condition("?TableAlias.? IS NOT NULL", (Ident(self._soft_delete_column),))
        return _Condition("?TableAlias.? IS NULL", (Ident(self._soft_delete_column),))

    def _where_items(self) -> list:
        soft = self._soft_delete_condition()
        if soft is None:
            return self._where
        if not self._where:
            return [(AND, soft)]
        return [(AND, _Group(None, self._where)), (AND, soft)]

    def statement(self) -> Select:
        if self._columns:
            cols = [self._column(name) for name in self._columns]
        elif self._table is not None:
            cols = list(self._table.c)
        else:
            cols = []
        if self._excluded:
            cols = [c for c in cols if getattr(c, "name", None) not in self._excluded]

        stmt = select(*cols)
        if self._table is not None:
            stmt = stmt.select_from(self._table)
        if self._distinct_on:
            stmt = stmt.distinct(*(self._column(name) for name in self._distinct_on))
        stmt = self._apply_where(stmt)
        if self._orders:
            stmt = stmt.order_by(*(text(o.replace(":", "\\:")) for o in self._orders))
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        if self._offset is not None:
            stmt = stmt.offset(self._offset)
        return stmt

    # ── execution ──

    async def scan(self) -> list[dict]:
        return await self._require_executor().fetch_all(self.statement())

    async def scan_one(self) -> dict:
        """Exactly one row; NoResultFound when there is none."""
        return await self._require_executor().fetch_one(self.statement())

    async def count(self) -> int:
        inner = self.statement().order_by(None).limit(None).offset(None).subquery()
        return await self._require_executor().scalar(
            select(func.count()).select_from(inner),
        )


class InsertQuery(_BaseQuery):
    def __init__(self, executor: Executor | None = None):
        super().__init__(executor)
        self._values: list[dict[str, Any]] = []

    def values(self, *rows: dict[str, Any], **row: Any) -> Self:
        self._values.extend(rows)
        if row:
            self._values.append(row)
        return self

    def statement(self):
        stmt = insert(self._table)
        if len(self._values) == 1:
            return stmt.values(self._values[0])
        if self._values:
            return stmt.values(self._values)
        return stmt

    async def exec(self) -> int:
        return await self._require_executor().execute(self.statement())


class UpdateQuery(_WhereQuery):
    def __init__(self, executor: Executor | None = None):
        super().__init__(executor)
        self._set: dict[str, Any] = {}

    def set(self, values: dict[str, Any] | None = None, **kwargs: Any) -> Self:
        self._set.update(values or {}, **kwargs)
        return self

    def statement(self):
        return self._apply_where(update(self._table).values(self._set))

    async def exec(self) -> int:
        return await self._require_executor().execute(self.statement())


class DeleteQuery(_WhereQuery):
    def statement(self):
        return self._apply_where(delete(self._table))

    async def exec(self) -> int:
        return await self._require_executor().execute(self.statement())
