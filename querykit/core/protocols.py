"""Boundary Protocols — contracts between the pure selector core and the statement builders.

Invariants:
    - Core NEVER imports from infrastructure — dependency arrows point inward only
    - Selectors only touch the builder through SelectQueryLike
    - Implementations provided by infrastructure.query_builder

Design Decisions:
    - Protocol over ABC: structural subtyping, test doubles need no inheritance
    - Builder methods return the builder: selectors chain calls and return the result
"""

from typing import Any, Callable, Protocol, TypeAlias


class SelectQueryLike(Protocol):
    """Structural contract for the mutable select builder selectors operate on."""

    def where(self, template: str, *args: Any) -> "SelectQueryLike": ...
    def where_group(
        self, joiner: str, fn: Callable[["SelectQueryLike"], "SelectQueryLike"],
    ) -> "SelectQueryLike": ...
    def where_deleted(self) -> "SelectQueryLike": ...
    def where_all_with_deleted(self) -> "SelectQueryLike": ...
    def column(self, *columns: str) -> "SelectQueryLike": ...
    def exclude_column(self, *columns: str) -> "SelectQueryLike": ...
    def limit(self, n: int) -> "SelectQueryLike": ...
    def offset(self, n: int) -> "SelectQueryLike": ...
    def order(self, *orders: str) -> "SelectQueryLike": ...
    def order_expr(self, expr: str) -> "SelectQueryLike": ...
    def distinct_on(self, *columns: str) -> "SelectQueryLike": ...


Selector: TypeAlias = Callable[[SelectQueryLike], SelectQueryLike]
