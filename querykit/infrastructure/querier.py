"""Querier — statement builder factory that prefers the ambient transaction.

Invariants:
    - Each factory looks the transaction up on every call; nothing is cached
    - With an ambient transaction the builder runs on it, otherwise on the base Database
    - No validation, no side effects beyond building the builder
"""

from typing import Protocol

from querykit.core.request_context import RequestContext
from querykit.infrastructure.database import Database
from querykit.infrastructure.query_builder import (
    DeleteQuery, InsertQuery, SelectQuery, UpdateQuery,
)
from querykit.infrastructure.transactions import tx_from_context


class QuerierLike(Protocol):
    def new_select_query(self, ctx: RequestContext | None) -> SelectQuery: ...
    def new_insert_query(self, ctx: RequestContext | None) -> InsertQuery: ...
    def new_update_query(self, ctx: RequestContext | None) -> UpdateQuery: ...
    def new_delete_query(self, ctx: RequestContext | None) -> DeleteQuery: ...


class Querier:
    """Repositories hold a Querier instead of branching on transaction presence."""

    def __init__(self, db: Database):
        self.db = db

    def new_select_query(self, ctx: RequestContext | None) -> SelectQuery:
        tx = tx_from_context(ctx)
        if tx is not None:
            return tx.new_select()
        return self.db.new_select()

    def new_insert_query(self, ctx: RequestContext | None) -> InsertQuery:
        tx = tx_from_context(ctx)
        if tx is not None:
            return tx.new_insert()
        return self.db.new_insert()

    def new_update_query(self, ctx: RequestContext | None) -> UpdateQuery:
        tx = tx_from_context(ctx)
        if tx is not None:
            return tx.new_update()
        return self.db.new_update()

    def new_delete_query(self, ctx: RequestContext | None) -> DeleteQuery:
        tx = tx_from_context(ctx)
        if tx is not None:
            return tx.new_delete()
        return self.db.new_delete()
