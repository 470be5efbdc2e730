"""Ambient Transactions — share one transaction across a call chain via RequestContext.

Invariants:
    - At most one transaction per context chain; the frame that begins it (root) is the only
      frame that commits or rolls it back, exactly once
    - Nested in_tx frames run the unit of work with the caller's context and nothing else
    - Root frame: success -> commit (failure raised as-is, never retried);
      Exception -> rollback, original re-raised; failed rollback -> TransactionRollbackError
      chained from the original
    - Root frame: abort (BaseException that is not Exception) -> rollback, abort re-raised
      unchanged; never converted into an ordinary error
    - A wrong-typed value in the context slot reads as "no transaction"

Design Decisions:
    - Explicit RequestContext over contextvars: the ambient transaction is visible exactly to
      the calls it is passed to (ADR: independent call chains stay isolated)
    - Exception vs BaseException split mirrors error vs fatal abort: cancellation and
      interpreter exits must still reach the caller as themselves
"""

from typing import Awaitable, Callable, Protocol, TypeVar

from querykit.core.errors import TransactionRollbackError
from querykit.core.request_context import RequestContext, background
from querykit.infrastructure.database import Transaction

T = TypeVar("T")


class _TxKey:
    __slots__ = ()

    def __repr__(self) -> str:
        return "TX_KEY"


TX_KEY = _TxKey()


class TxBeginner(Protocol):
    async def begin_tx(self) -> Transaction: ...


def tx_from_context(ctx: RequestContext | None) -> Transaction | None:
    """Ambient transaction, or None when absent or the slot holds something else."""
    if ctx is None:
        return None
    tx = ctx.value(TX_KEY)
    if not isinstance(tx, Transaction):
        return None
    return tx


def tx_to_context(ctx: RequestContext | None, tx: Transaction) -> RequestContext:
    """Derived context carrying tx; ctx itself is left untouched."""
    if ctx is None:
        ctx = background()
    return ctx.with_value(TX_KEY, tx)


async def in_tx(
    ctx: RequestContext | None,
    db: TxBeginner,
    fn: Callable[[RequestContext], Awaitable[T]],
) -> T:
    """Run fn inside the ambient transaction, beginning (and finishing) one if there is none."""
    if ctx is None:
        ctx = background()

    if tx_from_context(ctx) is not None:
        return await fn(ctx)

    tx = await db.begin_tx()
    tx_ctx = tx_to_context(ctx, tx)

    try:
        result = await fn(tx_ctx)
    except Exception as err:
        try:
            await tx.rollback()
        except Exception as rollback_err:
            tx.log.error(
                f"Transaction rollback failed: {rollback_err}",
                extra={"operation": "rollback"},
            )
            raise TransactionRollbackError(err, rollback_err) from err
        raise
    except BaseException:
        await _rollback_quietly(tx)
        raise

    await tx.commit()
    return result


async def _rollback_quietly(tx: Transaction) -> None:
    try:
        await tx.rollback()
    except Exception as e:
        tx.log.error(f"Rollback after abort failed: {e}", extra={"operation": "rollback"})
