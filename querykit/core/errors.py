"""Error Hierarchy — typed, categorized exceptions for querykit failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Selector and Where construction never raise; only transaction and execution paths do
    - Wrapped driver errors stay reachable through __cause__ (raise ... from ...)
    - Aborts (BaseException that is not Exception) are never converted into these errors

Design Decisions:
    - Single hierarchy with QueryKitError base: callers catch one type at their boundary
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - Classification helpers walk the cause chain: callers don't care whether a driver
      error arrived raw or wrapped in DatabaseError
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError, NoResultFound

UNIQUE_VIOLATION_TEXT = "duplicate key value violates unique constraint"


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    DATABASE = "database"
    TRANSACTION = "transaction"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    tx_id: str | None = None
    statement: str | None = None
    debug_info: dict[str, Any] | None = None


class QueryKitError(Exception):
    """Base exception for all querykit errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()

    def to_dict(self) -> dict:
        """Convert to a structured error envelope for logs and API layers."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "tx_id": self.context.tx_id,
                    "statement": self.context.statement,
                },
            }
        }


# ─── Infrastructure Errors ───────────────────────────────────────

class DatabaseError(QueryKitError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context,
        )
        self.operation = operation


class TransactionRollbackError(QueryKitError):
    """Unit of work failed and rolling the transaction back failed too."""
    def __init__(
        self,
        error: BaseException,
        rollback_error: BaseException,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{error}: transaction rollback error: {rollback_error}",
            "TRANSACTION_ROLLBACK_ERROR", ErrorCategory.TRANSACTION,
            ErrorSeverity.CRITICAL, context,
        )
        self.error = error
        self.rollback_error = rollback_error


# ─── Classification ──────────────────────────────────────────────

def _cause_chain(err: BaseException | None):
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__


def is_constraint_error(err: BaseException) -> bool:
    """True for unique/foreign-key/check violations, raw or wrapped."""
    return any(
        isinstance(e, IntegrityError) or UNIQUE_VIOLATION_TEXT in str(e)
        for e in _cause_chain(err)
    )


def is_not_found_error(err: BaseException) -> bool:
    """True when a single-row fetch found nothing, raw or wrapped."""
    return any(isinstance(e, NoResultFound) for e in _cause_chain(err))
