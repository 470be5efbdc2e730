"""Request Context — immutable request-scoped values threaded explicitly through call chains.

Invariants:
    - A RequestContext is never mutated: with_value() always returns a derived context
    - Deriving a context never changes what the parent (or sibling derivations) can see
    - Missing keys read as None

Design Decisions:
    - Explicit value over contextvars / thread-locals: independent call chains stay isolated
      and nested frames see exactly what their caller passed (ADR: no ambient globals)
    - MappingProxyType snapshot per derivation: read-only view, cheap to share
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class RequestContext:
    """Read-only bag of request-scoped values keyed by identity-compared sentinels."""
    values: Mapping[Any, Any] = field(default_factory=lambda: MappingProxyType({}))

    def value(self, key: Any) -> Any:
        return self.values.get(key)

    def with_value(self, key: Any, value: Any) -> "RequestContext":
        return RequestContext(MappingProxyType({**self.values, key: value}))


def background() -> RequestContext:
    """Fresh, empty root context."""
    return RequestContext()
