"""
RunContext - Immutable, cancellable context threaded through every action.

Carries three things:
- values: read-only key/value pairs (e.g. the hierarchical run path)
- cancel tokens: one per `with_cancel()` / `with_timeout()` in the ancestry
- deadline: monotonic time after which the context counts as expired

Actions are expected to check `cancelled()` / `error()` themselves; the
pipeline engine never interrupts a running action.
"""

import dataclasses
import threading
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Optional, Tuple

from railway.utils.exceptions import ContextCancelledError, DeadlineExceededError


@dataclass(frozen=True)
class RunContext:
    """
    Frozen context object passed from action to action.

    Derivation never mutates the parent: `with_value`, `with_cancel` and
    `with_timeout` return new contexts that share the parent's tokens.
    """

    values: MappingProxyType = field(default_factory=lambda: MappingProxyType({}))
    deadline: Optional[float] = None
    tokens: Tuple[threading.Event, ...] = ()
    timeout_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        # Coerce plain dict so mutation is a hard runtime error
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @classmethod
    def background(cls) -> "RunContext":
        """Empty root context: never cancelled, no deadline."""
        return cls()

    def with_value(self, key: str, value: Any) -> "RunContext":
        """Return a child context with `key` bound to `value`."""
        values = dict(self.values)
        values[key] = value
        return dataclasses.replace(self, values=MappingProxyType(values))

    def value(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    def with_cancel(self) -> Tuple["RunContext", Callable[[], None]]:
        """
        Derive a cancellable child context.

        Returns:
            Tuple of (child_context, cancel). Calling `cancel` cancels the
            child and everything derived from it, but not the parent.
        """
        token = threading.Event()
        child = dataclasses.replace(self, tokens=self.tokens + (token,))
        return child, token.set

    def with_timeout(self, seconds: float) -> Tuple["RunContext", Callable[[], None]]:
        """
        Derive a child context that expires after `seconds`.

        The earlier of the parent's deadline and the new one wins.
        """
        child, cancel = self.with_cancel()
        deadline = time.monotonic() + seconds
        if child.deadline is not None and child.deadline <= deadline:
            return child, cancel
        return dataclasses.replace(child, deadline=deadline, timeout_seconds=seconds), cancel

    def cancelled(self) -> bool:
        return self.error() is not None

    def error(self) -> Optional[ContextCancelledError]:
        """
        Why this context is done, or None while it is still live.

        Explicit cancellation takes precedence over an expired deadline.
        """
        if any(token.is_set() for token in self.tokens):
            return ContextCancelledError()
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return DeadlineExceededError(timeout_seconds=self.timeout_seconds)
        return None

    def raise_if_cancelled(self) -> None:
        err = self.error()
        if err is not None:
            raise err
