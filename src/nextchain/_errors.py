"""Exceptions raised by nextchain on usage-contract violations."""

from __future__ import annotations


class NextChainError(Exception):
    """Base exception for all nextchain errors."""


class InvalidStateError(NextChainError):
    """Raised when an operation is not allowed in the current state.

    Examples: dispatching a middleware chain with no handler registered.
    """

    def __init__(self, message: str = "invalid_state") -> None:
        super().__init__(message)


class ProducerAlreadySetError(InvalidStateError):
    """Raised when a second receiver is attached to the same chain node."""


class InvalidMiddlewareError(NextChainError):
    """Raised when a value cannot be registered as (error) middleware.

    Attributes:
        middleware: The rejected value.
    """

    def __init__(self, middleware: object = None) -> None:
        self.middleware = middleware
        super().__init__("invalid_middleware")


class InvalidFutureError(NextChainError):
    """Raised when the running event loop hands out a future that cannot be settled."""

    def __init__(self) -> None:
        super().__init__("invalid_promise")
