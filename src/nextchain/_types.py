"""Shared types for chain nodes and middleware dispatchers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, Optional, Protocol, TypeVar, Union

if TYPE_CHECKING:
    from nextchain._chain import ChainNode

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)


class Observer(Protocol[T_contra]):
    """Settlement and completion capability handed to a receiver.

    ``next`` and ``error`` settle the pending value (first call wins);
    ``complete`` announces that all work of the run is finished.
    """

    def next(self, value: T_contra) -> None: ...

    def error(self, err: BaseException) -> None: ...

    def complete(self) -> None: ...


# A function which will be called at the end of an execution.
Teardown = Callable[[], None]

# Supplies the value of a request: ``receiver(observer, request)``.
Receiver = Callable[[Observer[Any], Any], Optional[Teardown]]

# Pipeline closure accumulated by ChainNode.chain().
Operator = Callable[[Receiver, Awaitable[Any]], Awaitable[Any]]

SuccessHandler = Callable[[Any], Any]
FailureHandler = Callable[[Exception], Any]

NextFunction = Callable[..., None]

# (request, response, next)
Middleware = Callable[[Any, Any, NextFunction], Optional[Teardown]]

# (error, request, response, next)
ErrorMiddleware = Callable[[BaseException, Any, Any, NextFunction], Optional[Teardown]]


# ---------------------------------------------------------------------------
# Outcome of a chained handler
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Settled(Generic[T]):
    """A final value: adopted as the result of the chained step."""

    value: T


@dataclass(frozen=True)
class Pending:
    """A further request which has to be produced before its result is adopted."""

    request: ChainNode[Any]


Step = Union[Settled[Any], Pending]
