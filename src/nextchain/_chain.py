"""Lazy chain-of-responsibility requests executed on asyncio."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from nextchain._deferred import SettlableFuture
from nextchain._errors import ProducerAlreadySetError
from nextchain._types import (
    FailureHandler,
    Operator,
    Pending,
    Receiver,
    Settled,
    Step,
    SuccessHandler,
    Teardown,
)

T = TypeVar("T")

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# ChainFamily
# ---------------------------------------------------------------------------

def _is_same_kind(node: ChainNode[Any], value: Any) -> bool:
    return isinstance(value, type(node))


def _blank_instance(node: ChainNode[Any]) -> ChainNode[Any]:
    cls = type(node)
    return cls.__new__(cls)


@dataclass(frozen=True)
class ChainFamily:
    """Decides which values are further requests and how nodes are cloned.

    Pass a custom family to :class:`ChainNode` to let structurally related
    request types share one receiver::

        family = ChainFamily(
            name="api",
            predicate=lambda node, value: isinstance(value, ApiRequest),
        )
        root = ApiRequest(family=family)

    Attributes:
        name: Informational label.
        predicate: ``(node, value) -> bool``. Defaults to
            ``isinstance(value, type(node))``.
        factory: ``(node) -> ChainNode`` returning a blank instance used by
            :meth:`ChainNode.lift`. Defaults to an uninitialised instance of
            ``type(node)`` so subclasses keep their behaviour.
    """

    name: str = "default"
    predicate: Callable[[ChainNode[Any], Any], bool] = _is_same_kind
    factory: Callable[[ChainNode[Any]], ChainNode[Any]] = _blank_instance

    def is_next(self, node: ChainNode[Any], value: Any) -> bool:
        return bool(self.predicate(node, value))

    def create(self, node: ChainNode[Any]) -> ChainNode[Any]:
        return self.factory(node)


DEFAULT_FAMILY = ChainFamily()


# ---------------------------------------------------------------------------
# Observer handed to receivers
# ---------------------------------------------------------------------------

class _RunObserver:
    """Settles one production run; every value is forwarded, the first one wins."""

    def __init__(
        self,
        result: SettlableFuture[Any],
        on_complete: Optional[Callable[[], None]] = None,
    ) -> None:
        self._result = result
        self._on_complete = on_complete

    def next(self, value: Any) -> None:
        self._result.fulfill(value)

    def error(self, err: BaseException) -> None:
        self._result.fail(err)

    def complete(self) -> None:
        if self._on_complete is not None:
            self._on_complete()


# ---------------------------------------------------------------------------
# ChainNode
# ---------------------------------------------------------------------------

class ChainNode(Generic[T]):
    """A request whose value is produced lazily by an attached receiver.

    Usage::

        flow = ChainNode().chain(lambda v: v + 1).chain(None, lambda e: 0)

        def receiver(observer, request):
            observer.next(1)
            return observer.complete

        flow.produce(receiver)
        assert await flow.to_promise() == 2

    ``chain()`` never mutates the node it is called on. Nothing runs until a
    consumer calls :meth:`to_promise`, and every call starts an independent
    execution unless the node was made multicast with :meth:`share`.
    """

    def __init__(
        self,
        family: ChainFamily | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._setup(None, family or DEFAULT_FAMILY, logger or _logger)

    def _setup(
        self,
        operator: Operator | None,
        family: ChainFamily,
        logger: logging.Logger,
    ) -> None:
        self.operator = operator
        self.family = family
        self._logger = logger
        self._has_receiver = False
        self._receiver_slot: SettlableFuture[Receiver] = SettlableFuture(logger)
        self._shared = False
        self._shared_run: asyncio.Future | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def has_receiver(self) -> bool:
        return self._has_receiver

    @property
    def is_shared(self) -> bool:
        return self._shared

    async def to_promise(self) -> T:
        """Start an execution and return its end result.

        Waits for a receiver to be registered, runs this node and the
        requests returned by its chained handlers through it, then waits
        for the receiver to call ``observer.complete()``.

        Raises:
            Exception: Whatever was passed to ``observer.error()`` and not
                recovered by a failure handler.
        """
        if self._shared:
            if self._shared_run is None:
                self._shared_run = asyncio.ensure_future(self._execute())
            return await asyncio.shield(self._shared_run)
        return await self._execute()

    def chain(
        self,
        on_success: SuccessHandler | None = None,
        on_failure: FailureHandler | None = None,
    ) -> ChainNode[Any]:
        """Return a clone extended with a success and/or a failure handler.

        A handler may return a plain value, an awaitable, or another request
        (see :meth:`is_next`). Requests are produced by the same receiver and
        their result is passed on instead. A missing handler lets the value
        (or the error) through unchanged; a failure handler recovers the chain.
        """
        upstream = self.operator

        async def operator(receiver: Receiver, pending: Awaitable[Any]) -> Any:
            if upstream is not None:
                pending = upstream(receiver, pending)

            try:
                value = await pending
            except Exception as exc:
                if on_failure is None:
                    raise
                handler, argument = on_failure, exc
            else:
                if on_success is None:
                    return value
                handler, argument = on_success, value

            return await self._adopt(receiver, handler, argument)

        return self.lift(operator)

    def share(self) -> ChainNode[T]:
        """Return a clone whose first execution is replayed to every consumer."""
        if self._shared:
            return self

        clone = self.lift()
        clone._shared = True
        return clone

    def produce(self, receiver: Receiver) -> None:
        """Register the receiver which digests this node and its sub-requests.

        Registering does not start an execution.

        Raises:
            ProducerAlreadySetError: If a receiver is already registered.
        """
        if self._has_receiver:
            self._logger.error("%s - only one receiver can be set", type(self).__name__)
            raise ProducerAlreadySetError()

        self._has_receiver = True
        self._receiver_slot.fulfill(receiver)

    # ------------------------------------------------------------------
    # Extension points
    # ------------------------------------------------------------------

    def lift(self, operator: Operator | None = None) -> ChainNode[Any]:
        """Clone this node, keeping its operator unless a new one is given.

        The clone gets an empty receiver slot and is never shared.
        """
        clone = self.family.create(self)
        clone._setup(operator or self.operator, self.family, self._logger)
        return clone

    def is_next(self, value: Any) -> bool:
        """Whether ``value`` is a request to be produced rather than a result."""
        return self.family.is_next(self, value)

    async def produce_next(
        self,
        receiver: Receiver,
        request: Any,
        on_complete: Callable[[], None] | None = None,
    ) -> Any:
        """Run ``request`` through ``receiver`` once.

        A fresh observer is handed to the receiver. Errors raised by the
        receiver itself are logged and ignored. If ``request`` is a chain
        node with an operator, the emitted value goes through it. The
        teardown returned by the receiver runs once the result is settled.
        """
        result: SettlableFuture[Any] = SettlableFuture(self._logger)
        observer = _RunObserver(result, on_complete)

        teardown: Teardown | None = None
        try:
            teardown = receiver(observer, request)
        except Exception:
            self._logger.exception("%s - unhandled error in the given receiver", type(self).__name__)

        try:
            operator = request.operator if isinstance(request, ChainNode) else None
            if operator is not None:
                return await operator(receiver, result)
            return await result
        finally:
            if callable(teardown):
                self._run_teardown(teardown)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _execute(self) -> T:
        closed: SettlableFuture[None] = SettlableFuture(self._logger)
        receiver = await self._receiver_slot

        result = await self.produce_next(receiver, self, lambda: closed.fulfill(None))

        await closed
        return result

    async def _adopt(
        self,
        receiver: Receiver,
        handler: Callable[[Any], Any],
        argument: Any,
    ) -> Any:
        result = handler(argument)
        if inspect.isawaitable(result):
            result = await result

        step = self._classify(result)
        while isinstance(step, Pending):
            result = await self.produce_next(receiver, step.request)
            step = self._classify(result)
        return step.value

    def _classify(self, value: Any) -> Step:
        if self.is_next(value):
            return Pending(value)
        return Settled(value)

    def _run_teardown(self, teardown: Teardown) -> None:
        try:
            teardown()
        except Exception:
            self._logger.exception("%s - teardown logic failed", type(self).__name__)
