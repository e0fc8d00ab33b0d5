"""Express-style middleware chain with a separate error track."""

from __future__ import annotations

import inspect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Generic, Literal, Optional, TypeVar

from nextchain._errors import InvalidMiddlewareError, InvalidStateError
from nextchain._types import ErrorMiddleware, Middleware, Observer, Receiver, Teardown

ReqT = TypeVar("ReqT")
ResT = TypeVar("ResT")

_logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Handler kinds
# ---------------------------------------------------------------------------

HandlerKind = Literal["normal", "error"]

NORMAL: HandlerKind = "normal"
ERROR: HandlerKind = "error"

_ARITY_KINDS: dict[int, HandlerKind] = {3: NORMAL, 4: ERROR}


@dataclass(frozen=True)
class TaggedHandler:
    """A handler registered with an explicit kind, bypassing signature checks."""

    kind: HandlerKind
    fn: Callable[..., Optional[Teardown]]


def handler(fn: Middleware) -> TaggedHandler:
    """Tag ``fn`` as a normal middleware ``(req, res, next)``."""
    return TaggedHandler(NORMAL, fn)


def error_handler(fn: ErrorMiddleware) -> TaggedHandler:
    """Tag ``fn`` as an error middleware ``(err, req, res, next)``."""
    return TaggedHandler(ERROR, fn)


def _close(req: Any, res: Any, next: Callable[..., None]) -> None:
    return None


def _close_error(err: BaseException, req: Any, res: Any, next: Callable[..., None]) -> None:
    return None


# ---------------------------------------------------------------------------
# MiddlewareDispatcher
# ---------------------------------------------------------------------------

class MiddlewareDispatcher(Generic[ReqT, ResT]):
    """Drives a request through ordered middlewares, express style.

    Usage::

        dispatcher = MiddlewareDispatcher()

        @dispatcher.middleware
        def authenticate(req, res, next):
            if not req.get("user"):
                next(PermissionError("anonymous"))
            else:
                next()

        @dispatcher.middleware
        def reply(req, res, next):
            res.next({"ok": True})
            return res.complete

        @dispatcher.middleware
        def on_error(err, req, res, next):
            res.error(err)
            return res.complete

        teardown = dispatcher.handle({"user": "ann"}, observer)

    Once ``next(err)`` is called, only error middlewares run for the rest of
    the execution. Callables returned by middlewares are collected and run in
    collection order by the teardown returned from :meth:`handle`.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger
        self._middlewares: list[Middleware] = []
        self._error_middlewares: list[ErrorMiddleware] = []

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def use(self, *middlewares: Callable[..., Optional[Teardown]] | TaggedHandler) -> MiddlewareDispatcher[ReqT, ResT]:
        """Register middlewares and error middlewares in the given order.

        Plain callables are classified by :meth:`classify`; tagged handlers
        (see :func:`handler` and :func:`error_handler`) keep their kind.

        Raises:
            InvalidMiddlewareError: If a value is neither kind.
        """
        for fn in middlewares:
            if isinstance(fn, TaggedHandler):
                kind: HandlerKind | None = fn.kind
                fn = fn.fn
            else:
                kind = self.classify(fn)

            if kind == NORMAL:
                self._middlewares.append(fn)
            elif kind == ERROR:
                self._error_middlewares.append(fn)
            else:
                self._logger.error("Middleware function is not valid: %r", fn)
                raise InvalidMiddlewareError(fn)

        return self

    def use_handler(self, *middlewares: Middleware) -> MiddlewareDispatcher[ReqT, ResT]:
        """Register normal middlewares without inspecting their signature."""
        return self.use(*(handler(fn) for fn in middlewares))

    def use_error_handler(self, *middlewares: ErrorMiddleware) -> MiddlewareDispatcher[ReqT, ResT]:
        """Register error middlewares without inspecting their signature."""
        return self.use(*(error_handler(fn) for fn in middlewares))

    def middleware(self, fn: Callable) -> Callable:
        """Register ``fn`` via :meth:`use` and return it unchanged.

        Works both as a decorator and as a plain function call::

            @dispatcher.middleware
            def log_request(req, res, next):
                print(req)
                next()
        """
        self.use(fn)
        return fn

    def classify(self, fn: Any) -> HandlerKind | None:
        """Kind of ``fn`` derived from its required positional parameters.

        Three parameters make a middleware, four an error middleware.
        Returns ``None`` for anything else.
        """
        if not callable(fn):
            return None
        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError):
            return None

        arity = 0
        for param in signature.parameters.values():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if param.default is not param.empty:
                continue
            if param.kind == param.KEYWORD_ONLY:
                return None
            arity += 1
        return _ARITY_KINDS.get(arity)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def handle(self, request: ReqT, response: ResT) -> Teardown | None:
        """Start an execution of ``request``.

        Middlewares registered after this call do not take part in it.

        Returns:
            A function running the collected teardowns, or ``None`` when no
            middleware returned one.

        Raises:
            InvalidStateError: If no middleware is registered.
        """
        if not self._middlewares:
            self._logger.error("Register middlewares first using .use method")
            raise InvalidStateError()

        middlewares: list[Middleware] = [*self._middlewares, _close]
        error_middlewares: list[ErrorMiddleware] = [*self._error_middlewares, _close_error]

        teardowns: deque[Teardown] = deque()
        index = 0
        error_index = 0
        error: BaseException | None = None

        def next_fn(err: BaseException | None = None) -> None:
            nonlocal index, error_index, error
            if err is not None:
                error = err

            if error is not None:
                if error_index >= len(error_middlewares):
                    self._logger.debug("Error middleware chain is already closed")
                    return
                fn = error_middlewares[error_index]
                error_index += 1
                value = fn(error, request, response, next_fn)
            else:
                if index >= len(middlewares):
                    self._logger.debug("Middleware chain is already closed")
                    return
                fn = middlewares[index]
                index += 1
                value = fn(request, response, next_fn)

            if callable(value):
                teardowns.append(value)

        def teardown() -> None:
            while teardowns:
                fn = teardowns.popleft()
                try:
                    fn()
                except Exception:
                    self._logger.exception("Teardown logic failed")

        next_fn()

        if teardowns:
            return teardown
        return None

    def as_receiver(self) -> Receiver:
        """Adapt this dispatcher to a receiver for :meth:`ChainNode.produce`.

        The chain node requesting production is passed as ``req`` and the
        observer as ``res``.
        """
        def receiver(observer: Observer[Any], request: Any) -> Teardown | None:
            return self.handle(request, observer)
        return receiver
