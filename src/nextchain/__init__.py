"""nextchain - Lazy chain-of-responsibility requests and middleware dispatch."""

import logging

from nextchain._chain import DEFAULT_FAMILY, ChainFamily, ChainNode
from nextchain._config import Settings, configure_logging
from nextchain._deferred import SettlableFuture
from nextchain._errors import (
    InvalidFutureError,
    InvalidMiddlewareError,
    InvalidStateError,
    NextChainError,
    ProducerAlreadySetError,
)
from nextchain._middleware import (
    MiddlewareDispatcher,
    TaggedHandler,
    error_handler,
    handler,
)
from nextchain._types import (
    ErrorMiddleware,
    Middleware,
    NextFunction,
    Observer,
    Pending,
    Receiver,
    Settled,
    Teardown,
)

logging.getLogger("nextchain").addHandler(logging.NullHandler())

__all__ = [
    "ChainNode",
    "ChainFamily",
    "DEFAULT_FAMILY",
    "SettlableFuture",
    "MiddlewareDispatcher",
    "TaggedHandler",
    "handler",
    "error_handler",
    "Observer",
    "Receiver",
    "Teardown",
    "Middleware",
    "ErrorMiddleware",
    "NextFunction",
    "Settled",
    "Pending",
    "NextChainError",
    "InvalidStateError",
    "ProducerAlreadySetError",
    "InvalidMiddlewareError",
    "InvalidFutureError",
    "Settings",
    "configure_logging",
]
__version__ = "0.0.1"
