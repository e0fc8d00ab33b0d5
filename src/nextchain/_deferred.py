"""Write-once future with external settle operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Generator, Generic, TypeVar

from nextchain._errors import InvalidFutureError

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class SettlableFuture(Generic[T]):
    """A one-shot container whose value is settled from the outside.

    Only the first ``fulfill``/``fail`` takes effect; later calls are logged
    and ignored. Awaiting the instance suspends until it is settled::

        deferred = SettlableFuture()
        loop.call_soon(deferred.fulfill, 1)
        assert await deferred == 1

    The underlying ``asyncio.Future`` is created on first await, so instances
    can be built outside of a running event loop.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger
        self._settled = False
        self._outcome: tuple[bool, Any] | None = None
        self._future: asyncio.Future | None = None

    @property
    def settled(self) -> bool:
        return self._settled

    @property
    def future(self) -> asyncio.Future:
        """The future bound to the running loop, created on first access."""
        if self._future is None:
            future = asyncio.get_running_loop().create_future()
            if not (callable(getattr(future, "set_result", None))
                    and callable(getattr(future, "set_exception", None))):
                self._logger.error("%s - invalid future implementation", type(self).__name__)
                raise InvalidFutureError()
            self._future = future
            self._deliver()
        return self._future

    def fulfill(self, value: T) -> None:
        if self._claim():
            self._outcome = (True, value)
            self._deliver()

    def fail(self, error: BaseException) -> None:
        if self._claim():
            self._outcome = (False, error)
            self._deliver()

    def __await__(self) -> Generator[Any, None, T]:
        # shield: a cancelled awaiter must not cancel the value for the others
        return asyncio.shield(self.future).__await__()

    def _claim(self) -> bool:
        if self._settled:
            self._logger.warning(
                "%s - cannot be fulfilled/failed multiple times.", type(self).__name__
            )
            return False
        self._settled = True
        return True

    def _deliver(self) -> None:
        if self._future is None or self._outcome is None or self._future.done():
            return
        ok, payload = self._outcome
        if ok:
            self._future.set_result(payload)
        else:
            self._future.set_exception(payload)
