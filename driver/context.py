"""Per-request cancellation and deadline handling."""

import threading
import time
from typing import Optional

from driver.exceptions import OperationCancelledError


class RequestContext:
    """
    Cancellation token passed through every driver operation.

    The driver checks the context before each metadata or object store
    step; it performs no compensating cleanup when the context fires.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check(self) -> None:
        """
        Raises:
            OperationCancelledError: If cancelled or past the deadline
        """
        if self._cancelled.is_set():
            raise OperationCancelledError("operation cancelled")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise OperationCancelledError("deadline exceeded")


def check_context(ctx: Optional[RequestContext]) -> None:
    if ctx is not None:
        ctx.check()
