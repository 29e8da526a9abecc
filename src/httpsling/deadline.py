"""Request-scoped cancellation and timeout token.

A Deadline travels with a materialized request through the sender chain. The
byte sender caps its socket timeouts by the remaining time, and the retry
decorator waits on the deadline instead of sleeping so that a cancellation or
expiry wakes the waiting thread immediately.
"""

from __future__ import annotations

import math
import threading
import time

from httpsling.errors import CancellationError

__all__ = ["Deadline"]


class Deadline:
    """Cancellation token with an optional absolute expiry.

    Parameters
    ----------
    timeout_s : float | None, optional
        Seconds from now until expiry. None means the deadline never expires
        on its own and only fires on :meth:`cancel`. Defaults to None.

    Notes
    -----
    Instances are safe to share between threads. Waiting blocks only the
    calling thread.
    """

    def __init__(self, timeout_s: float | None = None) -> None:
        self._expires_at = math.inf if timeout_s is None else time.monotonic() + timeout_s
        self._cancelled = threading.Event()
        self._reason = "request cancelled"

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        """Return a deadline expiring ``seconds`` from now."""
        return cls(timeout_s=seconds)

    @classmethod
    def never(cls) -> Deadline:
        """Return a deadline that only fires when cancelled."""
        return cls()

    def cancel(self, reason: str = "request cancelled") -> None:
        """Fire the deadline now, waking any thread blocked in :meth:`wait`."""
        self._reason = reason
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self._expires_at

    @property
    def done(self) -> bool:
        """True once the deadline was cancelled or has expired."""
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Return seconds left, 0.0 when done, or None when unbounded."""
        if self.cancelled:
            return 0.0
        if math.isinf(self._expires_at):
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def error(self) -> CancellationError:
        """Build the CancellationError describing why the deadline fired."""
        if self.cancelled:
            return CancellationError(self._reason)
        return CancellationError("deadline exceeded")

    def raise_if_done(self) -> None:
        """Raise CancellationError if the deadline has fired.

        Raises
        ------
        CancellationError
            If the deadline was cancelled or has expired.
        """
        if self.done:
            raise self.error()

    def wait(self, seconds: float) -> bool:
        """Block for up to ``seconds``, returning early if the deadline fires.

        Parameters
        ----------
        seconds : float
            Maximum time to block.

        Returns
        -------
        bool
            True if the deadline fired before or during the wait, False if the
            full duration elapsed.
        """
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._cancelled.wait(remaining)
            return True
        if self._cancelled.wait(max(0.0, seconds)):
            return True
        return self.done
