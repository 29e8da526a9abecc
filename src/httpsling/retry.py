"""Tenacity-based retry decorator for senders.

RetrySender wraps any :class:`~httpsling.types.Sender` and exposes the same
contract. Each call runs a tenacity ``Retrying`` loop whose phases map onto
``Sending -> Waiting -> Done``:

- before every attempt the request deadline is checked;
- a result the retry policy marks TERMINAL, or the final allowed attempt,
  ends the loop and is returned unchanged;
- otherwise the backoff strategy picks a wait, the deadline is checked again,
  and the wait blocks on the deadline so cancellation abandons it at once.

Attempt counting is explicit: ``RetryOptions.max_attempts`` is the number of
retries after the first send, so ``total_sends == max_attempts + 1``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from tenacity import RetryCallState, Retrying, retry_if_result, stop_after_attempt
from tenacity.wait import wait_base

from httpsling.errors import (
    CancellationError,
    InvalidSchemeError,
    TlsCertificateError,
    TooManyRedirectsError,
)
from httpsling.logging import get_logger
from httpsling.sender import SendResult
from httpsling.settings import HttpSettings
from httpsling.types import RetryDecision

if TYPE_CHECKING:
    from collections.abc import Callable

    from httpsling.deadline import Deadline
    from httpsling.sender import OutgoingRequest
    from httpsling.types import BackoffStrategy, RetryPolicy, Sender

__all__ = [
    "RetryOptions",
    "RetrySender",
    "default_retry_options",
    "default_retry_policy",
    "exponential_backoff",
    "full_jitter_backoff",
]

logger = get_logger(__name__)

_TERMINAL_ERRORS = (
    TooManyRedirectsError,
    InvalidSchemeError,
    TlsCertificateError,
    CancellationError,
)


def default_retry_policy(result: SendResult) -> RetryDecision:
    """Classify a send outcome.

    Redirect-limit, scheme, certificate and cancellation errors are terminal;
    any other transport error is retried. Status 429, statuses outside
    100-599 and statuses >= 500 are retried. Everything else is terminal.
    """
    if result.error is not None:
        if isinstance(result.error, _TERMINAL_ERRORS):
            return RetryDecision.TERMINAL
        return RetryDecision.RETRY
    status = result.status_code
    if status is None:
        return RetryDecision.RETRY
    if status == 429 or not 100 <= status <= 599 or status >= 500:
        return RetryDecision.RETRY
    return RetryDecision.TERMINAL


def exponential_backoff(attempt: int, min_wait: float, max_wait: float) -> float:
    """Return ``min(max_wait, min_wait * 2**attempt)``."""
    return min(max_wait, min_wait * (2**attempt))


def full_jitter_backoff(attempt: int, min_wait: float, max_wait: float) -> float:
    """Return a wait drawn uniformly from ``[0, exponential_backoff(...)]``.

    Jitter does not need cryptographic randomness; it only spreads retries
    from concurrent callers.
    """
    return random.uniform(0.0, exponential_backoff(attempt, min_wait, max_wait))  # noqa: S311


@dataclass(frozen=True)
class RetryOptions:
    """Retry configuration.

    Attributes
    ----------
    max_attempts : int
        Retries allowed after the first send.
    min_wait : float
        Lower wait bound passed to the backoff strategy (seconds).
    max_wait : float
        Upper wait bound passed to the backoff strategy (seconds).
    policy : RetryPolicy
        Decides whether a send outcome is retried.
    backoff : BackoffStrategy
        Computes the wait before each retry.
    """

    max_attempts: int = 4
    min_wait: float = 1.0
    max_wait: float = 30.0
    policy: RetryPolicy = field(default=default_retry_policy)
    backoff: BackoffStrategy = field(default=exponential_backoff)

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            msg = "max_attempts must be >= 0"
            raise ValueError(msg)
        if self.min_wait < 0 or self.max_wait < self.min_wait:
            msg = "wait bounds must satisfy 0 <= min_wait <= max_wait"
            raise ValueError(msg)

    @property
    def total_sends(self) -> int:
        """Worst-case number of sends, counting the first one."""
        return self.max_attempts + 1

    @classmethod
    def from_settings(cls, settings: HttpSettings) -> RetryOptions:
        return cls(
            max_attempts=settings.retry_max_attempts,
            min_wait=settings.retry_min_wait_s,
            max_wait=settings.retry_max_wait_s,
        )

    def with_overrides(self, **overrides: object) -> RetryOptions:
        """Return a copy with ``overrides`` applied; None values are ignored.

        Raises
        ------
        TypeError
            If an override names an unknown option.
        """
        unexpected = set(overrides) - {"max_attempts", "min_wait", "max_wait", "policy", "backoff"}
        if unexpected:
            msg = f"Unexpected retry option(s): {sorted(unexpected)}"
            raise TypeError(msg)
        changes = {key: value for key, value in overrides.items() if value is not None}
        if not changes:
            return self
        return replace(self, **changes)  # type: ignore[arg-type]


class _BackoffWait(wait_base):
    """Adapts a BackoffStrategy to tenacity's wait protocol (attempt counted from 0)."""

    def __init__(self, options: RetryOptions) -> None:
        self._options = options

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number - 1
        return float(self._options.backoff(attempt, self._options.min_wait, self._options.max_wait))


def _cancellable_sleep(deadline: Deadline) -> Callable[[float], None]:
    def _sleep(seconds: float) -> None:
        if deadline.wait(seconds):
            raise deadline.error()

    return _sleep


class RetrySender:
    """Sender decorator adding bounded, policy-driven retries.

    Parameters
    ----------
    inner : Sender
        Sender performing each physical attempt.
    options : RetryOptions | None, optional
        Retry configuration. Defaults to ``RetryOptions()``.
    """

    def __init__(self, inner: Sender, options: RetryOptions | None = None) -> None:
        self.inner = inner
        self.options = options or RetryOptions()

    def _build_retrying(self, deadline: Deadline) -> Retrying:
        """Create a tenacity Retrying bound to one request's deadline."""
        policy = self.options.policy

        def _before_attempt(retry_state: RetryCallState) -> None:
            deadline.raise_if_done()

        def _before_wait(retry_state: RetryCallState) -> None:
            outcome = retry_state.outcome
            result = outcome.result() if outcome is not None and not outcome.failed else None
            upcoming = retry_state.next_action.sleep if retry_state.next_action else 0.0
            logger.warning(
                "Retrying HTTP request",
                extra={
                    "operation": "http.retry",
                    "attempt": retry_state.attempt_number,
                    "wait_s": upcoming,
                    "status_code": result.status_code if result else None,
                    "error_type": type(result.error).__name__ if result and result.error else None,
                },
            )
            deadline.raise_if_done()

        return Retrying(
            retry=retry_if_result(lambda result: policy(result) is RetryDecision.RETRY),
            stop=stop_after_attempt(self.options.total_sends),
            wait=_BackoffWait(self.options),
            sleep=_cancellable_sleep(deadline),
            before=_before_attempt,
            before_sleep=_before_wait,
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),  # type: ignore[union-attr]
            reraise=True,
        )

    def send(self, request: OutgoingRequest) -> SendResult:
        """Send with retries.

        Parameters
        ----------
        request : OutgoingRequest
            Materialized request; its deadline bounds every attempt and wait.

        Returns
        -------
        SendResult
            The first terminal result, the last result once retries are
            exhausted, or a result carrying CancellationError (with the last
            response and bytes) when the deadline fires.
        """
        last: SendResult | None = None

        def _attempt() -> SendResult:
            nonlocal last
            last = self.inner.send(request)
            return last

        try:
            return self._build_retrying(request.deadline)(_attempt)
        except CancellationError as exc:
            logger.warning(
                "HTTP request cancelled",
                extra={"operation": "http.retry", "status": "cancelled", "error_detail": str(exc)},
            )
            if last is None:
                return SendResult(response=None, error=exc)
            return SendResult(response=last.response, content=last.content, error=exc)


def default_retry_options(settings: HttpSettings | None = None) -> RetryOptions:
    """Build RetryOptions from settings (or the environment defaults)."""
    return RetryOptions.from_settings(settings or HttpSettings())
