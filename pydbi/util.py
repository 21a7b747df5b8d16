from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

import tenacity
from tenacity import (
    after_log,
    after_nothing,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)


def strtobool(val: str) -> bool:
    """Convert a string representation of truth to True or False.

    True values are 'y', 'yes', 't', 'true', 'on', and '1'; false values
    are 'n', 'no', 'f', 'false', 'off', and '0'.

    Raises:
        ValueError: If ``val`` is anything else.
    """
    val = val.lower()
    if val in ("y", "yes", "t", "true", "on", "1"):
        return True
    if val in ("n", "no", "f", "false", "off", "0"):
        return False
    raise ValueError(f"invalid truth value {val!r}")


class RetryConfig:
    """Retry policy for backend calls that fail with transient errors.

    Attributes:
        exceptions: Fragments of driver error messages that are worth retrying.
        attempt: Maximum number of attempts, including the first one.
        multiplier: Multiplier of the exponential backoff in seconds.
        max_delay: Upper bound in seconds of a single wait.
        exponential_base: Base of the exponential backoff.
    """

    def __init__(
        self,
        exceptions: Iterable[str] = (
            "database is locked",
            "database table is locked",
        ),
        attempt: int = 5,
        multiplier: float = 1,
        max_delay: float = 100,
        exponential_base: int = 2,
    ) -> None:
        self.exceptions = tuple(exceptions)
        self.attempt = attempt
        self.multiplier = multiplier
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    def is_retryable(self, error: BaseException) -> bool:
        message = str(error).lower()
        return any(e.lower() in message for e in self.exceptions)


def retry_call(
    func: Callable[..., Any],
    config: RetryConfig,
    logger: logging.Logger | None = None,
    *args,
    retry_on: type[BaseException] | tuple[type[BaseException], ...] = Exception,
    **kwargs,
) -> Any:
    """Call ``func`` and retry it while it raises a retryable error.

    Only exceptions that are instances of ``retry_on`` and whose message
    matches ``config.exceptions`` are retried; everything else propagates
    on the first attempt. The last error is re-raised once the attempts are
    exhausted.
    """
    retry = tenacity.Retrying(
        retry=retry_if_exception(
            lambda e: isinstance(e, retry_on) and config.is_retryable(e)
        ),
        stop=stop_after_attempt(config.attempt),
        wait=wait_exponential(
            multiplier=config.multiplier,
            max=config.max_delay,
            exp_base=config.exponential_base,
        ),
        after=after_log(logger, logging.DEBUG) if logger else after_nothing,
        reraise=True,
    )
    return retry(func, *args, **kwargs)
