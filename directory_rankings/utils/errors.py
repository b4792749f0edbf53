"""Exception types and store retry policy."""

from __future__ import annotations

import logging

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)


class DirectoryError(Exception):
    """Base class for directory ranking errors."""


class DataError(DirectoryError):
    """Recoverable data problem: missing profile, coordinates or ratings."""


class StoreError(DirectoryError):
    """A read or write against the directory store failed."""


class TransientStoreError(StoreError):
    """Store failure that is safe to retry (lock timeout, dropped connection)."""


class ConfigurationError(DirectoryError):
    """Unknown category or scope supplied to a manual invocation."""


def store_retry(max_attempts: int = 3, wait: float = 0.5, logger: logging.Logger | None = None):
    """Retry decorator for idempotent store calls.

    Only TransientStoreError is retried; the last error is re-raised once
    attempts are exhausted.
    """
    kwargs = {}
    if logger is not None:
        kwargs["before_sleep"] = before_sleep_log(logger, logging.WARNING)
    return retry(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=wait, min=0, max=max(wait * 8, 0)),
        retry=retry_if_exception_type(TransientStoreError),
        reraise=True,
        **kwargs,
    )
