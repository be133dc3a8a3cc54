"""Retry utilities for webhook storage operations.

Qdrant writes for deliveries, endpoints and dead letters retry transient
network errors with exponential backoff. Client errors are not retried.
"""

from __future__ import annotations

import logging

import httpx
from qdrant_client.http.exceptions import UnexpectedResponse
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

STORAGE_ATTEMPTS = 3

TRANSIENT_ERRORS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    UnexpectedResponse,
)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log every failed storage attempt that is about to be retried."""
    name = retry_state.fn.__name__ if retry_state.fn else "unknown"
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying storage operation %s after attempt %d/%d: %s",
        name,
        retry_state.attempt_number,
        STORAGE_ATTEMPTS,
        error,
    )


qdrant_retry = retry(
    stop=stop_after_attempt(STORAGE_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    before_sleep=_log_retry,
    reraise=True,
)
