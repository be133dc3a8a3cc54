"""Retry scheduling for outbound webhook dispatch.

Drives the attempt loop for one dispatch: up to ``retry + 1`` attempts,
exponential backoff with jitter between them, success recording for
tracked endpoints, and a dead-letter entry once the budget is exhausted.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt

from hookrelay.exceptions import QueueUnavailableError
from hookrelay.logging import bind_context, unbind_context
from hookrelay.models import DispatchOptions
from hookrelay.signing import compute_idempotency_key

from .attempt import DeliveryOutcome, validate_method
from .backoff import DEFAULT_JITTER_MS, DEFAULT_MAX_MS, wait_backoff
from .queue import DispatchJob

if TYPE_CHECKING:
    from hookrelay.config import Settings

    from .attempt import DeliveryAttemptEngine
    from .dead_letter import DeadLetterStore
    from .queue import WorkQueue
    from .recorder import OutcomeRecorder

logger = logging.getLogger(__name__)

OptionsLike = DispatchOptions | Mapping[str, Any] | None


def _outcome_failed(outcome: DeliveryOutcome) -> bool:
    return not outcome.ok


def _last_outcome(retry_state: RetryCallState) -> DeliveryOutcome:
    """Return the final outcome instead of raising RetryError on exhaustion."""
    if retry_state.outcome is None:
        raise RuntimeError("Retry loop finished without an attempt outcome")
    result: DeliveryOutcome = retry_state.outcome.result()
    return result


class WebhookDispatcher:
    """Dispatches webhook events to endpoint URLs with retry.

    Handles:
    - Validating dispatch options once per call
    - Retrying failed attempts with exponential backoff and jitter
    - Recording outcomes for tracked endpoints
    - Dead-lettering dispatches that exhaust their retry budget
    - Pushing dispatches onto a work queue

    Example:
        ```python
        dispatcher = WebhookDispatcher(engine, recorder, dead_letters)

        ok = await dispatcher.dispatch_to(
            "order.completed",
            {"order_id": 1},
            "https://example.com/hooks",
            {"secret": "s3cret", "retry": 3},
        )
        ```
    """

    def __init__(
        self,
        engine: DeliveryAttemptEngine,
        recorder: OutcomeRecorder,
        dead_letters: DeadLetterStore,
        queue: WorkQueue | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        max_concurrent: int | None = None,
    ) -> None:
        """Initialize the webhook dispatcher.

        Args:
            engine: Performs single HTTP attempts.
            recorder: Writes delivery records for tracked dispatches.
            dead_letters: Stores dispatches that exhausted their retries.
            queue: Optional work queue for async dispatch.
            settings: Defaults for options, backoff and queueing.
            sleep: Coroutine used for backoff sleeps.
            max_concurrent: Maximum endpoints dispatched concurrently.
        """
        self._engine = engine
        self._recorder = recorder
        self._dead_letters = dead_letters
        self._queue = queue
        self._settings = settings
        self._sleep = sleep

        if settings is not None:
            self._defaults: DispatchOptions | None = settings.default_options()
            self._max_delay_ms = settings.max_retry_delay_ms
            self._jitter_ms = settings.retry_jitter_ms
            self._queue_name = settings.queue_name
            self._queue_enabled = settings.queue_enabled
            concurrency = max_concurrent or settings.max_concurrent_deliveries
        else:
            self._defaults = None
            self._max_delay_ms = DEFAULT_MAX_MS
            self._jitter_ms = DEFAULT_JITTER_MS
            self._queue_name = "webhooks"
            self._queue_enabled = True
            concurrency = max_concurrent or 10

        self._max_concurrent = concurrency
        self._semaphore = asyncio.Semaphore(concurrency)

    def resolve_options(self, options: OptionsLike) -> DispatchOptions:
        """Validate caller options against the configured defaults."""
        return DispatchOptions.coerce(options, self._defaults)

    async def dispatch_to(
        self,
        event: str,
        payload: Any,
        endpoint_url: str,
        options: OptionsLike = None,
    ) -> bool:
        """Dispatch an event to one endpoint URL.

        Blocks the calling task for all attempts and backoff sleeps.

        Args:
            event: Event name.
            payload: Event payload.
            endpoint_url: Destination URL.
            options: Dispatch options (model or mapping).

        Returns:
            True iff an attempt within the retry budget succeeded.

        Raises:
            InvalidArgumentError: If the options or HTTP method are invalid.
        """
        opts = self.resolve_options(options)
        validate_method(opts.method)
        idempotency_key = compute_idempotency_key(event, payload, endpoint_url)

        bind_context(webhook_event=event, idempotency_key=idempotency_key)
        try:
            return await self._deliver(event, payload, endpoint_url, opts, idempotency_key)
        finally:
            unbind_context("webhook_event", "idempotency_key")

    async def _deliver(
        self,
        event: str,
        payload: Any,
        endpoint_url: str,
        opts: DispatchOptions,
        idempotency_key: str,
    ) -> bool:
        outcomes: list[DeliveryOutcome] = []

        async def attempt_once() -> DeliveryOutcome:
            outcome = await self._engine.attempt(
                event, payload, endpoint_url, opts, idempotency_key=idempotency_key
            )
            outcomes.append(outcome)
            return outcome

        def log_retry(retry_state: RetryCallState) -> None:
            logger.info(
                "Webhook scheduled for retry: %s to %s (attempt %d of %d in %.3fs)",
                event,
                endpoint_url,
                retry_state.attempt_number + 1,
                opts.max_attempts,
                retry_state.upcoming_sleep,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(opts.max_attempts),
            wait=wait_backoff(
                base_ms=opts.retry_delay,
                max_ms=self._max_delay_ms,
                jitter_ms=self._jitter_ms,
            ),
            retry=retry_if_result(_outcome_failed),
            retry_error_callback=_last_outcome,
            before_sleep=log_retry,
            sleep=self._sleep,
        )
        outcome: DeliveryOutcome = await retrying(attempt_once)
        attempts = len(outcomes)

        if outcome.ok:
            logger.info(
                "Webhook dispatched successfully: %s to %s (status %s, attempt %d)",
                event,
                endpoint_url,
                outcome.status_code,
                attempts,
            )
            if opts.endpoint_id is not None:
                await self._recorder.record_success(
                    endpoint_id=opts.endpoint_id,
                    event=event,
                    payload=payload,
                    status_code=outcome.status_code or 0,
                    body=outcome.body,
                    attempts=attempts,
                    idempotency_key=idempotency_key,
                )
            return True

        logger.warning(
            "Webhook max retries exceeded: %s to %s after %d attempts (%s)",
            event,
            endpoint_url,
            attempts,
            outcome.error,
        )
        if opts.endpoint_id is not None:
            await self._recorder.record_failure_attempt(
                endpoint_id=opts.endpoint_id,
                event=event,
                payload=payload,
                status_code=outcome.status_code,
                body=outcome.body,
                attempts=attempts,
                idempotency_key=idempotency_key,
                error=outcome.error or "Delivery failed",
            )
        await self._dead_letters.store(
            endpoint_id=opts.endpoint_id,
            endpoint_url=endpoint_url,
            event=event,
            payload=payload,
            options=opts,
            total_attempts=attempts,
            last_error=outcome.error,
            last_status_code=outcome.status_code,
            last_response_body=outcome.body,
            idempotency_key=idempotency_key,
        )
        return False

    async def dispatch(
        self,
        event: str,
        payload: Any,
        endpoints: list[str],
        options: OptionsLike = None,
    ) -> dict[str, bool]:
        """Dispatch an event to several endpoint URLs concurrently.

        Each endpoint runs its own full retry budget; the result for a URL
        is that endpoint's own final outcome.

        Args:
            event: Event name.
            payload: Event payload.
            endpoints: Destination URLs.
            options: Options applied to every endpoint.

        Returns:
            Map of endpoint URL to success.
        """
        opts = self.resolve_options(options)

        async def bounded(url: str) -> bool:
            async with self._semaphore:
                return await self.dispatch_to(event, payload, url, opts)

        results = await asyncio.gather(*(bounded(url) for url in endpoints))
        return dict(zip(endpoints, results, strict=True))

    async def queue(
        self,
        event: str,
        payload: Any,
        endpoint_url: str,
        options: OptionsLike = None,
    ) -> DispatchJob:
        """Push a dispatch onto the work queue.

        Returns:
            The queued job.

        Raises:
            QueueUnavailableError: If no queue is configured or queueing is disabled.
        """
        if self._queue is None or not self._queue_enabled:
            raise QueueUnavailableError(
                "Queue not available. Configure a work queue or dispatch synchronously."
            )

        opts = self.resolve_options(options)
        validate_method(opts.method)
        job = DispatchJob(event=event, payload=payload, endpoint=endpoint_url, options=opts)
        await self._queue.push(job, opts.queue or self._queue_name)
        return job


__all__ = ["WebhookDispatcher"]
