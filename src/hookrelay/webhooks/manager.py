"""High-level webhook operations over registered endpoints.

Finds the endpoints subscribed to an event, dispatches to each of them
(directly or through the work queue) and replays dead-lettered
dispatches.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from hookrelay.exceptions import NotFoundError
from hookrelay.models import DispatchOptions

if TYPE_CHECKING:
    from hookrelay.models import WebhookEndpoint, WebhookFailure
    from hookrelay.storage import WebhookStore

    from .dead_letter import DeadLetterStore
    from .dispatcher import WebhookDispatcher

logger = logging.getLogger(__name__)


class WebhookManager:
    """Dispatches events to every matching endpoint and manages replays.

    Example:
        ```python
        manager = WebhookManager(dispatcher, storage, dead_letters)

        results = await manager.dispatch("payment.completed", {"id": "pay_1"})
        # {"https://a.example.com/hooks": True, ...}

        replayed = await manager.retry_pending()
        ```
    """

    def __init__(
        self,
        dispatcher: WebhookDispatcher,
        storage: WebhookStore,
        dead_letters: DeadLetterStore,
        max_concurrent: int = 10,
    ) -> None:
        self._dispatcher = dispatcher
        self._storage = storage
        self._dead_letters = dead_letters
        self._semaphore = asyncio.Semaphore(max_concurrent)

    async def endpoints_for(self, event: str) -> list[WebhookEndpoint]:
        """Active endpoints that should receive the event."""
        endpoints = await self._storage.list_endpoints(active_only=True)
        return [endpoint for endpoint in endpoints if endpoint.should_receive(event)]

    async def dispatch(
        self,
        event: str,
        payload: Any,
        use_queue: bool = False,
    ) -> dict[str, bool]:
        """Dispatch an event to all subscribed endpoints.

        Args:
            event: Event name.
            payload: Event payload.
            use_queue: Push each dispatch onto the work queue instead of
                delivering inline. Queued endpoints report True.

        Returns:
            Map of endpoint URL to success.
        """
        endpoints = await self.endpoints_for(event)
        if not endpoints:
            logger.debug("No webhook endpoints subscribed to event %s", event)
            return {}

        if use_queue:
            results: dict[str, bool] = {}
            for endpoint in endpoints:
                await self._dispatcher.queue(
                    event, payload, str(endpoint.url), endpoint.to_options()
                )
                results[str(endpoint.url)] = True
            return results

        outcomes = await asyncio.gather(
            *(self._dispatch_endpoint(endpoint, event, payload) for endpoint in endpoints)
        )
        return {str(endpoint.url): ok for endpoint, ok in zip(endpoints, outcomes, strict=True)}

    async def _dispatch_endpoint(
        self, endpoint: WebhookEndpoint, event: str, payload: Any
    ) -> bool:
        async with self._semaphore:
            return await self._dispatcher.dispatch_to(
                event, payload, str(endpoint.url), endpoint.to_options()
            )

    async def retry_failure(self, failure_id: str) -> bool:
        """Replay a dead-lettered dispatch with its original options.

        The failure is marked as retried whatever the replay outcome; a
        replay that fails again produces a new dead-letter entry.

        Args:
            failure_id: ID of the failure to replay.

        Returns:
            True if the replayed dispatch succeeded.

        Raises:
            NotFoundError: If the failure does not exist.
        """
        failure = await self._dead_letters.get(failure_id)
        if failure is None:
            raise NotFoundError("webhook_failure", failure_id)
        return await self._replay(failure)

    async def retry_pending(self, limit: int = 100) -> int:
        """Replay every pending dead-letter entry.

        Args:
            limit: Maximum failures to replay.

        Returns:
            Number of replays that succeeded.
        """
        succeeded = 0
        for failure in await self._dead_letters.pending(limit=limit):
            if await self._replay(failure):
                succeeded += 1
        return succeeded

    async def _replay(self, failure: WebhookFailure) -> bool:
        if not failure.can_retry():
            logger.info("Replaying already-retried webhook failure %s", failure.id)

        options = DispatchOptions.model_validate(failure.options)
        await self._dead_letters.mark_as_retried(failure)
        ok = await self._dispatcher.dispatch_to(
            failure.event, failure.payload, failure.endpoint_url, options
        )
        logger.info(
            "Replayed webhook failure %s: %s to %s (%s)",
            failure.id,
            failure.event,
            failure.endpoint_url,
            "succeeded" if ok else "failed",
        )
        return ok


__all__ = ["WebhookManager"]
