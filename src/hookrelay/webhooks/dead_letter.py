"""Dead-letter store for dispatches that exhausted their retry budget.

Writing an entry is best-effort like delivery recording, but a lost entry
means the failure is no longer traceable, so storage errors are logged at
CRITICAL. The management methods are used by operator tooling and let
storage errors propagate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from hookrelay.exceptions import PersistenceFailure
from hookrelay.models import DispatchOptions, WebhookFailure

if TYPE_CHECKING:
    from hookrelay.storage import WebhookStore

logger = logging.getLogger(__name__)


class DeadLetterStore:
    """Persists and queries permanently failed dispatches.

    Example:
        ```python
        dlq = DeadLetterStore(storage)
        for failure in await dlq.pending():
            print(failure.endpoint_url, failure.last_error_message)
        ```
    """

    def __init__(self, storage: WebhookStore) -> None:
        self._storage = storage

    async def store(
        self,
        endpoint_id: str | None,
        endpoint_url: str,
        event: str,
        payload: Any,
        options: DispatchOptions,
        total_attempts: int,
        last_error: str | None,
        last_status_code: int | None,
        last_response_body: str | None,
        idempotency_key: str,
    ) -> WebhookFailure | PersistenceFailure:
        """Create a dead-letter entry for an exhausted dispatch.

        Args:
            endpoint_id: Registered endpoint id, None for untracked dispatches.
            endpoint_url: Destination URL.
            event: Event name.
            payload: Full payload.
            options: Original dispatch options, stored for exact replay.
            total_attempts: Attempts made.
            last_error: Error from the final attempt.
            last_status_code: Status from the final attempt.
            last_response_body: Body from the final attempt.
            idempotency_key: Key shared by all attempts.

        Returns:
            The stored failure, or a PersistenceFailure if storage failed.
        """
        failure = WebhookFailure(
            endpoint_id=endpoint_id,
            endpoint_url=endpoint_url,
            event=event,
            payload=payload,
            options=options.model_dump(mode="json"),
            total_attempts=total_attempts,
            last_error_message=last_error,
            last_status_code=last_status_code,
            last_response_body=last_response_body,
            idempotency_key=idempotency_key,
        )

        try:
            await self._storage.create_failure(failure)
        except Exception as e:
            logger.critical(
                "Failed to store webhook in dead-letter queue: %s to %s "
                "after %d attempts (idempotency key %s): %s",
                event,
                endpoint_url,
                total_attempts,
                idempotency_key,
                e,
            )
            return PersistenceFailure("failure", e)

        logger.warning(
            "Webhook moved to dead-letter queue: %s to %s after %d attempts",
            event,
            endpoint_url,
            total_attempts,
        )
        return failure

    async def get(self, failure_id: str) -> WebhookFailure | None:
        return await self._storage.get_failure(failure_id)

    async def pending(self, limit: int = 100) -> list[WebhookFailure]:
        """Failures that have not been retried yet."""
        return await self._storage.list_failures(retried=False, limit=limit)

    async def retried(self, limit: int = 100) -> list[WebhookFailure]:
        """Failures that have already been retried."""
        return await self._storage.list_failures(retried=True, limit=limit)

    async def for_event(self, event: str, limit: int = 100) -> list[WebhookFailure]:
        return await self._storage.list_failures(event=event, limit=limit)

    async def mark_as_retried(self, failure: WebhookFailure) -> WebhookFailure:
        """Mark a failure as retried and persist the change."""
        failure.mark_as_retried()
        await self._storage.update_failure(failure)
        return failure


__all__ = ["DeadLetterStore"]
