"""Best-effort delivery recording.

Recording is telemetry: a storage failure is converted into a
PersistenceFailure value and logged at WARNING, never raised, so it
cannot change the result of a dispatch.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from hookrelay.exceptions import PersistenceFailure
from hookrelay.models import WebhookDelivery

if TYPE_CHECKING:
    from hookrelay.storage import WebhookStore

logger = logging.getLogger(__name__)


class OutcomeRecorder:
    """Writes delivery records for tracked dispatches."""

    def __init__(self, storage: WebhookStore, body_limit: int = 1000) -> None:
        self._storage = storage
        self._body_limit = body_limit

    async def record_success(
        self,
        endpoint_id: str,
        event: str,
        payload: Any,
        status_code: int,
        body: str | None,
        attempts: int,
        idempotency_key: str,
    ) -> WebhookDelivery | PersistenceFailure:
        """Record a successful dispatch.

        Args:
            endpoint_id: Endpoint the event was delivered to.
            event: Event name.
            payload: Dispatched payload.
            status_code: Status of the successful attempt.
            body: Response body of the successful attempt.
            attempts: Total attempts made, including the successful one.
            idempotency_key: Key shared by all attempts.

        Returns:
            The stored delivery, or a PersistenceFailure if storage failed.
        """
        delivery = WebhookDelivery(
            endpoint_id=endpoint_id,
            event=event,
            payload=payload,
            attempts=attempts,
            idempotency_key=idempotency_key,
        )
        delivery.mark_succeeded(status_code, self._limit(body))
        return await self._write(delivery)

    async def record_failure_attempt(
        self,
        endpoint_id: str,
        event: str,
        payload: Any,
        status_code: int | None,
        body: str | None,
        attempts: int,
        idempotency_key: str,
        error: str,
    ) -> WebhookDelivery | PersistenceFailure:
        """Record a failed dispatch.

        ``mark_failed`` counts the final attempt, so the record is built
        with the attempts that preceded it.
        """
        delivery = WebhookDelivery(
            endpoint_id=endpoint_id,
            event=event,
            payload=payload,
            attempts=max(attempts - 1, 0),
            idempotency_key=idempotency_key,
        )
        delivery.mark_failed(error, status_code=status_code, response_body=self._limit(body))
        return await self._write(delivery)

    def _limit(self, body: str | None) -> str | None:
        return body[: self._body_limit] if body is not None else None

    async def _write(self, delivery: WebhookDelivery) -> WebhookDelivery | PersistenceFailure:
        try:
            await self._storage.create_delivery(delivery)
        except Exception as e:
            failure = PersistenceFailure("delivery", e)
            logger.warning(
                "Failed to record webhook delivery: %s for endpoint %s (%s)",
                delivery.event,
                delivery.endpoint_id,
                e,
            )
            return failure
        return delivery


__all__ = ["OutcomeRecorder"]
