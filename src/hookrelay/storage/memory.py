"""In-memory webhook store for tests and single-process deployments."""

from __future__ import annotations

from typing import TYPE_CHECKING

from hookrelay.exceptions import NotFoundError

if TYPE_CHECKING:
    from hookrelay.models import WebhookDelivery, WebhookEndpoint, WebhookFailure


class InMemoryWebhookStore:
    """Dictionary-backed WebhookStore.

    Records are deep-copied on the way in and out so callers only ever see
    snapshots, as they would with a real database.
    """

    def __init__(self) -> None:
        self._endpoints: dict[str, WebhookEndpoint] = {}
        self._deliveries: dict[str, WebhookDelivery] = {}
        self._failures: dict[str, WebhookFailure] = {}

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def store_endpoint(self, endpoint: WebhookEndpoint) -> str:
        self._endpoints[endpoint.id] = endpoint.model_copy(deep=True)
        return endpoint.id

    async def get_endpoint(self, endpoint_id: str) -> WebhookEndpoint | None:
        endpoint = self._endpoints.get(endpoint_id)
        return endpoint.model_copy(deep=True) if endpoint is not None else None

    async def list_endpoints(self, active_only: bool = False) -> list[WebhookEndpoint]:
        return [
            endpoint.model_copy(deep=True)
            for endpoint in self._endpoints.values()
            if endpoint.active or not active_only
        ]

    async def create_delivery(self, delivery: WebhookDelivery) -> str:
        self._deliveries[delivery.id] = delivery.model_copy(deep=True)
        return delivery.id

    async def update_delivery(self, delivery: WebhookDelivery) -> str:
        if delivery.id not in self._deliveries:
            raise NotFoundError("webhook_delivery", delivery.id)
        self._deliveries[delivery.id] = delivery.model_copy(deep=True)
        return delivery.id

    async def list_deliveries(
        self,
        endpoint_id: str | None = None,
        event: str | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        deliveries = [
            d
            for d in self._deliveries.values()
            if (endpoint_id is None or d.endpoint_id == endpoint_id)
            and (event is None or d.event == event)
        ]
        deliveries.sort(key=lambda d: d.created_at, reverse=True)
        return [d.model_copy(deep=True) for d in deliveries[:limit]]

    async def create_failure(self, failure: WebhookFailure) -> str:
        self._failures[failure.id] = failure.model_copy(deep=True)
        return failure.id

    async def update_failure(self, failure: WebhookFailure) -> str:
        if failure.id not in self._failures:
            raise NotFoundError("webhook_failure", failure.id)
        self._failures[failure.id] = failure.model_copy(deep=True)
        return failure.id

    async def get_failure(self, failure_id: str) -> WebhookFailure | None:
        failure = self._failures.get(failure_id)
        return failure.model_copy(deep=True) if failure is not None else None

    async def list_failures(
        self,
        retried: bool | None = None,
        event: str | None = None,
        limit: int = 100,
    ) -> list[WebhookFailure]:
        failures = [
            f
            for f in self._failures.values()
            if (retried is None or (f.retried_at is not None) == retried)
            and (event is None or f.event == event)
        ]
        failures.sort(key=lambda f: f.created_at, reverse=True)
        return [f.model_copy(deep=True) for f in failures[:limit]]
