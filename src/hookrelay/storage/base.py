"""Storage protocol for webhook endpoints, deliveries and failures."""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hookrelay.models import WebhookDelivery, WebhookEndpoint, WebhookFailure


@runtime_checkable
class WebhookStore(Protocol):
    """Protocol for record stores used by the dispatch engine.

    Each delivery and failure row is created once and then only updated by
    the operation that owns it, so implementations need no locking beyond
    what a single insert or update requires.
    """

    @abstractmethod
    async def store_endpoint(self, endpoint: WebhookEndpoint) -> str:
        """Create or replace an endpoint. Returns its ID."""
        ...

    @abstractmethod
    async def get_endpoint(self, endpoint_id: str) -> WebhookEndpoint | None:
        """Get an endpoint by ID."""
        ...

    @abstractmethod
    async def list_endpoints(self, active_only: bool = False) -> list[WebhookEndpoint]:
        """List endpoints, optionally only active ones."""
        ...

    @abstractmethod
    async def create_delivery(self, delivery: WebhookDelivery) -> str:
        """Insert a delivery record. Returns its ID."""
        ...

    @abstractmethod
    async def update_delivery(self, delivery: WebhookDelivery) -> str:
        """Update an existing delivery record."""
        ...

    @abstractmethod
    async def list_deliveries(
        self,
        endpoint_id: str | None = None,
        event: str | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        """List deliveries, newest first."""
        ...

    @abstractmethod
    async def create_failure(self, failure: WebhookFailure) -> str:
        """Insert a dead-letter record. Returns its ID."""
        ...

    @abstractmethod
    async def update_failure(self, failure: WebhookFailure) -> str:
        """Update an existing dead-letter record."""
        ...

    @abstractmethod
    async def get_failure(self, failure_id: str) -> WebhookFailure | None:
        """Get a dead-letter record by ID."""
        ...

    @abstractmethod
    async def list_failures(
        self,
        retried: bool | None = None,
        event: str | None = None,
        limit: int = 100,
    ) -> list[WebhookFailure]:
        """List dead-letter records, newest first.

        Args:
            retried: True for retried, False for pending, None for both.
            event: Optional event filter.
            limit: Maximum records to return.
        """
        ...
