"""Service container wiring the webhook components together.

Example:
    ```python
    from hookrelay.service import WebhookService

    async with WebhookService.create() as hooks:
        await hooks.storage.store_endpoint(endpoint)
        results = await hooks.manager.dispatch("order.completed", {"order_id": 1})
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from hookrelay.config import Settings
from hookrelay.signing import SignatureService
from hookrelay.storage import InMemoryWebhookStore, QdrantWebhookStore, create_storage
from hookrelay.webhooks import (
    DeadLetterStore,
    DeliveryAttemptEngine,
    InProcessQueue,
    OutcomeRecorder,
    WebhookDispatcher,
    WebhookManager,
    WebhookReceiver,
)


@dataclass
class WebhookService:
    """Owns every webhook component built from one Settings instance.

    Attributes:
        settings: Configuration settings.
        storage: Record store for endpoints, deliveries and failures.
        signer: HMAC signature service.
        engine: Single-attempt HTTP delivery engine.
        recorder: Writes delivery records.
        dead_letters: Dead-letter store.
        dispatcher: Retry scheduler.
        manager: Endpoint fan-out and replay.
        receiver: Inbound verification and routing.
        queue: In-process work queue, or None when queueing is disabled.
    """

    settings: Settings
    storage: InMemoryWebhookStore | QdrantWebhookStore
    signer: SignatureService
    engine: DeliveryAttemptEngine
    recorder: OutcomeRecorder
    dead_letters: DeadLetterStore
    dispatcher: WebhookDispatcher
    manager: WebhookManager
    receiver: WebhookReceiver
    queue: InProcessQueue | None = field(default=None)

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        storage: InMemoryWebhookStore | QdrantWebhookStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> WebhookService:
        """Create a WebhookService with default dependencies.

        Args:
            settings: Optional settings. Uses defaults if None.
            storage: Optional pre-built store. Built from settings if None.
            transport: Optional httpx transport for outbound requests.

        Returns:
            Configured WebhookService instance.
        """
        if settings is None:
            settings = Settings()
        if storage is None:
            storage = create_storage(settings)

        signer = SignatureService(settings.signature_algorithm)
        engine = DeliveryAttemptEngine(signer, transport=transport)
        recorder = OutcomeRecorder(storage, body_limit=settings.response_body_limit)
        dead_letters = DeadLetterStore(storage)
        queue = InProcessQueue(workers=settings.queue_workers) if settings.queue_enabled else None
        dispatcher = WebhookDispatcher(
            engine,
            recorder,
            dead_letters,
            queue=queue,
            settings=settings,
        )
        manager = WebhookManager(
            dispatcher,
            storage,
            dead_letters,
            max_concurrent=settings.max_concurrent_deliveries,
        )
        receiver = WebhookReceiver(signer, tolerance_seconds=settings.replay_tolerance_seconds)

        return cls(
            settings=settings,
            storage=storage,
            signer=signer,
            engine=engine,
            recorder=recorder,
            dead_letters=dead_letters,
            dispatcher=dispatcher,
            manager=manager,
            receiver=receiver,
            queue=queue,
        )

    async def initialize(self) -> None:
        """Initialize storage and start queue workers."""
        await self.storage.initialize()
        if self.queue is not None:
            self.queue.start(self.dispatcher)

    async def close(self) -> None:
        """Stop queue workers and close storage."""
        if self.queue is not None:
            await self.queue.stop()
        await self.storage.close()

    async def __aenter__(self) -> WebhookService:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


__all__ = ["WebhookService"]
