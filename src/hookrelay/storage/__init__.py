"""Record stores for webhook endpoints, deliveries and failures.

Example:
    ```python
    from hookrelay.storage import create_storage

    store = create_storage(settings)
    await store.initialize()
    await store.store_endpoint(endpoint)
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import WebhookStore
from .memory import InMemoryWebhookStore
from .qdrant import COLLECTION_NAMES, QdrantWebhookStore

if TYPE_CHECKING:
    from hookrelay.config import Settings


def create_storage(settings: Settings) -> InMemoryWebhookStore | QdrantWebhookStore:
    """Build the record store selected by ``settings.storage_backend``."""
    if settings.storage_backend == "qdrant":
        return QdrantWebhookStore(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            prefix=settings.collection_prefix,
        )
    return InMemoryWebhookStore()


__all__ = [
    "COLLECTION_NAMES",
    "InMemoryWebhookStore",
    "QdrantWebhookStore",
    "WebhookStore",
    "create_storage",
]
