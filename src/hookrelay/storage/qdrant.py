"""Qdrant-backed webhook store.

Records are stored as payload-only points: webhook records need no
semantic search, so every point carries the same one-dimensional
placeholder vector and all lookups go through payload filters.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient, models

from hookrelay.config import settings
from hookrelay.exceptions import NotFoundError
from hookrelay.models import WebhookDelivery, WebhookEndpoint, WebhookFailure
from hookrelay.storage.retry import qdrant_retry

if TYPE_CHECKING:
    from qdrant_client.http.models import Record

RecordT = TypeVar("RecordT", WebhookEndpoint, WebhookDelivery, WebhookFailure)

COLLECTION_NAMES = {
    "endpoints": "webhook_endpoints",
    "deliveries": "webhook_deliveries",
    "failures": "webhook_failures",
}

# Payload indexes per collection
INDEXED_FIELDS = {
    "endpoints": {"active": models.PayloadSchemaType.BOOL},
    "deliveries": {
        "endpoint_id": models.PayloadSchemaType.KEYWORD,
        "event": models.PayloadSchemaType.KEYWORD,
    },
    "failures": {
        "event": models.PayloadSchemaType.KEYWORD,
        "retried": models.PayloadSchemaType.BOOL,
    },
}

PLACEHOLDER_VECTOR = [1.0]

SCROLL_PAGE_SIZE = 256


class QdrantWebhookStore:
    """WebhookStore persisting endpoints, deliveries and failures in Qdrant.

    Example:
        ```python
        async with QdrantWebhookStore(url="http://localhost:6333") as store:
            await store.store_endpoint(endpoint)
        ```
    """

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        prefix: str | None = None,
        location: str | None = None,
    ) -> None:
        """Initialize storage client.

        Args:
            url: Qdrant server URL. Defaults to settings.qdrant_url.
            api_key: Qdrant API key. Defaults to settings.qdrant_api_key.
            prefix: Collection name prefix. Defaults to settings.collection_prefix.
            location: Local-mode location such as ":memory:". Overrides url.
        """
        self._url = url or settings.qdrant_url
        self._api_key = api_key or settings.qdrant_api_key
        self._prefix = prefix or settings.collection_prefix
        self._location = location
        self._client: AsyncQdrantClient | None = None

    @property
    def client(self) -> AsyncQdrantClient:
        """Get the Qdrant client, raising if not initialized."""
        if self._client is None:
            raise RuntimeError("Storage not initialized. Call initialize() first.")
        return self._client

    async def initialize(self) -> None:
        """Initialize the storage client and ensure collections exist."""
        if self._location is not None:
            self._client = AsyncQdrantClient(location=self._location)
        else:
            self._client = AsyncQdrantClient(url=self._url, api_key=self._api_key)
        await self._ensure_collections()

    async def close(self) -> None:
        """Close the storage client connection."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> QdrantWebhookStore:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _collection_name(self, kind: str) -> str:
        return f"{self._prefix}_{COLLECTION_NAMES[kind]}"

    @staticmethod
    def _key_to_point_id(key: str) -> str:
        """Convert a record ID to a valid Qdrant point ID.

        Qdrant requires point IDs to be UUIDs or unsigned integers.
        We hash the key to create a deterministic UUID-format string.
        """
        h = hashlib.sha256(key.encode()).hexdigest()[:32]
        return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"

    async def _ensure_collections(self) -> None:
        collections = await self.client.get_collections()
        existing = {c.name for c in collections.collections}

        for kind in COLLECTION_NAMES:
            collection_name = self._collection_name(kind)
            if collection_name in existing:
                continue
            await self.client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=len(PLACEHOLDER_VECTOR),
                    distance=models.Distance.DOT,
                ),
            )
            for field_name, schema in INDEXED_FIELDS[kind].items():
                await self.client.create_payload_index(
                    collection_name=collection_name,
                    field_name=field_name,
                    field_schema=schema,
                )

    @staticmethod
    def _to_payload(record: BaseModel) -> dict[str, Any]:
        payload = record.model_dump(mode="json")
        if isinstance(record, WebhookFailure):
            # Qdrant filters cannot match on null, so pending/retried is a flag
            payload["retried"] = record.retried_at is not None
        return payload

    @staticmethod
    def _from_payload(payload: dict[str, Any], record_class: type[RecordT]) -> RecordT:
        payload = dict(payload)
        payload.pop("retried", None)
        return record_class.model_validate(payload)

    @qdrant_retry
    async def _upsert(self, kind: str, record_id: str, record: BaseModel) -> None:
        await self.client.upsert(
            collection_name=self._collection_name(kind),
            points=[
                models.PointStruct(
                    id=self._key_to_point_id(record_id),
                    vector=PLACEHOLDER_VECTOR,
                    payload=self._to_payload(record),
                )
            ],
        )

    @qdrant_retry
    async def _retrieve(self, kind: str, record_id: str) -> dict[str, Any] | None:
        results = await self.client.retrieve(
            collection_name=self._collection_name(kind),
            ids=[self._key_to_point_id(record_id)],
            with_payload=True,
        )
        if not results:
            return None
        return results[0].payload

    @qdrant_retry
    async def _scroll_all(
        self,
        kind: str,
        filters: list[models.FieldCondition],
    ) -> list[Record]:
        """Scroll every point matching the filters, following page offsets."""
        scroll_filter = models.Filter(must=filters) if filters else None
        records: list[Record] = []
        offset: Any = None
        while True:
            page, offset = await self.client.scroll(
                collection_name=self._collection_name(kind),
                scroll_filter=scroll_filter,
                limit=SCROLL_PAGE_SIZE,
                offset=offset,
                with_payload=True,
            )
            records.extend(page)
            if offset is None:
                return records

    @staticmethod
    def _match(key: str, value: Any) -> models.FieldCondition:
        return models.FieldCondition(key=key, match=models.MatchValue(value=value))

    async def store_endpoint(self, endpoint: WebhookEndpoint) -> str:
        await self._upsert("endpoints", endpoint.id, endpoint)
        return endpoint.id

    async def get_endpoint(self, endpoint_id: str) -> WebhookEndpoint | None:
        payload = await self._retrieve("endpoints", endpoint_id)
        if payload is None:
            return None
        return self._from_payload(payload, WebhookEndpoint)

    async def list_endpoints(self, active_only: bool = False) -> list[WebhookEndpoint]:
        filters = [self._match("active", True)] if active_only else []
        records = await self._scroll_all("endpoints", filters)
        endpoints = [
            self._from_payload(r.payload, WebhookEndpoint) for r in records if r.payload is not None
        ]
        endpoints.sort(key=lambda e: e.created_at)
        return endpoints

    async def create_delivery(self, delivery: WebhookDelivery) -> str:
        await self._upsert("deliveries", delivery.id, delivery)
        return delivery.id

    async def update_delivery(self, delivery: WebhookDelivery) -> str:
        if await self._retrieve("deliveries", delivery.id) is None:
            raise NotFoundError("webhook_delivery", delivery.id)
        await self._upsert("deliveries", delivery.id, delivery)
        return delivery.id

    async def list_deliveries(
        self,
        endpoint_id: str | None = None,
        event: str | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        filters: list[models.FieldCondition] = []
        if endpoint_id is not None:
            filters.append(self._match("endpoint_id", endpoint_id))
        if event is not None:
            filters.append(self._match("event", event))

        records = await self._scroll_all("deliveries", filters)
        deliveries = [
            self._from_payload(r.payload, WebhookDelivery) for r in records if r.payload is not None
        ]

        # Sort by created_at descending (newest first)
        deliveries.sort(key=lambda d: d.created_at, reverse=True)
        return deliveries[:limit]

    async def create_failure(self, failure: WebhookFailure) -> str:
        await self._upsert("failures", failure.id, failure)
        return failure.id

    async def update_failure(self, failure: WebhookFailure) -> str:
        if await self._retrieve("failures", failure.id) is None:
            raise NotFoundError("webhook_failure", failure.id)
        await self._upsert("failures", failure.id, failure)
        return failure.id

    async def get_failure(self, failure_id: str) -> WebhookFailure | None:
        payload = await self._retrieve("failures", failure_id)
        if payload is None:
            return None
        return self._from_payload(payload, WebhookFailure)

    async def list_failures(
        self,
        retried: bool | None = None,
        event: str | None = None,
        limit: int = 100,
    ) -> list[WebhookFailure]:
        filters: list[models.FieldCondition] = []
        if retried is not None:
            filters.append(self._match("retried", retried))
        if event is not None:
            filters.append(self._match("event", event))

        records = await self._scroll_all("failures", filters)
        failures = [
            self._from_payload(r.payload, WebhookFailure) for r in records if r.payload is not None
        ]
        failures.sort(key=lambda f: f.created_at, reverse=True)
        return failures[:limit]
