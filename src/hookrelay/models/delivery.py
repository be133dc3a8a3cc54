"""Delivery records: one logged outcome per (event, endpoint) dispatch."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .base import generate_id, truncate, utcnow


class WebhookDelivery(BaseModel):
    """Record of a dispatch outcome.

    A delivery is a log entry, not a retryable entity. Exactly one of
    ``succeeded_at`` / ``failed_at`` is set once a terminal transition has
    been applied.

    Attributes:
        id: Unique identifier for this delivery.
        endpoint_id: Endpoint the event was delivered to.
        event: Event name.
        payload: Snapshot of the dispatched payload.
        status_code: Last HTTP status code (if a response was received).
        response_body: Last response body (truncated).
        attempts: Number of HTTP attempts made.
        idempotency_key: Key shared by all attempts of the dispatch.
        succeeded_at: When the dispatch succeeded.
        failed_at: When the dispatch was recorded as failed.
        error_message: Error describing the last failed attempt.
        created_at: When the record was created.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    endpoint_id: str = Field(description="Endpoint the event was delivered to")
    event: str = Field(description="Event name")
    payload: Any = Field(default=None, description="Payload snapshot")
    status_code: int | None = Field(default=None, description="HTTP status code")
    response_body: str | None = Field(default=None, description="Response body (truncated)")
    attempts: int = Field(default=0, ge=0, description="HTTP attempts made")
    idempotency_key: str | None = Field(default=None, description="Dispatch idempotency key")
    succeeded_at: datetime | None = Field(default=None)
    failed_at: datetime | None = Field(default=None)
    error_message: str | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _single_terminal_state(self) -> WebhookDelivery:
        if self.succeeded_at is not None and self.failed_at is not None:
            raise ValueError("delivery cannot be both succeeded and failed")
        return self

    @property
    def succeeded(self) -> bool:
        return self.succeeded_at is not None

    def mark_succeeded(
        self, status_code: int, response_body: str | None = None
    ) -> WebhookDelivery:
        """Mark delivery as succeeded. Attempt count is left untouched."""
        self.status_code = status_code
        self.response_body = truncate(response_body)
        self.succeeded_at = utcnow()
        self.failed_at = None
        self.error_message = None
        return self

    def mark_failed(
        self,
        error_message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> WebhookDelivery:
        """Mark delivery as failed, counting the attempt that just failed."""
        self.attempts += 1
        self.status_code = status_code
        self.response_body = truncate(response_body)
        self.failed_at = utcnow()
        self.succeeded_at = None
        self.error_message = error_message
        return self


__all__ = ["WebhookDelivery"]
