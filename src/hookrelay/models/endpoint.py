"""Registered webhook endpoints."""

from __future__ import annotations

from datetime import datetime
from fnmatch import fnmatchcase
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from .base import generate_id, utcnow
from .options import DispatchOptions


class WebhookEndpoint(BaseModel):
    """An external HTTP destination subscribed to event patterns.

    Endpoints are managed outside the dispatch engine; the dispatcher only
    reads snapshots of them.

    Attributes:
        id: Unique identifier for this endpoint.
        name: Human-readable name.
        url: Destination URL.
        secret: Shared secret used to sign deliveries.
        events: Exact event names or glob patterns (``payment.*``).
            An empty list subscribes to every event.
        active: Inactive endpoints receive nothing.
        timeout: Per-attempt timeout in seconds.
        retry_count: Retries after the first attempt.
        retry_delay: Base backoff delay in milliseconds.
        headers: Custom headers sent with every delivery.
        metadata: Free-form metadata.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    name: str | None = Field(default=None, description="Human-readable name")
    url: HttpUrl = Field(description="Endpoint receiving webhook deliveries")
    secret: str | None = Field(default=None, description="Shared secret for HMAC signatures")
    events: list[str] = Field(default_factory=list, description="Subscribed event patterns")
    active: bool = Field(default=True, description="Whether endpoint receives events")
    timeout: int = Field(default=30, ge=1, le=300, description="Timeout in seconds")
    retry_count: int = Field(default=3, ge=0, le=20, description="Retries after first attempt")
    retry_delay: int = Field(default=1000, ge=1, description="Base backoff delay in ms")
    headers: dict[str, str] = Field(default_factory=dict, description="Custom headers")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def should_receive(self, event: str) -> bool:
        """Check if this endpoint subscribes to the given event."""
        if not self.active:
            return False
        if not self.events:
            return True
        if event in self.events:
            return True
        return any(fnmatchcase(event, pattern) for pattern in self.events)

    def to_options(self) -> DispatchOptions:
        """Dispatch options derived from this endpoint's configuration."""
        return DispatchOptions(
            secret=self.secret,
            timeout=self.timeout,
            retry=self.retry_count,
            retry_delay=self.retry_delay,
            headers=dict(self.headers),
            endpoint_id=self.id,
        )


__all__ = ["WebhookEndpoint"]
