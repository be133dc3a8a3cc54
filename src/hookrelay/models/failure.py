"""Dead-letter records for dispatches that exhausted their retry budget."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .base import generate_id, utcnow


class WebhookFailure(BaseModel):
    """A permanently failed dispatch, kept for manual or automatic replay.

    Failure rows are an audit trail: replaying one sets ``retried_at`` and
    never deletes or otherwise alters the original row.

    Attributes:
        id: Unique identifier for this failure.
        endpoint_id: Registered endpoint (None for untracked dispatches).
        endpoint_url: Destination URL, always present.
        event: Event name.
        payload: Full original payload.
        options: Full original dispatch options, so the call can be replayed.
        total_attempts: Attempts made before giving up.
        last_error_message: Error from the final attempt.
        last_status_code: HTTP status from the final attempt.
        last_response_body: Response body from the final attempt.
        idempotency_key: Key shared by all attempts of the dispatch.
        retried_at: When the failure was retried (None = pending).
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whf"))
    endpoint_id: str | None = Field(default=None)
    endpoint_url: str = Field(description="Destination URL")
    event: str = Field(description="Event name")
    payload: Any = Field(default=None, description="Original payload")
    options: dict[str, Any] = Field(default_factory=dict, description="Original options")
    total_attempts: int = Field(ge=1, description="Attempts made")
    last_error_message: str | None = Field(default=None)
    last_status_code: int | None = Field(default=None)
    last_response_body: str | None = Field(default=None)
    idempotency_key: str | None = Field(default=None)
    retried_at: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def can_retry(self) -> bool:
        """A failure can be retried until it has been marked as retried."""
        return self.retried_at is None

    def mark_as_retried(self) -> WebhookFailure:
        """Set ``retried_at`` to now.

        Calling this on an already-retried failure re-sets the timestamp
        without error.
        """
        now = utcnow()
        self.retried_at = now
        self.updated_at = now
        return self


__all__ = ["WebhookFailure"]
