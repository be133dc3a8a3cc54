"""Pydantic schemas for API responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class WebhookReceiptResponse(BaseModel):
    """Response for an accepted inbound webhook.

    Attributes:
        success: Always True; failures are returned as error bodies.
        message: Human-readable status.
        event: Event name resolved from headers or body.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool = Field(default=True, description="Whether the webhook was processed")
    message: str = Field(description="Human-readable status")
    event: str = Field(description="Resolved event name")


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(description="Service health status")
    version: str = Field(description="hookrelay version")
    storage_backend: str | None = Field(default=None, description="Configured record store")
    queue_running: bool = Field(default=False, description="Whether queue workers are running")
