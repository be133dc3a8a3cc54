"""FastAPI router for inbound webhook endpoints."""

from __future__ import annotations

import logging
from typing import Annotated
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status

from hookrelay import __version__
from hookrelay.exceptions import ConfigurationError
from hookrelay.logging import bind_context, clear_context
from hookrelay.service import WebhookService
from hookrelay.webhooks import InboundRequest

from .schemas import HealthResponse, WebhookReceiptResponse

logger = logging.getLogger(__name__)

router = APIRouter()

PROVIDER_PATTERN = r"^[a-z0-9_-]+$"

# Service instance (set by app lifespan)
_service: WebhookService | None = None


def set_service(service: WebhookService | None) -> None:
    """Set the global service instance."""
    global _service
    _service = service


async def get_service() -> WebhookService:
    """Dependency to get the WebhookService instance."""
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return _service


ServiceDep = Annotated[WebhookService, Depends(get_service)]


async def to_inbound_request(request: Request) -> InboundRequest:
    """Convert a Starlette request into the receiver's request view."""
    body = await request.body()
    form: dict[str, str] = {}
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        form = dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))

    return InboundRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        body=body,
        query=dict(request.query_params),
        form=form,
    )


async def _receive(
    service: WebhookService,
    request: Request,
    provider: str | None,
) -> WebhookReceiptResponse:
    clear_context()
    bind_context(provider=provider or "-", path=request.url.path)

    secret = service.settings.secret_for(provider)
    if not secret:
        raise ConfigurationError("Webhook secret not configured")

    inbound = await to_inbound_request(request)
    received = await service.receiver.process(inbound, secret)

    logger.info("Inbound webhook accepted: %s (provider %s)", received.event, provider or "-")
    return WebhookReceiptResponse(
        success=True,
        message="Webhook processed successfully",
        event=received.event,
    )


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check() -> HealthResponse:
    """Check service health."""
    if _service is None:
        return HealthResponse(status="unhealthy", version=__version__)
    return HealthResponse(
        status="healthy",
        version=__version__,
        storage_backend=_service.settings.storage_backend,
        queue_running=_service.queue is not None and _service.queue.running,
    )


@router.post("/webhook", response_model=WebhookReceiptResponse, tags=["webhooks"])
async def receive_webhook(request: Request, service: ServiceDep) -> WebhookReceiptResponse:
    """Receive a webhook signed with the shared inbound secret."""
    return await _receive(service, request, None)


@router.post(
    "/webhook/{provider}",
    response_model=WebhookReceiptResponse,
    tags=["webhooks"],
)
async def receive_provider_webhook(
    request: Request,
    service: ServiceDep,
    provider: Annotated[str, Path(pattern=PROVIDER_PATTERN)],
) -> WebhookReceiptResponse:
    """Receive a webhook signed with a provider's secret.

    Falls back to the shared inbound secret when the provider has none.
    """
    return await _receive(service, request, provider)
