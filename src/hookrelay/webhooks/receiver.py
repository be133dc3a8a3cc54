"""Inbound webhook verification and routing.

Each request passes through a single pipeline:

    extract signature -> verify signature -> check replay window
    -> extract event / payload -> handler

Signature and replay failures raise AuthenticationError before any
handler runs. Handler exceptions propagate to the caller.
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from hookrelay.exceptions import AuthenticationError

if TYPE_CHECKING:
    from hookrelay.signing import SignatureService

logger = logging.getLogger(__name__)

# Checked in priority order
SIGNATURE_HEADERS: tuple[str, ...] = (
    "X-Webhook-Signature",
    "X-Hub-Signature-256",
    "X-Hub-Signature",
    "X-Signature",
    "Signature",
)

EVENT_HEADERS: tuple[str, ...] = (
    "X-Webhook-Event",
    "X-GitHub-Event",
    "X-Event-Type",
    "X-Event-Name",
)

DEFAULT_TOLERANCE_SECONDS = 300

WebhookHandler = Callable[[str, dict[str, Any], "InboundRequest"], Awaitable[None] | None]


@dataclass
class InboundRequest:
    """Framework-neutral view of an inbound HTTP request.

    Header lookups are case-insensitive.
    """

    method: str = "POST"
    path: str = "/"
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    query: Mapping[str, Any] = field(default_factory=dict)
    form: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._lower_headers = {key.lower(): value for key, value in self.headers.items()}

    def header(self, name: str) -> str | None:
        return self._lower_headers.get(name.lower())

    def is_json(self) -> bool:
        content_type = (self.header("Content-Type") or "").lower()
        return "/json" in content_type or "+json" in content_type

    def json(self) -> Any:
        """Decoded JSON body, or None if the body is empty or malformed."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except ValueError:
            return None

    def all(self) -> dict[str, Any]:
        """All non-JSON input: query parameters overlaid with form fields."""
        return {**dict(self.query), **dict(self.form)}


class ReceivedWebhook(BaseModel):
    """Result of processing an authenticated inbound webhook."""

    model_config = ConfigDict(extra="forbid")

    event: str = Field(description="Event name")
    payload: dict[str, Any] = Field(default_factory=dict, description="Decoded payload")
    headers: dict[str, str] = Field(default_factory=dict, description="Request headers")
    timestamp: int = Field(description="Unix time the webhook was processed")


class WebhookReceiver:
    """Verifies and routes inbound webhooks.

    Example:
        ```python
        receiver = WebhookReceiver(SignatureService())

        @receiver.on("payment.*")
        async def handle_payment(event, payload, request):
            ...

        result = await receiver.process(request, secret="s3cret")
        ```
    """

    def __init__(
        self,
        signer: SignatureService,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the receiver.

        Args:
            signer: Signature service used to recompute signatures.
            tolerance_seconds: Replay window, applied in both directions.
            clock: Callable returning the current unix time.
        """
        self._signer = signer
        self._tolerance = tolerance_seconds
        self._clock = clock
        self._handlers: list[tuple[str, WebhookHandler]] = []

    def on(self, pattern: str, handler: WebhookHandler | None = None) -> Any:
        """Register a handler for events matching a glob pattern.

        Usable directly (``receiver.on("order.*", fn)``) or as a decorator.
        """
        if handler is not None:
            self._handlers.append((pattern, handler))
            return handler

        def decorator(fn: WebhookHandler) -> WebhookHandler:
            self._handlers.append((pattern, fn))
            return fn

        return decorator

    def handlers_for(self, event: str) -> list[WebhookHandler]:
        return [fn for pattern, fn in self._handlers if fnmatchcase(event, pattern)]

    def extract_signature(self, request: InboundRequest) -> str | None:
        """Signature from the first recognized header, without any ``algo=`` prefix."""
        for name in SIGNATURE_HEADERS:
            value = request.header(name)
            if value is not None:
                if "=" in value:
                    _, value = value.split("=", 1)
                return value
        return None

    def extract_event(self, request: InboundRequest) -> str:
        for name in EVENT_HEADERS:
            value = request.header(name)
            if value is not None:
                return value
        payload = request.json() if request.is_json() else None
        if isinstance(payload, dict) and payload.get("event") is not None:
            return str(payload["event"])
        event = request.all().get("event")
        return str(event) if event is not None else "unknown"

    def extract_payload(self, request: InboundRequest) -> dict[str, Any]:
        """JSON object body if present and well-formed, else all request input."""
        if request.is_json():
            payload = request.json()
            if isinstance(payload, dict):
                return payload
        return request.all()

    def verify_signature(self, request: InboundRequest, secret: str) -> bool:
        """Check the request signature against the extracted payload."""
        signature = self.extract_signature(request)
        if signature is None:
            logger.warning("Webhook signature missing: %s %s", request.method, request.path)
            return False

        payload = self.extract_payload(request)
        valid = self._signer.verify(signature, payload, secret)
        if not valid:
            logger.warning(
                "Webhook signature verification failed: %s (algorithm %s)",
                request.path,
                self._signer.algorithm,
            )
        return valid

    def verify_timestamp(self, payload: Mapping[str, Any]) -> bool:
        """Check the payload timestamp against the replay window."""
        raw = payload.get("timestamp")
        if raw is None or isinstance(raw, bool):
            return False
        try:
            timestamp = float(raw)
        except (TypeError, ValueError, OverflowError):
            return False
        return abs(self._clock() - timestamp) <= self._tolerance

    async def process(
        self,
        request: InboundRequest,
        secret: str,
        handler: WebhookHandler | None = None,
    ) -> ReceivedWebhook:
        """Authenticate an inbound webhook and hand it to its handler.

        Args:
            request: The inbound request.
            secret: Shared secret for signature verification.
            handler: Optional callable ``(event, payload, request)``. When
                omitted, registered handlers matching the event run in
                registration order.

        Returns:
            ReceivedWebhook with event, payload, headers and timestamp.

        Raises:
            AuthenticationError: If the signature is invalid or the
                timestamp is outside the replay window.
        """
        if not self.verify_signature(request, secret):
            raise AuthenticationError("Invalid webhook signature")

        payload = self.extract_payload(request)
        if not self.verify_timestamp(payload):
            logger.warning("Webhook timestamp outside replay window: %s", request.path)
            raise AuthenticationError("Webhook timestamp outside replay window")

        event = self.extract_event(request)
        result = ReceivedWebhook(
            event=event,
            payload=payload,
            headers=dict(request.headers),
            timestamp=int(self._clock()),
        )

        handlers = [handler] if handler is not None else self.handlers_for(event)
        for fn in handlers:
            outcome = fn(event, payload, request)
            if inspect.isawaitable(outcome):
                await outcome

        logger.info("Webhook processed successfully: %s at %s", event, request.path)
        return result


__all__ = [
    "EVENT_HEADERS",
    "SIGNATURE_HEADERS",
    "InboundRequest",
    "ReceivedWebhook",
    "WebhookHandler",
    "WebhookReceiver",
]
