"""Single HTTP delivery attempts.

The attempt engine performs exactly one HTTP call and classifies the
result. Network errors and non-2xx responses are reported through
DeliveryOutcome; only invalid configuration raises.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field

from hookrelay.exceptions import InvalidArgumentError, NonSuccessResponse, TransportFailure
from hookrelay.models import SUPPORTED_METHODS, DispatchOptions
from hookrelay.signing import compute_idempotency_key

if TYPE_CHECKING:
    from hookrelay.signing import SignatureService

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
ALGORITHM_HEADER = "X-Webhook-Signature-Algorithm"
EVENT_HEADER = "X-Webhook-Event"
IDEMPOTENCY_HEADER = "X-Webhook-Idempotency-Key"


class DeliveryOutcome(BaseModel):
    """Result of one HTTP delivery attempt.

    Attributes:
        status_code: HTTP status code, None if no response was received.
        body: Response body text, None if no response was received.
        ok: True iff the status code is in the 2xx range.
        error: Description of the failure for unsuccessful attempts.
    """

    model_config = ConfigDict(extra="forbid")

    status_code: int | None = Field(default=None)
    body: str | None = Field(default=None)
    ok: bool = Field(default=False)
    error: str | None = Field(default=None)

    @classmethod
    def from_response(cls, response: httpx.Response) -> DeliveryOutcome:
        if response.is_success:
            return cls(status_code=response.status_code, body=response.text, ok=True)
        failure = NonSuccessResponse(response.status_code)
        return cls(
            status_code=response.status_code,
            body=response.text,
            ok=False,
            error=failure.message,
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> DeliveryOutcome:
        failure = TransportFailure(str(exc) or type(exc).__name__)
        return cls(ok=False, error=failure.message)


def validate_method(method: str) -> str:
    """Normalize and check an HTTP method.

    Raises:
        InvalidArgumentError: If the method is not supported.
    """
    normalized = method.upper()
    if normalized not in SUPPORTED_METHODS:
        raise InvalidArgumentError("method", f"Unsupported HTTP method: {method}")
    return normalized


def _query_params(data: dict[str, Any]) -> dict[str, str]:
    """Flatten a wire payload into query parameters for GET deliveries."""
    params: dict[str, str] = {}
    for key, value in data.items():
        if isinstance(value, str):
            params[key] = value
        else:
            params[key] = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return params


def _encode_headers(headers: dict[str, str]) -> dict[str, bytes]:
    """Encode header values as UTF-8; httpx encodes ``str`` values as ASCII."""
    return {name: value.encode("utf-8") for name, value in headers.items()}


class DeliveryAttemptEngine:
    """Performs one signed HTTP delivery attempt.

    Example:
        ```python
        engine = DeliveryAttemptEngine(SignatureService())
        outcome = await engine.attempt(
            "order.completed",
            {"order_id": 1},
            "https://example.com/hooks",
            DispatchOptions(secret="s3cret"),
        )
        ```
    """

    def __init__(
        self,
        signer: SignatureService,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Any = time.time,
    ) -> None:
        """Initialize the attempt engine.

        Args:
            signer: Signature service used when a secret is configured.
            transport: Optional httpx transport (tests inject MockTransport).
            clock: Callable returning the current unix time.
        """
        self._signer = signer
        self._transport = transport
        self._clock = clock

    @property
    def signer(self) -> SignatureService:
        return self._signer

    def build_payload(self, event: str, payload: Any, idempotency_key: str) -> dict[str, Any]:
        """Build the wire payload sent to the endpoint."""
        return {
            "event": event,
            "timestamp": int(self._clock()),
            "data": payload,
            "idempotency_key": idempotency_key,
        }

    def build_headers(
        self,
        wire_payload: dict[str, Any],
        options: DispatchOptions,
    ) -> dict[str, str]:
        """Build request headers, signing the wire payload if a secret is set."""
        headers = dict(options.headers)
        if options.secret:
            headers[SIGNATURE_HEADER] = self._signer.sign(wire_payload, options.secret)
            headers[ALGORITHM_HEADER] = self._signer.algorithm
        headers[EVENT_HEADER] = wire_payload["event"]
        headers[IDEMPOTENCY_HEADER] = wire_payload["idempotency_key"]
        headers["Content-Type"] = "application/json"
        return headers

    async def attempt(
        self,
        event: str,
        payload: Any,
        endpoint_url: str,
        options: DispatchOptions,
        idempotency_key: str | None = None,
    ) -> DeliveryOutcome:
        """Perform exactly one HTTP delivery attempt.

        Args:
            event: Event name.
            payload: Event payload (becomes the ``data`` field).
            endpoint_url: Destination URL.
            options: Validated dispatch options.
            idempotency_key: Key of the enclosing dispatch. Computed from
                (event, payload, endpoint_url) if not given.

        Returns:
            DeliveryOutcome describing the attempt.

        Raises:
            InvalidArgumentError: If the HTTP method is unsupported.
        """
        method = validate_method(options.method)
        if idempotency_key is None:
            idempotency_key = compute_idempotency_key(event, payload, endpoint_url)

        wire_payload = self.build_payload(event, payload, idempotency_key)
        headers = self.build_headers(wire_payload, options)

        request_kwargs: dict[str, Any] = {"headers": _encode_headers(headers)}
        if method == "GET":
            request_kwargs["params"] = _query_params(wire_payload)
        elif method != "DELETE":
            request_kwargs["content"] = self._signer.canonicalize(wire_payload).encode("utf-8")

        try:
            async with httpx.AsyncClient(
                timeout=options.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, endpoint_url, **request_kwargs)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            logger.warning(
                "Webhook attempt failed: %s to %s (%s)",
                event,
                endpoint_url,
                e,
            )
            return DeliveryOutcome.from_exception(e)

        outcome = DeliveryOutcome.from_response(response)
        if not outcome.ok:
            logger.warning(
                "Webhook returned non-success status: %s to %s (status %d)",
                event,
                endpoint_url,
                response.status_code,
            )
        return outcome


__all__ = [
    "ALGORITHM_HEADER",
    "EVENT_HEADER",
    "IDEMPOTENCY_HEADER",
    "SIGNATURE_HEADER",
    "DeliveryAttemptEngine",
    "DeliveryOutcome",
    "validate_method",
]
