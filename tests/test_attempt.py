"""Tests for the single-attempt delivery engine."""

from __future__ import annotations

import json
import logging

import httpx
import pytest
from conftest import FIXED_NOW, RecordingTransport

from hookrelay.exceptions import ConfigurationError, InvalidArgumentError
from hookrelay.models import DispatchOptions
from hookrelay.signing import SignatureService, compute_idempotency_key
from hookrelay.webhooks.attempt import (
    ALGORITHM_HEADER,
    EVENT_HEADER,
    IDEMPOTENCY_HEADER,
    SIGNATURE_HEADER,
    DeliveryAttemptEngine,
    DeliveryOutcome,
    validate_method,
)

URL = "https://example.com/hooks"


def make_engine(signer: SignatureService, transport: RecordingTransport) -> DeliveryAttemptEngine:
    return DeliveryAttemptEngine(signer, transport=transport.transport, clock=lambda: FIXED_NOW)


class TestBuildPayload:
    """Tests for wire payload construction."""

    def test_wire_payload_shape(self, signer: SignatureService) -> None:
        engine = DeliveryAttemptEngine(signer, clock=lambda: 1234.9)

        payload = engine.build_payload("order.completed", {"id": 1}, "key123")

        assert payload == {
            "event": "order.completed",
            "timestamp": 1234,
            "data": {"id": 1},
            "idempotency_key": "key123",
        }

    def test_headers_unsigned_without_secret(self, signer: SignatureService) -> None:
        engine = DeliveryAttemptEngine(signer)
        wire = engine.build_payload("e", {}, "k")

        headers = engine.build_headers(wire, DispatchOptions())

        assert SIGNATURE_HEADER not in headers
        assert headers[EVENT_HEADER] == "e"
        assert headers[IDEMPOTENCY_HEADER] == "k"
        assert headers["Content-Type"] == "application/json"

    def test_custom_headers_kept(self, signer: SignatureService) -> None:
        engine = DeliveryAttemptEngine(signer)
        wire = engine.build_payload("e", {}, "k")

        headers = engine.build_headers(wire, DispatchOptions(headers={"X-Tenant": "acme"}))

        assert headers["X-Tenant"] == "acme"


class TestAttempt:
    """Tests for DeliveryAttemptEngine.attempt."""

    async def test_post_sends_signed_canonical_body(self, signer: SignatureService) -> None:
        """POST body should be the canonical JSON the signature covers."""
        transport = RecordingTransport(200)
        engine = make_engine(signer, transport)

        outcome = await engine.attempt(
            "order.completed", {"id": 7}, URL, DispatchOptions(secret="s3cret")
        )

        assert outcome.ok is True
        assert outcome.status_code == 200
        request = transport.requests[0]
        assert request.method == "POST"
        body = json.loads(request.content)
        assert body["event"] == "order.completed"
        assert body["timestamp"] == FIXED_NOW
        assert body["data"] == {"id": 7}
        assert request.content.decode() == signer.canonicalize(body)
        assert request.headers[SIGNATURE_HEADER] == signer.sign(body, "s3cret")
        assert request.headers[ALGORITHM_HEADER] == "sha256"

    async def test_idempotency_key_defaults_to_computed(self, signer: SignatureService) -> None:
        transport = RecordingTransport(200)
        engine = make_engine(signer, transport)

        await engine.attempt("e", {"a": 1}, URL, DispatchOptions())

        expected = compute_idempotency_key("e", {"a": 1}, URL)
        assert transport.requests[0].headers[IDEMPOTENCY_HEADER] == expected
        assert json.loads(transport.requests[0].content)["idempotency_key"] == expected

    async def test_explicit_idempotency_key_used(self, signer: SignatureService) -> None:
        transport = RecordingTransport(200)
        engine = make_engine(signer, transport)

        await engine.attempt("e", {}, URL, DispatchOptions(), idempotency_key="fixed")

        assert transport.requests[0].headers[IDEMPOTENCY_HEADER] == "fixed"

    async def test_get_sends_query_params(self, signer: SignatureService) -> None:
        """GET should carry the wire payload in the query string and no body."""
        transport = RecordingTransport(200)
        engine = make_engine(signer, transport)

        await engine.attempt("e", {"a": 1}, URL, DispatchOptions(method="get"))

        request = transport.requests[0]
        assert request.method == "GET"
        assert request.content == b""
        assert request.url.params["event"] == "e"
        assert request.url.params["timestamp"] == str(FIXED_NOW)
        assert json.loads(request.url.params["data"]) == {"a": 1}

    async def test_delete_sends_no_body(self, signer: SignatureService) -> None:
        transport = RecordingTransport(204)
        engine = make_engine(signer, transport)

        outcome = await engine.attempt("e", {"a": 1}, URL, DispatchOptions(method="DELETE"))

        assert outcome.ok is True
        assert transport.requests[0].method == "DELETE"
        assert transport.requests[0].content == b""

    @pytest.mark.parametrize("method", ["PUT", "PATCH"])
    async def test_put_patch_send_body(self, signer: SignatureService, method: str) -> None:
        transport = RecordingTransport(200)
        engine = make_engine(signer, transport)

        await engine.attempt("e", {"a": 1}, URL, DispatchOptions(method=method))

        assert transport.requests[0].method == method
        assert json.loads(transport.requests[0].content)["data"] == {"a": 1}

    async def test_non_2xx_is_failed_outcome(
        self, signer: SignatureService, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Non-2xx responses should not raise."""
        transport = RecordingTransport(503)
        engine = make_engine(signer, transport)

        with caplog.at_level(logging.WARNING, logger="hookrelay.webhooks.attempt"):
            outcome = await engine.attempt("e", {}, URL, DispatchOptions())

        assert outcome.ok is False
        assert outcome.status_code == 503
        assert outcome.body == "status 503"
        assert outcome.error == "HTTP 503"
        assert "non-success" in caplog.text

    async def test_redirect_is_not_success(self, signer: SignatureService) -> None:
        transport = RecordingTransport(302)
        engine = make_engine(signer, transport)

        outcome = await engine.attempt("e", {}, URL, DispatchOptions())

        assert outcome.ok is False
        assert outcome.status_code == 302

    async def test_connection_error_is_failed_outcome(self, signer: SignatureService) -> None:
        transport = RecordingTransport(httpx.ConnectError("connection refused"))
        engine = make_engine(signer, transport)

        outcome = await engine.attempt("e", {}, URL, DispatchOptions())

        assert outcome.ok is False
        assert outcome.status_code is None
        assert outcome.body is None
        assert "connection refused" in (outcome.error or "")

    async def test_timeout_is_failed_outcome(self, signer: SignatureService) -> None:
        transport = RecordingTransport(httpx.ReadTimeout("timed out"))
        engine = make_engine(signer, transport)

        outcome = await engine.attempt("e", {}, URL, DispatchOptions(timeout=0.5))

        assert outcome.ok is False
        assert outcome.error == "timed out"

    async def test_unsupported_method_raises_before_network(
        self, signer: SignatureService
    ) -> None:
        transport = RecordingTransport(200)
        engine = make_engine(signer, transport)

        with pytest.raises(InvalidArgumentError, match="Unsupported HTTP method"):
            await engine.attempt("e", {}, URL, DispatchOptions(method="TRACE"))

        assert transport.calls == 0

    async def test_non_ascii_event_and_header_values(self, signer: SignatureService) -> None:
        """Unicode event names and header values are sent as UTF-8."""
        transport = RecordingTransport(200)
        engine = make_engine(signer, transport)
        options = DispatchOptions(secret="s3cret", headers={"X-Tenant": "Zürich"})

        outcome = await engine.attempt("commande.créée", {"ville": "Zürich"}, URL, options)

        assert outcome.ok is True
        request = transport.requests[0]
        raw = {name.lower(): value for name, value in request.headers.raw}
        assert raw[EVENT_HEADER.lower().encode()] == "commande.créée".encode()
        assert raw[b"x-tenant"] == "Zürich".encode()
        body = json.loads(request.content)
        assert body["event"] == "commande.créée"
        assert request.headers[SIGNATURE_HEADER] == signer.sign(body, "s3cret")

    def test_non_ascii_header_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="ASCII"):
            DispatchOptions(headers={"X-Tënant": "acme"})


class TestValidateMethod:
    """Tests for validate_method."""

    def test_normalizes_case(self) -> None:
        assert validate_method("patch") == "PATCH"

    def test_invalid_method_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_method("CONNECT")


class TestDeliveryOutcome:
    """Tests for DeliveryOutcome constructors."""

    def test_from_exception_uses_type_name_for_empty_message(self) -> None:
        outcome = DeliveryOutcome.from_exception(httpx.ConnectError(""))

        assert outcome.error == "ConnectError"
        assert outcome.ok is False
