"""Tests for hookrelay REST API."""

import json
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from hookrelay import __version__
from hookrelay.api import create_app
from hookrelay.api.router import router, set_service
from hookrelay.api.schemas import HealthResponse, WebhookReceiptResponse
from hookrelay.config import Settings
from hookrelay.logging import bound_context
from hookrelay.service import WebhookService
from hookrelay.signing import SignatureService

SECRET = "s3cret"
GITHUB_SECRET = "gh-secret"


def signed_json(payload: dict, secret: str = SECRET, **headers: str) -> dict:
    """Build request kwargs for a signed JSON webhook."""
    signature = SignatureService().sign(payload, secret)
    return {
        "content": json.dumps(payload),
        "headers": {
            "Content-Type": "application/json",
            "X-Webhook-Signature": signature,
            **headers,
        },
    }


@pytest.fixture
def settings():
    return Settings(
        env="test",
        inbound_secret=SECRET,
        provider_secrets={"github": GITHUB_SECRET},
    )


@pytest.fixture
def service(settings):
    """Create a real service backed by the in-memory store."""
    return WebhookService.create(settings)


@pytest.fixture
def test_app(service, settings):
    """Create a test app with the service installed."""
    app = create_app(settings)
    set_service(service)
    yield app
    set_service(None)


@pytest.fixture
def client(test_app):
    """Create a test client."""
    return TestClient(test_app)


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_when_service_initialized(self, client):
        """Should return healthy when service is ready."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["storage_backend"] == "memory"
        # Workers only start with the lifespan
        assert data["queue_running"] is False

    def test_health_when_service_not_initialized(self):
        """Should return unhealthy when service not ready."""
        app = FastAPI()
        app.include_router(router)
        set_service(None)
        test_client = TestClient(app)

        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"

    def test_lifespan_starts_and_stops_service(self, settings):
        """The lifespan should install a running service and remove it on shutdown."""
        app = create_app(settings)

        with TestClient(app) as test_client:
            data = test_client.get("/health").json()
            assert data["status"] == "healthy"
            assert data["queue_running"] is True

        assert TestClient(app).get("/health").json()["status"] == "unhealthy"


class TestReceiveWebhook:
    """Tests for POST /webhook."""

    def test_valid_json_webhook(self, client):
        """A correctly signed, fresh webhook should be accepted."""
        payload = {"event": "order.completed", "order_id": 7, "timestamp": int(time.time())}

        response = client.post("/webhook", **signed_json(payload))

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Webhook processed successfully",
            "event": "order.completed",
        }

    def test_event_header_takes_priority(self, client):
        payload = {"event": "from.body", "timestamp": int(time.time())}

        response = client.post(
            "/webhook", **signed_json(payload, **{"X-Webhook-Event": "from.header"})
        )

        assert response.status_code == 200
        assert response.json()["event"] == "from.header"

    def test_invalid_signature(self, client):
        """A wrong signature should be rejected with 401."""
        payload = {"event": "order.completed", "timestamp": int(time.time())}

        response = client.post("/webhook", **signed_json(payload, secret="wrong"))

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "authentication_error"

    def test_missing_signature(self, client):
        response = client.post(
            "/webhook",
            content=json.dumps({"event": "x", "timestamp": int(time.time())}),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 401

    def test_stale_timestamp(self, client):
        """A timestamp outside the replay window should be rejected."""
        payload = {"event": "order.completed", "timestamp": int(time.time()) - 600}

        response = client.post("/webhook", **signed_json(payload))

        assert response.status_code == 401
        assert "replay window" in response.json()["error"]["message"]

    def test_form_encoded_webhook(self, client):
        """Form bodies are verified over their decoded fields."""
        form = {"event": "ping", "timestamp": str(int(time.time()))}
        signature = SignatureService().sign(form, SECRET)

        response = client.post(
            "/webhook",
            data=form,
            headers={"X-Signature": signature},
        )

        assert response.status_code == 200
        assert response.json()["event"] == "ping"

    def test_registered_handler_runs(self, client, service):
        """Handlers registered on the receiver should see the payload."""
        seen = []
        service.receiver.on("order.*", lambda event, payload, request: seen.append(payload))
        payload = {"event": "order.shipped", "order_id": 9, "timestamp": int(time.time())}

        response = client.post("/webhook", **signed_json(payload))

        assert response.status_code == 200
        assert seen == [payload]

    def test_missing_secret(self):
        """Without a configured secret the request fails before verification."""
        settings = Settings(env="test")
        app = create_app(settings)
        set_service(WebhookService.create(settings))
        try:
            payload = {"event": "x", "timestamp": int(time.time())}
            response = TestClient(app).post("/webhook", **signed_json(payload))
        finally:
            set_service(None)

        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Webhook secret not configured"

    def test_service_not_initialized(self):
        app = create_app(Settings(env="test"))
        set_service(None)

        response = TestClient(app).post("/webhook", content=b"{}")

        assert response.status_code == 503


class TestReceiveProviderWebhook:
    """Tests for POST /webhook/{provider}."""

    def test_provider_secret_used(self, client):
        payload = {"event": "push", "timestamp": int(time.time())}
        signature = SignatureService().sign(payload, GITHUB_SECRET)

        response = client.post(
            "/webhook/github",
            content=json.dumps(payload),
            headers={
                "Content-Type": "application/json",
                "X-Hub-Signature-256": f"sha256={signature}",
                "X-GitHub-Event": "push",
            },
        )

        assert response.status_code == 200
        assert response.json()["event"] == "push"

    def test_shared_secret_rejected_for_provider_with_own_secret(self, client):
        payload = {"event": "push", "timestamp": int(time.time())}

        response = client.post("/webhook/github", **signed_json(payload, secret=SECRET))

        assert response.status_code == 401

    def test_unknown_provider_falls_back_to_shared_secret(self, client):
        payload = {"event": "charge.succeeded", "timestamp": int(time.time())}

        response = client.post("/webhook/stripe", **signed_json(payload))

        assert response.status_code == 200

    def test_provider_bound_to_logging_context(self, client, service):
        """Handlers run with the provider and path bound for log lines."""
        contexts = []
        service.receiver.on("*", lambda event, payload, request: contexts.append(bound_context()))
        payload = {"event": "charge.succeeded", "timestamp": int(time.time())}

        response = client.post("/webhook/stripe", **signed_json(payload))

        assert response.status_code == 200
        assert contexts[0]["provider"] == "stripe"
        assert contexts[0]["path"] == "/webhook/stripe"

    @pytest.mark.parametrize("provider", ["GitHub", "git.hub", "a%20b"])
    def test_invalid_provider_name(self, client, provider):
        """Provider names outside [a-z0-9_-] should fail validation."""
        payload = {"event": "push", "timestamp": int(time.time())}

        response = client.post(f"/webhook/{provider}", **signed_json(payload))

        assert response.status_code == 422


class TestSchemas:
    """Tests for response schemas."""

    def test_receipt_defaults_to_success(self):
        response = WebhookReceiptResponse(message="ok", event="ping")
        assert response.success is True

    def test_health_defaults(self):
        response = HealthResponse(status="unhealthy", version="0.1.0")
        assert response.storage_backend is None
        assert response.queue_running is False
