"""Tests for endpoint fan-out and dead-letter replay."""

from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest
from conftest import RecordingTransport

from hookrelay.exceptions import NotFoundError
from hookrelay.models import WebhookEndpoint
from hookrelay.storage import InMemoryWebhookStore
from hookrelay.webhooks import (
    DeadLetterStore,
    InProcessQueue,
    WebhookDispatcher,
    WebhookManager,
)

DispatcherFactory = Callable[..., WebhookDispatcher]


async def register(store: InMemoryWebhookStore, **kwargs: object) -> WebhookEndpoint:
    endpoint = WebhookEndpoint(**kwargs)  # type: ignore[arg-type]
    await store.store_endpoint(endpoint)
    return endpoint


def make_manager(
    dispatcher: WebhookDispatcher, store: InMemoryWebhookStore
) -> WebhookManager:
    return WebhookManager(dispatcher, store, DeadLetterStore(store))


class TestEndpointsFor:
    """Tests for subscription matching."""

    async def test_filters_by_pattern_and_active(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        payments = await register(store, url="https://a.io/h", events=["payment.*"])
        await register(store, url="https://b.io/h", events=["order.created"])
        await register(store, url="https://c.io/h", events=["payment.*"], active=False)
        catch_all = await register(store, url="https://d.io/h")
        manager = make_manager(make_dispatcher(RecordingTransport(200)), store)

        endpoints = await manager.endpoints_for("payment.completed")

        assert {e.id for e in endpoints} == {payments.id, catch_all.id}


class TestDispatch:
    """Tests for WebhookManager.dispatch."""

    async def test_dispatches_to_each_subscriber(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        await register(store, url="https://a.io/h", events=["order.*"], secret="sa")
        await register(store, url="https://b.io/h", events=["order.*"], secret="sb")
        transport = RecordingTransport(200)
        manager = make_manager(make_dispatcher(transport), store)

        results = await manager.dispatch("order.created", {"id": 1})

        assert results == {"https://a.io/h": True, "https://b.io/h": True}
        assert transport.calls == 2
        deliveries = await store.list_deliveries(event="order.created")
        assert len(deliveries) == 2

    async def test_endpoint_options_applied(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        await register(
            store,
            url="https://a.io/h",
            secret="s3cret",
            retry_count=1,
            headers={"X-Tenant": "acme"},
        )
        transport = RecordingTransport(500)
        manager = make_manager(make_dispatcher(transport), store)

        results = await manager.dispatch("e", {})

        assert results == {"https://a.io/h": False}
        assert transport.calls == 2
        assert transport.requests[0].headers["X-Tenant"] == "acme"
        assert "X-Webhook-Signature" in transport.requests[0].headers

    async def test_no_subscribers(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        manager = make_manager(make_dispatcher(RecordingTransport(200)), store)

        assert await manager.dispatch("e", {}) == {}

    async def test_use_queue(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
        in_process_queue: InProcessQueue,
    ) -> None:
        await register(store, url="https://a.io/h")
        transport = RecordingTransport(200)
        manager = make_manager(make_dispatcher(transport, queue=in_process_queue), store)

        results = await manager.dispatch("e", {}, use_queue=True)

        assert results == {"https://a.io/h": True}
        assert in_process_queue.size("webhooks") == 1
        assert transport.calls == 0


class TestReplay:
    """Tests for dead-letter replay."""

    async def test_retry_failure_replays_original_options(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        transport = RecordingTransport(500, 500, 200)
        dispatcher = make_dispatcher(transport)
        manager = make_manager(dispatcher, store)

        ok = await dispatcher.dispatch_to(
            "e", {"a": 1}, "https://a.io/h", {"retry": 1, "headers": {"X-Tenant": "acme"}}
        )
        assert ok is False
        (failure,) = await store.list_failures()

        replayed = await manager.retry_failure(failure.id)

        assert replayed is True
        assert transport.requests[-1].headers["X-Tenant"] == "acme"
        stored = await store.get_failure(failure.id)
        assert stored is not None
        assert stored.retried_at is not None
        assert await store.list_failures(retried=False) == []

    async def test_failed_replay_creates_new_entry(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        transport = RecordingTransport(500)
        dispatcher = make_dispatcher(transport)
        manager = make_manager(dispatcher, store)
        await dispatcher.dispatch_to("e", {}, "https://a.io/h", {"retry": 0})
        (failure,) = await store.list_failures()

        replayed = await manager.retry_failure(failure.id)

        assert replayed is False
        assert len(await store.list_failures(retried=True)) == 1
        pending = await store.list_failures(retried=False)
        assert len(pending) == 1
        assert pending[0].id != failure.id
        assert pending[0].idempotency_key == failure.idempotency_key

    async def test_retry_failure_missing(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        manager = make_manager(make_dispatcher(RecordingTransport(200)), store)

        with pytest.raises(NotFoundError):
            await manager.retry_failure("whf_missing")

    async def test_retry_pending_counts_successes(
        self,
        make_dispatcher: DispatcherFactory,
        store: InMemoryWebhookStore,
    ) -> None:
        healthy = {"up": False}

        def handler(request: httpx.Request) -> httpx.Response:
            if healthy["up"] and request.url.host == "a.io":
                return httpx.Response(200)
            return httpx.Response(500)

        transport = RecordingTransport()
        transport.transport = httpx.MockTransport(handler)
        dispatcher = make_dispatcher(transport)
        manager = make_manager(dispatcher, store)
        await dispatcher.dispatch_to("e", {}, "https://a.io/h", {"retry": 0})
        await dispatcher.dispatch_to("e", {}, "https://b.io/h", {"retry": 0})

        healthy["up"] = True
        succeeded = await manager.retry_pending()

        assert succeeded == 1
        assert len(await store.list_failures(retried=True)) == 2
