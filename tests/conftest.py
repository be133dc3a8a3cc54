"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from hookrelay.config import Settings
from hookrelay.signing import SignatureService
from hookrelay.storage import InMemoryWebhookStore
from hookrelay.webhooks import (
    DeadLetterStore,
    DeliveryAttemptEngine,
    InProcessQueue,
    OutcomeRecorder,
    WebhookDispatcher,
)

FIXED_NOW = 1_700_000_000


class RecordingTransport:
    """MockTransport wrapper replaying a scripted sequence of responses.

    Each script item is a status code, an ``httpx.Response`` or an exception
    instance to raise. The last item repeats once the script is exhausted.
    """

    def __init__(self, *script: int | httpx.Response | Exception) -> None:
        self.script = list(script) or [200]
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        index = min(len(self.requests), len(self.script) - 1)
        self.requests.append(request)
        item = self.script[index]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(item, text=f"status {item}")

    @property
    def calls(self) -> int:
        return len(self.requests)


class SleepRecorder:
    """Replacement for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def settings() -> Settings:
    """Settings for tests: memory storage, defaults elsewhere."""
    return Settings(env="test", storage_backend="memory")


@pytest.fixture
def signer() -> SignatureService:
    return SignatureService("sha256")


@pytest.fixture
def store() -> InMemoryWebhookStore:
    return InMemoryWebhookStore()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_dispatcher(
    signer: SignatureService,
    store: InMemoryWebhookStore,
    settings: Settings,
    sleeper: SleepRecorder,
) -> Callable[..., WebhookDispatcher]:
    """Factory building a dispatcher around a scripted transport."""

    def factory(
        transport: RecordingTransport,
        queue: Any = None,
        dispatcher_settings: Settings | None = None,
    ) -> WebhookDispatcher:
        engine = DeliveryAttemptEngine(
            signer, transport=transport.transport, clock=lambda: FIXED_NOW
        )
        return WebhookDispatcher(
            engine,
            OutcomeRecorder(store),
            DeadLetterStore(store),
            queue=queue,
            settings=dispatcher_settings or settings,
            sleep=sleeper,
        )

    return factory


@pytest.fixture
def in_process_queue() -> InProcessQueue:
    return InProcessQueue(workers=1)
