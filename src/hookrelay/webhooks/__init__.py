"""Webhook delivery and receipt for hookrelay.

Provides HMAC-signed webhook delivery with exponential backoff retry,
a dead-letter store for exhausted dispatches, and verified inbound
webhook processing.

Example:
    ```python
    from hookrelay.webhooks import WebhookDispatcher

    ok = await dispatcher.dispatch_to(
        "order.completed",
        {"order_id": 1},
        "https://example.com/hooks",
        {"secret": "s3cret", "retry": 3},
    )
    ```
"""

from .attempt import DeliveryAttemptEngine, DeliveryOutcome
from .backoff import compute_backoff_ms, wait_backoff
from .dead_letter import DeadLetterStore
from .dispatcher import WebhookDispatcher
from .manager import WebhookManager
from .queue import DispatchJob, InProcessQueue, WorkQueue
from .receiver import InboundRequest, ReceivedWebhook, WebhookReceiver
from .recorder import OutcomeRecorder

__all__ = [
    "DeadLetterStore",
    "DeliveryAttemptEngine",
    "DeliveryOutcome",
    "DispatchJob",
    "InProcessQueue",
    "InboundRequest",
    "OutcomeRecorder",
    "ReceivedWebhook",
    "WebhookDispatcher",
    "WebhookManager",
    "WebhookReceiver",
    "WorkQueue",
    "compute_backoff_ms",
    "wait_backoff",
]
