"""hookrelay: signed webhook delivery and verified webhook receipt.

Dispatches events to external HTTP endpoints with HMAC signatures,
exponential backoff retry and a dead-letter store, and authenticates
inbound webhooks before handing them to application handlers.

Quick Start:
    from hookrelay.service import WebhookService

    async with WebhookService.create() as hooks:
        # Send one event to one URL
        ok = await hooks.dispatcher.dispatch_to(
            "order.completed",
            {"order_id": 42},
            "https://example.com/hooks",
            {"secret": "s3cret", "retry": 3},
        )

        # Replay everything that exhausted its retries
        replayed = await hooks.manager.retry_pending()

Records:
    - WebhookEndpoint: Registered destination with event patterns
    - WebhookDelivery: Log entry for one finished dispatch
    - WebhookFailure: Dead-letter entry for an exhausted dispatch
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    HookRelayError,
    InvalidArgumentError,
    NonSuccessResponse,
    NotFoundError,
    PersistenceFailure,
    QueueUnavailableError,
    StorageError,
    TransportFailure,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    logger,
    unbind_context,
)

# Models
from .models import (
    DispatchOptions,
    WebhookDelivery,
    WebhookEndpoint,
    WebhookFailure,
)

# Signing
from .signing import SignatureService, canonical_json, compute_idempotency_key

__all__ = [
    # Version
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "HookRelayError",
    "ConfigurationError",
    "InvalidArgumentError",
    "TransportFailure",
    "NonSuccessResponse",
    "AuthenticationError",
    "QueueUnavailableError",
    "StorageError",
    "PersistenceFailure",
    "NotFoundError",
    # Logging
    "configure_logging",
    "get_logger",
    "logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    # Models
    "DispatchOptions",
    "WebhookEndpoint",
    "WebhookDelivery",
    "WebhookFailure",
    # Signing
    "SignatureService",
    "canonical_json",
    "compute_idempotency_key",
]
