"""Data models for hookrelay.

Records:
    - WebhookEndpoint: Registered delivery target with event patterns
    - WebhookDelivery: Logged outcome of one dispatch
    - WebhookFailure: Dead-letter entry for an exhausted dispatch

Supporting Types:
    - DispatchOptions: Validated options for one dispatch
"""

from .base import generate_id, truncate, utcnow
from .delivery import WebhookDelivery
from .endpoint import WebhookEndpoint
from .failure import WebhookFailure
from .options import SUPPORTED_METHODS, DispatchOptions

__all__ = [
    "SUPPORTED_METHODS",
    "DispatchOptions",
    "WebhookDelivery",
    "WebhookEndpoint",
    "WebhookFailure",
    "generate_id",
    "truncate",
    "utcnow",
]
