"""Exponential backoff with jitter for webhook retries.

For zero-indexed retry ``n`` (0 = first retry after the initial failed
attempt):

    delay_ms = min(base_ms * 2**n + jitter, max_ms),  jitter in [0, jitter_ms]

With the defaults this gives nominal delays of 1s, 2s, 4s, 8s, 16s, ...
capped at 60s, each with up to one second of random jitter so that many
simultaneous failures do not retry in lockstep.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from tenacity.wait import wait_base

if TYPE_CHECKING:
    from tenacity import RetryCallState

DEFAULT_BASE_MS = 1000
DEFAULT_MAX_MS = 60000
DEFAULT_JITTER_MS = 1000


def compute_backoff_ms(
    retry_index: int,
    base_ms: int = DEFAULT_BASE_MS,
    max_ms: int = DEFAULT_MAX_MS,
    jitter_ms: int = DEFAULT_JITTER_MS,
    rng: random.Random | None = None,
) -> int:
    """Backoff delay in milliseconds before retry ``retry_index``.

    Args:
        retry_index: Zero-indexed retry number.
        base_ms: Delay before the first retry, without jitter.
        max_ms: Cap applied to the jittered delay.
        jitter_ms: Upper bound of the uniform random jitter.
        rng: Random source (module-level PRNG if None).

    Returns:
        Delay in milliseconds.
    """
    if retry_index < 0:
        raise ValueError(f"retry_index must be >= 0, got {retry_index}")
    source = rng if rng is not None else random
    jitter = source.randint(0, jitter_ms) if jitter_ms > 0 else 0
    return min(base_ms * (2**retry_index) + jitter, max_ms)


class wait_backoff(wait_base):
    """Tenacity wait strategy implementing :func:`compute_backoff_ms`."""

    def __init__(
        self,
        base_ms: int = DEFAULT_BASE_MS,
        max_ms: int = DEFAULT_MAX_MS,
        jitter_ms: int = DEFAULT_JITTER_MS,
        rng: random.Random | None = None,
    ) -> None:
        self.base_ms = base_ms
        self.max_ms = max_ms
        self.jitter_ms = jitter_ms
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        # attempt_number is 1 after the first failure, i.e. before retry 0
        retry_index = retry_state.attempt_number - 1
        delay_ms = compute_backoff_ms(
            retry_index,
            base_ms=self.base_ms,
            max_ms=self.max_ms,
            jitter_ms=self.jitter_ms,
            rng=self.rng,
        )
        return delay_ms / 1000.0


__all__ = [
    "DEFAULT_BASE_MS",
    "DEFAULT_JITTER_MS",
    "DEFAULT_MAX_MS",
    "compute_backoff_ms",
    "wait_backoff",
]
