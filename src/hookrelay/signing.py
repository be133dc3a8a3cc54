"""HMAC signatures over canonicalized webhook payloads.

Sender and receiver recompute signatures independently, so both must
serialize a payload to exactly the same bytes:

- top-level keys sorted lexicographically (nested objects keep their order)
- compact JSON separators, no whitespace
- Unicode kept as-is, slashes not escaped
"""

from __future__ import annotations

import hashlib
import hmac
import json
from collections.abc import Mapping
from typing import Any

from hookrelay.exceptions import ConfigurationError

SUPPORTED_ALGORITHMS: dict[str, Any] = {
    "sha256": hashlib.sha256,
    "sha1": hashlib.sha1,
    "sha512": hashlib.sha512,
}


def canonical_json(value: Any) -> str:
    """Serialize a value as compact JSON with Unicode preserved."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def compute_idempotency_key(event: str, payload: Any, endpoint_url: str) -> str:
    """Compute the idempotency key for one logical dispatch.

    The key is ``sha256(event + canonical payload + endpoint_url)``. It is
    deterministic, so every retry and every replay of the same dispatch
    carries the same key and receivers can deduplicate redeliveries.

    Args:
        event: Event name.
        payload: Event payload (any JSON-serializable value).
        endpoint_url: Destination URL.

    Returns:
        Hex SHA-256 digest.
    """
    if isinstance(payload, Mapping):
        serialized = canonical_json(dict(sorted(payload.items())))
    else:
        serialized = canonical_json(payload)
    material = f"{event}{serialized}{endpoint_url}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class SignatureService:
    """Computes and verifies HMAC signatures for webhook payloads.

    Example:
        ```python
        signer = SignatureService("sha256")
        signature = signer.sign({"event": "order.completed"}, "secret")
        assert signer.verify(signature, {"event": "order.completed"}, "secret")
        ```
    """

    def __init__(self, algorithm: str = "sha256") -> None:
        """Initialize the signature service.

        Args:
            algorithm: Hash algorithm: sha256, sha1 or sha512.

        Raises:
            ConfigurationError: If the algorithm is not supported.
        """
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationError(f"Unsupported hash algorithm: {algorithm}")
        self._algorithm = algorithm
        self._digestmod = SUPPORTED_ALGORITHMS[algorithm]

    @property
    def algorithm(self) -> str:
        return self._algorithm

    @staticmethod
    def canonicalize(payload: Mapping[str, Any]) -> str:
        """Serialize a payload to its canonical signing form."""
        return canonical_json(dict(sorted(payload.items())))

    def sign(self, payload: Mapping[str, Any], secret: str) -> str:
        """Compute the hex HMAC signature of a payload.

        Args:
            payload: Mapping to sign.
            secret: Shared secret used as the HMAC key.

        Returns:
            Lowercase hex digest.
        """
        return hmac.new(
            key=secret.encode("utf-8"),
            msg=self.canonicalize(payload).encode("utf-8"),
            digestmod=self._digestmod,
        ).hexdigest()

    def verify(self, signature: str, payload: Mapping[str, Any], secret: str) -> bool:
        """Verify a signature using a constant-time comparison.

        Args:
            signature: Hex signature to check.
            payload: Mapping that was signed.
            secret: Shared secret used as the HMAC key.

        Returns:
            True if the signature matches, False otherwise.
        """
        expected = self.sign(payload, secret)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


__all__ = [
    "SUPPORTED_ALGORITHMS",
    "SignatureService",
    "canonical_json",
    "compute_idempotency_key",
]
