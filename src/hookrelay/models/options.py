"""Dispatch options: the explicit configuration for one webhook dispatch."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hookrelay.exceptions import InvalidArgumentError

# HTTP methods the attempt engine knows how to send
SUPPORTED_METHODS: frozenset[str] = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


class DispatchOptions(BaseModel):
    """Options controlling a single dispatch and all of its attempts.

    Attributes:
        secret: Shared secret; when set the payload is signed.
        timeout: Per-attempt HTTP timeout in seconds.
        retry: Additional attempts after the first (total = retry + 1).
        retry_delay: Base backoff delay in milliseconds.
        method: HTTP method (upper-cased, validated by the attempt engine).
        headers: Extra headers sent with every attempt.
        endpoint_id: Registered endpoint id; enables delivery tracking.
        queue: Queue name for async dispatch (None uses the configured default).
    """

    model_config = ConfigDict(extra="forbid")

    secret: str | None = Field(default=None, description="HMAC secret (optional)")
    timeout: float = Field(default=30.0, gt=0, description="Per-attempt timeout in seconds")
    retry: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_delay: int = Field(default=1000, ge=1, description="Base backoff delay in ms")
    method: str = Field(default="POST", description="HTTP method")
    headers: dict[str, str] = Field(default_factory=dict, description="Custom headers")
    endpoint_id: str | None = Field(default=None, description="Endpoint id for tracking")
    queue: str | None = Field(default=None, description="Queue name for async dispatch")

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()

    @field_validator("headers")
    @classmethod
    def _ascii_header_names(cls, value: dict[str, str]) -> dict[str, str]:
        # Values may be any Unicode; names must be ASCII tokens
        for name in value:
            if not name.isascii():
                raise ValueError(f"Header name must be ASCII: {name!r}")
        return value

    @property
    def max_attempts(self) -> int:
        return self.retry + 1

    @property
    def tracked(self) -> bool:
        """Whether outcomes of this dispatch are written to storage."""
        return self.endpoint_id is not None

    @classmethod
    def coerce(
        cls,
        options: DispatchOptions | Mapping[str, Any] | None,
        defaults: DispatchOptions | None = None,
    ) -> DispatchOptions:
        """Validate caller-supplied options once at the dispatch boundary.

        Args:
            options: Options model, plain mapping, or None.
            defaults: Values used for keys the caller did not provide.

        Returns:
            A validated DispatchOptions instance.

        Raises:
            InvalidArgumentError: If the mapping has unknown keys or bad values.
        """
        if isinstance(options, DispatchOptions):
            return options
        base = defaults.model_dump(exclude_unset=True) if defaults is not None else {}
        if options:
            base.update(options)
        try:
            return cls.model_validate(base)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(part) for part in err['loc']) or 'options'}: {err['msg']}"
                for err in e.errors()
            )
            raise InvalidArgumentError("options", errors) from e


__all__ = ["SUPPORTED_METHODS", "DispatchOptions"]
