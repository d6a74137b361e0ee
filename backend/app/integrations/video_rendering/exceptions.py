"""Error taxonomy for the video rendering module."""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Closed set of machine-readable error codes."""

    INVALID_PROVIDER = "INVALID_PROVIDER"
    INVALID_REQUEST = "INVALID_REQUEST"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    TIMEOUT = "TIMEOUT"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"


class VideoRendererError(Exception):
    """The single typed error raised by provider clients and the renderer.

    ``context`` carries structured diagnostics (provider name, HTTP status,
    a fragment of the raw response, ``retry_after_ms`` for rate limits) so
    operators can diagnose a failure without reproducing the call.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode | str = ErrorCode.PROVIDER_ERROR,
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = ErrorCode(code)
        self.context: dict[str, Any] = dict(context or {})
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"

    @property
    def provider(self) -> str | None:
        return self.context.get("provider")

    @property
    def retry_after_ms(self) -> int | None:
        """Provider-suggested wait before rescheduling, for RATE_LIMITED errors."""
        value = self.context.get("retry_after_ms")
        return int(value) if value is not None else None

    @property
    def is_retriable(self) -> bool:
        """Only rate limits are retriable; everything else ends the attempt."""
        return self.code is ErrorCode.RATE_LIMITED

    def with_context(self, **extra: Any) -> "VideoRendererError":
        """Return a copy of this error with additional context merged in."""
        merged = {**self.context, **{k: v for k, v in extra.items() if v is not None}}
        error = VideoRendererError(self.message, self.code, merged)
        error.__cause__ = self.__cause__
        return error

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context,
        }
