"""Abstract base class and shared HTTP handling for video provider clients."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from ..exceptions import ErrorCode, VideoRendererError
from ..types import VideoGenerationRequest, VideoGenerationResult

logger = logging.getLogger(__name__)

RESPONSE_FRAGMENT_LIMIT = 500


def parse_retry_after_ms(value: Any, now: datetime | None = None) -> int | None:
    """Parse a Retry-After header value (delta-seconds or HTTP date) into milliseconds."""
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        now = now or datetime.now(tz=timezone.utc)
        seconds = (retry_at - now).total_seconds()
    return max(0, int(round(seconds * 1000)))


def response_header(response: httpx.Response, name: str) -> Any:
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    try:
        return headers.get(name)
    except AttributeError:
        return None


def response_error_detail(response: httpx.Response) -> str | None:
    """Best-effort provider error message from a failed response."""
    detail = None
    try:
        data = response.json()
    except Exception:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            detail = error.get("message")
        elif isinstance(error, str):
            detail = error
        detail = detail or data.get("message")
    if not isinstance(detail, str):
        text = getattr(response, "text", None)
        detail = text if isinstance(text, str) else None
    if detail:
        return detail[:RESPONSE_FRAGMENT_LIMIT]
    return None


class ProviderClient(ABC):
    """Contract every video provider client implements.

    ``start_generation`` submits a job and returns it as ``pending``;
    ``check_status`` is a read-only poll that can be repeated safely. Every
    failure surfaces as a ``VideoRendererError``.
    """

    provider_name: str = "base"

    # Whether completed output lives somewhere durable (our disk, GCS) or has
    # to be mirrored by the persistence collaborator.
    hosts_output_durably: bool = True

    # Longest clip a single call produces.
    native_max_seconds: int = 8

    request_timeout: float = 30.0

    @abstractmethod
    async def start_generation(self, request: VideoGenerationRequest) -> VideoGenerationResult:
        """
        Submit a generation job.

        Args:
            request: Provider-agnostic generation request

        Returns:
            VideoGenerationResult with the provider job id and status ``pending``

        Raises:
            VideoRendererError: INVALID_REQUEST, CONFIGURATION_ERROR or a transport code
        """
        ...

    @abstractmethod
    async def check_status(self, job_id: str) -> VideoGenerationResult:
        """
        Poll a previously submitted job.

        Args:
            job_id: The provider's job handle returned by ``start_generation``

        Returns:
            VideoGenerationResult with the current normalized status
        """
        ...

    def content_headers(self) -> dict[str, str]:
        """Headers needed to download completed output, if any."""
        return {}

    def describe_endpoint(self) -> str:
        """Endpoint label used in audit logs."""
        return self.provider_name

    def _error(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        **context: Any,
    ) -> VideoRendererError:
        return VideoRendererError(
            message,
            code,
            {"provider": self.provider_name, **{k: v for k, v in context.items() if v is not None}},
        )

    def _require_prompt(self, request: VideoGenerationRequest) -> str:
        prompt = (request.prompt or "").strip() if isinstance(request.prompt, str) else ""
        if not prompt:
            raise self._error(
                f"Prompt is required for {self.provider_name} video generation",
                ErrorCode.INVALID_REQUEST,
            )
        return prompt

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request and map transport and HTTP failures onto the taxonomy."""
        try:
            async with httpx.AsyncClient() as client:
                if method == "GET":
                    response = await client.get(url, headers=headers, timeout=self.request_timeout)
                else:
                    response = await client.post(
                        url, headers=headers, json=json, timeout=self.request_timeout
                    )
        except httpx.TimeoutException as e:
            raise self._error(
                f"{self.provider_name} request timed out", ErrorCode.TIMEOUT, endpoint=url
            ) from e
        except httpx.HTTPError as e:
            raise self._error(
                f"{self.provider_name} request failed: {e}", endpoint=url
            ) from e

        self._raise_for_status(response, url)
        return response

    def _raise_for_status(self, response: httpx.Response, endpoint: str) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return

        detail = response_error_detail(response)
        if status == 429:
            retry_after_ms = parse_retry_after_ms(response_header(response, "Retry-After"))
            logger.warning(
                "%s rate limited (retry_after_ms=%s)", self.provider_name, retry_after_ms
            )
            raise self._error(
                f"{self.provider_name} rate limited",
                ErrorCode.RATE_LIMITED,
                http_status=status,
                retry_after_ms=retry_after_ms,
                endpoint=endpoint,
                response=detail,
            )
        if status in (401, 403):
            raise self._error(
                f"Authentication failed for {self.provider_name}"
                + (f": {detail}" if detail else ""),
                ErrorCode.AUTH_ERROR,
                http_status=status,
                endpoint=endpoint,
                response=detail,
            )
        message = f"{self.provider_name} request failed (status {status})"
        if detail:
            message += f": {detail}"
        raise self._error(message, http_status=status, endpoint=endpoint, response=detail)

    def _json(self, response: httpx.Response, endpoint: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise self._error(
                f"{self.provider_name} returned an invalid JSON payload",
                http_status=response.status_code,
                endpoint=endpoint,
            ) from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise self._error(
                f"{self.provider_name} returned an unexpected payload type",
                http_status=response.status_code,
                endpoint=endpoint,
                response=str(data)[:RESPONSE_FRAGMENT_LIMIT],
            )
        return data
