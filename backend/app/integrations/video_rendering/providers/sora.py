"""Sora (OpenAI) video generation client."""

import logging
import math
import os
from typing import Any

from ..exceptions import ErrorCode
from ..planning import DEFAULT_SORA_MODEL, nearest_supported
from ..types import SoraOptions, VideoGenerationRequest, VideoGenerationResult
from .base import ProviderClient

logger = logging.getLogger(__name__)

SORA_ALLOWED_MODELS = ("sora-2", "sora-2-pro")
SORA_ALLOWED_SIZES = ("720x1280", "1280x720", "1024x1792", "1792x1024")
SORA_ALLOWED_SECONDS = ("4", "8", "12")

# Aspect ratio -> Sora size. None means "no legal size": omit and let the API default apply.
ASPECT_RATIO_SIZES: dict[str, str | None] = {
    "9:16": "720x1280",
    "16:9": "1280x720",
    "1:1": None,
    "4:5": "1024x1792",
    "5:4": "1792x1024",
}


def map_aspect_ratio_to_size(aspect_ratio: str | None) -> str | None:
    """Map an aspect ratio to a legal Sora size, or None when it cannot be mapped."""
    if not aspect_ratio or not isinstance(aspect_ratio, str):
        return None
    normalized = aspect_ratio.strip().lower()
    if normalized in ASPECT_RATIO_SIZES:
        mapped = ASPECT_RATIO_SIZES[normalized]
    else:
        mapped = normalized.replace(":", "x")
    return mapped if mapped in SORA_ALLOWED_SIZES else None


def map_duration_to_seconds(duration: float | None) -> str | None:
    """Map a duration to the nearest legal Sora seconds value (ties go to the first)."""
    if duration is None:
        return None
    try:
        value = float(duration)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    allowed = [int(seconds) for seconds in SORA_ALLOWED_SECONDS]
    return str(nearest_supported(value, allowed))


class SoraClient(ProviderClient):
    """Sora client for the OpenAI videos API."""

    provider_name = "sora"
    hosts_output_durably = False
    native_max_seconds = 12

    BASE_URL = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        request_timeout: float = 30.0,
    ):
        """
        Initialize the Sora client.

        Args:
            api_key: OpenAI API key. If not provided, uses OPENAI_API_KEY env var.
            base_url: OpenAI API base URL.
            default_model: Model used when the request does not name one.
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.base_url = (base_url or os.environ.get("SORA_BASE_URL") or self.BASE_URL).rstrip("/")
        self.default_model = default_model or os.environ.get("SORA_DEFAULT_MODEL") or DEFAULT_SORA_MODEL
        self.request_timeout = request_timeout

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers for API requests."""
        if not self.api_key:
            raise self._error(
                "Missing OpenAI API key for Sora video generation. Set OPENAI_API_KEY.",
                ErrorCode.CONFIGURATION_ERROR,
            )
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def content_headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"Authorization": f"Bearer {self.api_key}"}

    def content_url(self, video_id: str) -> str:
        return f"{self.base_url}/videos/{video_id}/content"

    def describe_endpoint(self) -> str:
        return f"{self.base_url}/videos"

    def _resolve_model(self, requested: str | None) -> str:
        """Requested model, then the client default, then the provider default."""
        for model in (requested, self.default_model):
            if not model:
                continue
            if model in SORA_ALLOWED_MODELS:
                return model
            logger.warning("[Sora] Invalid model %r, falling back", model)
        return DEFAULT_SORA_MODEL

    def build_payload(self, request: VideoGenerationRequest) -> dict[str, Any]:
        """
        Build the Sora request body.

        Each field is resolved in order: explicit ``provider_options.sora``
        value, then the value mapped from the unified request, then the client
        default (model only). A field with no value is omitted so the API
        default applies.
        """
        prompt = self._require_prompt(request)
        options = request.provider_options.sora or SoraOptions()

        payload: dict[str, Any] = {
            "prompt": prompt,
            "model": self._resolve_model(options.model),
        }

        if options.size:
            if options.size in SORA_ALLOWED_SIZES:
                payload["size"] = options.size
            else:
                logger.warning("[Sora] Invalid size %r, ignoring", options.size)
        else:
            size = map_aspect_ratio_to_size(request.aspect_ratio)
            if size:
                payload["size"] = size

        if options.seconds:
            if options.seconds in SORA_ALLOWED_SECONDS:
                payload["seconds"] = options.seconds
            else:
                logger.warning("[Sora] Invalid seconds %r, ignoring", options.seconds)
        else:
            seconds = map_duration_to_seconds(request.duration)
            if seconds:
                payload["seconds"] = seconds

        return payload

    def _parse_video_response(self, video_id: str, data: dict[str, Any]) -> VideoGenerationResult:
        """Convert a Sora job payload into the unified result."""
        status = data.get("status")

        if status in ("succeeded", "completed"):
            seconds = data.get("seconds")
            try:
                measured = float(seconds) if seconds is not None else None
            except (TypeError, ValueError):
                measured = None
            return VideoGenerationResult(
                id=video_id,
                status="completed",
                video_url=self.content_url(video_id),
                seconds=measured,
                raw=data,
            )

        if status == "failed":
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            return VideoGenerationResult(
                id=video_id,
                status="failed",
                error=message or data.get("failure_reason") or "Sora generation failed",
                raw=data,
            )

        return VideoGenerationResult(id=video_id, status="pending", raw=data)

    async def start_generation(self, request: VideoGenerationRequest) -> VideoGenerationResult:
        """Start video generation with Sora."""
        payload = self.build_payload(request)
        headers = self._get_headers()
        url = f"{self.base_url}/videos"

        logger.debug(
            "[Sora] startGeneration request model=%s size=%s seconds=%s",
            payload.get("model"),
            payload.get("size"),
            payload.get("seconds"),
        )

        response = await self._send("POST", url, headers, payload)
        data = self._json(response, url)

        video_id = data.get("id")
        if not isinstance(video_id, str) or not video_id:
            raise self._error(
                "Sora did not return a job id", endpoint=url, response=str(data)[:500]
            )

        logger.info("[Sora] Generation started. id=%s status=%s", video_id, data.get("status"))
        return VideoGenerationResult(id=video_id, status="pending", raw=data)

    async def check_status(self, job_id: str) -> VideoGenerationResult:
        """Get status of a Sora video job."""
        if not job_id:
            raise self._error("Job id is required", ErrorCode.INVALID_REQUEST)

        headers = self._get_headers()
        url = f"{self.base_url}/videos/{job_id}"
        response = await self._send("GET", url, headers)
        data = self._json(response, url)

        logger.debug(
            "[Sora] checkStatus id=%s status=%s progress=%s",
            job_id,
            data.get("status"),
            data.get("progress"),
        )
        return self._parse_video_response(job_id, data)
