"""Veo (Vertex AI) video generation client using the predictLongRunning REST API."""

import base64
import binascii
import hashlib
import logging
import os
import re
from pathlib import Path
from typing import Any

from app.config import project_from_env

from ..credentials import CredentialProvider, GoogleADCCredentialProvider, StaticTokenProvider
from ..exceptions import ErrorCode
from ..planning import DEFAULT_VEO_MODEL, nearest_supported
from ..types import VeoOptions, VideoGenerationRequest, VideoGenerationResult
from .base import ProviderClient, parse_retry_after_ms, response_header
from .veo_response import decode_operation_video, filtered_reasons, operation_shape

logger = logging.getLogger(__name__)

_OPERATION_MODEL_RE = re.compile(r"/models/([^/]+)/operations/")


def default_credentials() -> CredentialProvider:
    """VERTEX_ACCESS_TOKEN when set, otherwise Application Default Credentials."""
    token = os.environ.get("VERTEX_ACCESS_TOKEN", "").strip()
    if token:
        return StaticTokenProvider(token)
    return GoogleADCCredentialProvider()


class VeoClient(ProviderClient):
    """Veo client for Vertex AI long-running predictions."""

    provider_name = "veo"
    hosts_output_durably = True
    native_max_seconds = 8

    DEFAULT_LOCATION = "us-central1"
    SUPPORTED_DURATIONS = [4, 6, 8]
    SUPPORTED_ASPECT_RATIOS = ["16:9", "9:16"]
    DEFAULT_OUTPUT_DIR = "./tmp/video-renders"
    PUBLIC_PATH = "/video-assets"

    def __init__(
        self,
        credentials: CredentialProvider | None = None,
        project_id: str | None = None,
        location: str | None = None,
        model_id: str | None = None,
        output_dir: str | Path | None = None,
        public_path: str = PUBLIC_PATH,
        base_url: str | None = None,
        request_timeout: float = 60.0,
    ):
        """
        Initialize the Veo client.

        Args:
            credentials: Bearer token source. Defaults to VERTEX_ACCESS_TOKEN or ADC.
            project_id: Google Cloud project. Defaults to GOOGLE_CLOUD_PROJECT and friends.
            location: Vertex region. Defaults to GOOGLE_CLOUD_LOCATION or us-central1.
            model_id: Veo model. Defaults to VEO_MODEL_ID or veo-3.1-generate-preview.
            output_dir: Where inline video bytes are written.
            public_path: URL prefix under which output_dir is served.
            base_url: Override for the Vertex endpoint (tests, private endpoints).
        """
        self.credentials = credentials or default_credentials()
        self.project_id = project_id or project_from_env()
        self.location = location or os.environ.get("GOOGLE_CLOUD_LOCATION") or self.DEFAULT_LOCATION
        self.model_id = model_id or os.environ.get("VEO_MODEL_ID") or DEFAULT_VEO_MODEL
        self.output_dir = Path(
            output_dir or os.environ.get("VIDEO_RENDER_OUTPUT_DIR") or self.DEFAULT_OUTPUT_DIR
        )
        self.public_path = public_path.rstrip("/")
        self.base_url = (base_url or f"https://{self.location}-aiplatform.googleapis.com/v1").rstrip("/")
        self.request_timeout = request_timeout

    async def _resolve_project_id(self) -> str:
        project_id = self.project_id or await self.credentials.get_project_id()
        if not project_id:
            raise self._error(
                "Google Cloud project ID is required for Veo. Set GOOGLE_CLOUD_PROJECT.",
                ErrorCode.CONFIGURATION_ERROR,
            )
        return project_id

    async def _auth_headers(self) -> dict[str, str]:
        # Fresh token per call; credentials are never cached here.
        token = await self.credentials.get_access_token()
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _model_url(self, project_id: str, model_id: str) -> str:
        return (
            f"{self.base_url}/projects/{project_id}/locations/{self.location}"
            f"/publishers/google/models/{model_id}"
        )

    def predict_url(self, project_id: str, model_id: str | None = None) -> str:
        return f"{self._model_url(project_id, model_id or self.model_id)}:predictLongRunning"

    def fetch_url(self, project_id: str, model_id: str | None = None) -> str:
        return f"{self._model_url(project_id, model_id or self.model_id)}:fetchPredictOperation"

    def describe_endpoint(self) -> str:
        return self.predict_url(self.project_id or "<project>")

    def _model_for_operation(self, operation_name: str) -> str:
        match = _OPERATION_MODEL_RE.search(operation_name)
        return match.group(1) if match else self.model_id

    def _validate_duration(self, duration: float) -> int:
        """Snap a requested duration to the closest supported Veo duration."""
        return nearest_supported(duration, self.SUPPORTED_DURATIONS)

    def build_payload(self, request: VideoGenerationRequest) -> dict[str, Any]:
        """Build the predictLongRunning body; explicit Veo options win over derived values."""
        prompt = self._require_prompt(request)
        options = request.provider_options.veo or VeoOptions()

        parameters: dict[str, Any] = {"sampleCount": options.sample_count or 1}

        if options.aspect_ratio:
            parameters["aspectRatio"] = options.aspect_ratio
        elif request.aspect_ratio:
            if request.aspect_ratio in self.SUPPORTED_ASPECT_RATIOS:
                parameters["aspectRatio"] = request.aspect_ratio
            else:
                logger.warning(
                    "[Veo] Unsupported aspect ratio %r, using provider default", request.aspect_ratio
                )

        if options.duration_seconds:
            parameters["durationSeconds"] = options.duration_seconds
        elif request.duration is not None:
            parameters["durationSeconds"] = self._validate_duration(request.duration)

        optional = {
            "negativePrompt": options.negative_prompt,
            "resolution": options.resolution,
            "generateAudio": options.generate_audio,
            "personGeneration": options.person_generation,
            "storageUri": options.storage_uri,
        }
        parameters.update({key: value for key, value in optional.items() if value is not None})

        return {"instances": [{"prompt": prompt}], "parameters": parameters}

    async def start_generation(self, request: VideoGenerationRequest) -> VideoGenerationResult:
        """Submit a Veo long-running prediction."""
        body = self.build_payload(request)
        project_id = await self._resolve_project_id()
        options = request.provider_options.veo or VeoOptions()
        url = self.predict_url(project_id, options.model_id)

        headers = await self._auth_headers()
        response = await self._send("POST", url, headers, body)
        data = self._json(response, url)

        operation_name = data.get("name")
        if not isinstance(operation_name, str) or not operation_name:
            raise self._error(
                "Vertex predict returned no operation name",
                endpoint=url,
                response=str(data)[:500],
            )

        logger.info("[Veo] Generation started. operation=%s", operation_name)
        return VideoGenerationResult(id=operation_name, status="pending", raw=data)

    async def check_status(self, job_id: str) -> VideoGenerationResult:
        """Fetch the state of a Veo operation."""
        if not job_id:
            raise self._error("Operation name is required", ErrorCode.INVALID_REQUEST)

        project_id = await self._resolve_project_id()
        url = self.fetch_url(project_id, self._model_for_operation(job_id))
        headers = await self._auth_headers()
        response = await self._send("POST", url, headers, {"operationName": job_id})
        data = self._json(response, url)

        if not data.get("done"):
            return VideoGenerationResult(
                id=job_id,
                status="pending",
                retry_after_ms=parse_retry_after_ms(response_header(response, "Retry-After")),
                raw=data,
            )

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise self._error(
                message or "Vertex AI operation failed",
                endpoint=url,
                job_id=job_id,
                response=error,
            )

        video = decode_operation_video(data)
        if video is None:
            reasons = filtered_reasons(data)
            if reasons:
                logger.warning("[Veo] Output filtered for %s: %s", job_id, reasons)
                return VideoGenerationResult(
                    id=job_id,
                    status="failed",
                    error="Video filtered by responsible AI policy: " + "; ".join(reasons),
                    raw=data,
                )
            raise self._error(
                "Veo operation finished without a recognizable video payload",
                endpoint=url,
                job_id=job_id,
                response=operation_shape(data),
            )

        if video.kind == "uri":
            logger.info("[Veo] Operation %s done (schema=%s, uri)", job_id, video.schema)
            return VideoGenerationResult(
                id=job_id, status="completed", video_url=video.value, raw=data
            )

        path = self._write_inline_video(job_id, video.value)
        logger.info("[Veo] Operation %s done (schema=%s), saved to %s", job_id, video.schema, path)
        return VideoGenerationResult(
            id=job_id,
            status="completed",
            video_url=f"{self.public_path}/{path.name}",
            local_path=str(path),
            raw=data,
        )

    def _write_inline_video(self, operation_name: str, encoded: str) -> Path:
        """Decode inline video bytes and write them under a name derived from the operation."""
        value = encoded.strip()
        if value.startswith("data:") and "," in value:
            value = value.split(",", 1)[1]
        try:
            video_bytes = base64.b64decode(value)
        except (binascii.Error, ValueError) as e:
            raise self._error(
                "Veo returned inline video data that is not valid base64", job_id=operation_name
            ) from e

        digest = hashlib.sha1(operation_name.encode("utf-8")).hexdigest()[:16]
        path = self.output_dir / f"veo_{digest}.mp4"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                f.write(video_bytes)
        except OSError as e:
            raise self._error(
                f"Failed to write Veo output to disk: {e}",
                ErrorCode.PERSISTENCE_ERROR,
                job_id=operation_name,
                path=str(path),
            ) from e
        return path.resolve()
