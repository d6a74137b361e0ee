"""Unified video renderer: submit to a provider, poll to completion, persist the result."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable

from app.config import Settings, get_settings

from .credentials import GoogleADCCredentialProvider, StaticTokenProvider
from .exceptions import ErrorCode, VideoRendererError
from .media_probe import probe_duration_seconds
from .polling import ConstantInterval, PollStrategy, strategy_from_name
from .providers import ProviderClient, SoraClient, VeoClient
from .storage import PersistedVideo, persist_remote_video
from .traffic_log import log_raw_traffic
from .types import RenderContext, RenderOutput, VideoGenerationRequest, VideoGenerationResult

logger = logging.getLogger(__name__)

PersistFn = Callable[[str, str | None, str, dict[str, str]], Awaitable[PersistedVideo]]
ProbeFn = Callable[[str], Awaitable[float | None]]
TrafficLogFn = Callable[[str, str, str | None, Any], None]

SUPPORTED_PROVIDERS = ("sora", "veo")


class UnifiedVideoRenderer:
    """
    Renders a video with any supported provider behind one call.

    Provider clients are created lazily from settings on first use and reused
    afterwards. Persistence, duration probing and the traffic audit log are
    injectable so tests can replace them.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        persist: PersistFn | None = None,
        probe: ProbeFn | None = None,
        traffic_log: TrafficLogFn | None = None,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.timeout_seconds = timeout_seconds or self.settings.poll_timeout_seconds
        self._clients: dict[str, ProviderClient] = {}
        self._persist = persist or self._default_persist
        self._probe = probe or probe_duration_seconds
        self._traffic_log = traffic_log or self._default_traffic_log
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    @staticmethod
    def normalize_provider(provider: str | None) -> str:
        return (provider or "").strip().lower()

    def register_client(self, provider: str, client: ProviderClient) -> None:
        """Use ``client`` for ``provider`` instead of building one from settings."""
        self._clients[self.normalize_provider(provider)] = client

    def _create_client(self, key: str) -> ProviderClient:
        settings = self.settings
        if key == "sora":
            return SoraClient(
                api_key=settings.openai_api_key or None,
                base_url=settings.sora_base_url or None,
                default_model=settings.sora_default_model or None,
            )
        if key == "veo":
            credentials = (
                StaticTokenProvider(settings.vertex_access_token)
                if settings.vertex_access_token
                else GoogleADCCredentialProvider()
            )
            return VeoClient(
                credentials=credentials,
                project_id=settings.google_cloud_project or None,
                location=settings.google_cloud_location or None,
                model_id=settings.veo_model_id or None,
                output_dir=settings.output_dir,
            )
        raise VideoRendererError(
            f"Unsupported video provider: {key or '<empty>'}. "
            f"Supported: {', '.join(SUPPORTED_PROVIDERS)}",
            ErrorCode.INVALID_PROVIDER,
            {"provider": key},
        )

    def get_client(self, provider: str) -> ProviderClient:
        """Get or create the client for ``provider`` (case-insensitive)."""
        key = self.normalize_provider(provider)
        if key not in self._clients:
            self._clients[key] = self._create_client(key)
        return self._clients[key]

    def poll_strategy_for(self, provider: str, override: PollStrategy | None = None) -> PollStrategy:
        """Per-call strategy, then the provider's configured one, then a constant interval."""
        if override is not None:
            return override
        settings = self.settings
        configured = settings.poll_strategy_for(self.normalize_provider(provider))
        if configured:
            return strategy_from_name(
                configured, settings.poll_interval_seconds, settings.poll_max_interval_seconds
            )
        return ConstantInterval(settings.poll_interval_seconds)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    async def render_video(
        self,
        provider: str,
        request: VideoGenerationRequest,
        context: RenderContext | None = None,
        *,
        poll_strategy: PollStrategy | None = None,
    ) -> RenderOutput:
        """
        Submit a generation job and wait for the finished video.

        Args:
            provider: Provider key ("sora" or "veo"), case-insensitive
            request: Provider-agnostic generation request
            context: Identifiers used for audit logs and storage paths
            poll_strategy: Overrides the configured poll strategy

        Returns:
            RenderOutput with a non-empty video URL

        Raises:
            VideoRendererError: on any failure, with a code from ErrorCode
        """
        key = self.normalize_provider(provider)
        client = self.get_client(key)
        context = context or RenderContext()
        task_id = self._task_id(key, context)
        endpoint = client.describe_endpoint()

        self._audit(
            task_id,
            "REQUEST",
            endpoint,
            {
                "provider": key,
                "request": request.model_dump(mode="json", exclude_none=True),
                "context": context.model_dump(exclude_none=True),
            },
        )

        async def run() -> tuple[RenderOutput, VideoGenerationResult]:
            started = await client.start_generation(request)
            if not started.id:
                raise VideoRendererError(
                    f"{key} did not return a job id", ErrorCode.PROVIDER_ERROR, {"provider": key}
                )
            logger.info("Render started provider=%s job=%s task=%s", key, started.id, task_id)
            strategy = self.poll_strategy_for(key, poll_strategy)
            return await self._finish(key, client, started.id, request, context, strategy)

        return await self._run_audited(key, task_id, endpoint, run())

    async def resume_video(
        self,
        provider: str,
        job_id: str,
        request: VideoGenerationRequest | None = None,
        context: RenderContext | None = None,
        *,
        poll_strategy: PollStrategy | None = None,
    ) -> RenderOutput:
        """Continue polling a job that was already submitted, e.g. after RATE_LIMITED."""
        key = self.normalize_provider(provider)
        client = self.get_client(key)
        if not job_id:
            raise VideoRendererError(
                "job_id is required to resume a render", ErrorCode.INVALID_REQUEST, {"provider": key}
            )
        context = context or RenderContext()
        task_id = self._task_id(key, context)
        endpoint = client.describe_endpoint()

        self._audit(task_id, "REQUEST", endpoint, {"provider": key, "resume": job_id})
        strategy = self.poll_strategy_for(key, poll_strategy)
        return await self._run_audited(
            key, task_id, endpoint, self._finish(key, client, job_id, request, context, strategy)
        )

    async def _run_audited(
        self,
        key: str,
        task_id: str,
        endpoint: str,
        work: Awaitable[tuple[RenderOutput, VideoGenerationResult]],
    ) -> RenderOutput:
        try:
            output, final = await work
        except VideoRendererError as error:
            self._audit(task_id, "RESPONSE", endpoint, {"status": "failed", "error": error.to_dict()})
            logger.warning("Render failed provider=%s task=%s: %s", key, task_id, error)
            raise
        except Exception as exc:
            error = VideoRendererError(
                f"{key} video generation failed: {exc}",
                ErrorCode.PROVIDER_ERROR,
                {"provider": key, "original_error": type(exc).__name__},
            )
            self._audit(task_id, "RESPONSE", endpoint, {"status": "failed", "error": error.to_dict()})
            logger.exception("Unexpected error while rendering with %s", key)
            raise error from exc

        self._audit(
            task_id,
            "RESPONSE",
            endpoint,
            {
                "status": "completed",
                "job_id": output.job_id,
                "video_url": output.video_url,
                "seconds": output.seconds,
                "raw": final.raw,
            },
        )
        return output

    async def _finish(
        self,
        key: str,
        client: ProviderClient,
        job_id: str,
        request: VideoGenerationRequest | None,
        context: RenderContext,
        strategy: PollStrategy,
    ) -> tuple[RenderOutput, VideoGenerationResult]:
        result = await self._poll(key, client, job_id, strategy)
        video_url = result.video_url
        local_path = result.local_path
        seconds = result.seconds

        if not client.hosts_output_durably:
            persisted = await self._persist_output(key, client, job_id, video_url, context)
            video_url = persisted.video_url
            local_path = persisted.local_path or local_path

        if seconds is None and local_path and Path(local_path).is_file():
            seconds = await self._measure(local_path)

        if seconds is None and request is not None and request.duration is not None:
            seconds = min(request.duration, client.native_max_seconds)

        output = RenderOutput(
            video_url=video_url,
            seconds=seconds,
            job_id=job_id,
            provider=key,
            local_path=local_path,
        )
        logger.info("Render completed provider=%s job=%s url=%s", key, job_id, video_url)
        return output, result

    async def _poll(
        self,
        key: str,
        client: ProviderClient,
        job_id: str,
        strategy: PollStrategy,
    ) -> VideoGenerationResult:
        """Poll until the job is terminal or the deadline passes."""
        deadline = self._clock() + self.timeout_seconds
        attempt = 0
        retry_after_ms: int | None = None

        while True:
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise VideoRendererError(
                    f"{key} video generation timed out after {self.timeout_seconds:g}s",
                    ErrorCode.TIMEOUT,
                    {
                        "provider": key,
                        "job_id": job_id,
                        "attempts": attempt,
                        "timeout_seconds": self.timeout_seconds,
                    },
                )

            # Never sleep past the deadline.
            await self._sleep(min(strategy.next_delay(attempt, retry_after_ms), remaining))
            attempt += 1

            try:
                result = await client.check_status(job_id)
            except VideoRendererError as error:
                if error.code is ErrorCode.RATE_LIMITED and strategy.adaptive:
                    raise error.with_context(job_id=job_id, attempts=attempt) from error
                raise

            if result.status == "completed":
                if not result.video_url:
                    raise VideoRendererError(
                        f"{key} reported completion without a video URL",
                        ErrorCode.PROVIDER_ERROR,
                        {"provider": key, "job_id": job_id},
                    )
                return result

            if result.status == "failed":
                raise VideoRendererError(
                    f"{key} video generation failed: {result.error or 'unknown error'}",
                    ErrorCode.PROVIDER_ERROR,
                    {
                        "provider": key,
                        "job_id": job_id,
                        "response": result.error,
                        "raw": result.raw,
                    },
                )

            retry_after_ms = result.retry_after_ms
            logger.debug("Render pending provider=%s job=%s attempt=%d", key, job_id, attempt)

    async def _persist_output(
        self,
        key: str,
        client: ProviderClient,
        job_id: str,
        video_url: str | None,
        context: RenderContext,
    ) -> PersistedVideo:
        storage_key = context.storage_key or job_id
        try:
            return await self._persist(video_url or "", storage_key, key, client.content_headers())
        except VideoRendererError as exc:
            if exc.code is ErrorCode.PERSISTENCE_ERROR:
                raise exc.with_context(job_id=job_id, provider=key) from exc
            raise VideoRendererError(
                exc.message, ErrorCode.PERSISTENCE_ERROR, {**exc.context, "job_id": job_id}
            ) from exc
        except Exception as exc:
            raise VideoRendererError(
                f"Failed to persist {key} video: {exc}",
                ErrorCode.PERSISTENCE_ERROR,
                {"provider": key, "job_id": job_id},
            ) from exc

    async def _measure(self, local_path: str) -> float | None:
        try:
            return await self._probe(local_path)
        except Exception as exc:
            logger.warning("Duration probe failed for %s: %s", local_path, exc)
            return None

    # ------------------------------------------------------------------
    # Collaborator defaults
    # ------------------------------------------------------------------

    async def _default_persist(
        self, source_url: str, job_id: str | None, provider: str, headers: dict[str, str]
    ) -> PersistedVideo:
        settings = self.settings
        return await persist_remote_video(
            source_url,
            job_id,
            provider,
            headers,
            output_dir=settings.output_dir,
            bucket=settings.storage_bucket or None,
            bucket_base_url=settings.storage_base_url or None,
            make_public=settings.storage_make_public,
            download_timeout=settings.persist_download_timeout_seconds,
        )

    def _default_traffic_log(
        self, task_id: str, direction: str, provider_endpoint: str | None, payload: Any
    ) -> None:
        log_raw_traffic(
            task_id, direction, provider_endpoint, payload, log_path=self.settings.traffic_log_path
        )

    @staticmethod
    def _task_id(key: str, context: RenderContext) -> str:
        return f"video_render:{key}:{context.storage_key or 'adhoc'}"

    def _audit(self, task_id: str, direction: str, endpoint: str | None, payload: Any) -> None:
        try:
            self._traffic_log(task_id, direction, endpoint, payload)
        except Exception as exc:
            logger.debug("Traffic log write failed: %s", exc)
