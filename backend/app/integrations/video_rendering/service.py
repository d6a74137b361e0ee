"""Render service that wraps the unified renderer and produces VideoRenderTask records."""

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from urllib.parse import urlparse

from app.config import Settings, get_settings

from .exceptions import ErrorCode, VideoRendererError
from .planning import get_video_model_capabilities, plan_render
from .renderer import UnifiedVideoRenderer
from .types import (
    RenderContext,
    RenderMetrics,
    RenderPlan,
    RenderTaskError,
    RenderTaskResult,
    VideoGenerationRequest,
    VideoRenderTask,
)

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class VideoRenderService:
    """
    Unified service for video rendering across multiple providers.

    Every call returns a ``VideoRenderTask``. Failures are recorded on the
    task instead of being raised, so callers (and the HTTP surface) always
    get a complete record of the attempt.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        renderer: UnifiedVideoRenderer | None = None,
    ):
        """
        Initialize the render service.

        Args:
            settings: Runtime settings. Reads the environment if not provided.
            renderer: Renderer to use. Creates one from settings if not provided.
        """
        self.settings = settings or get_settings()
        self.renderer = renderer or UnifiedVideoRenderer(self.settings)

    def plan(
        self,
        provider: str,
        target_seconds: float | None,
        aspect_ratio: str | None = None,
        model_id: str | None = None,
    ) -> RenderPlan:
        """Plan how a target duration is reached with the provider's capabilities."""
        capabilities = get_video_model_capabilities(provider, model_id)
        return plan_render(target_seconds, capabilities, aspect_ratio or "9:16")

    def to_public_url(self, video_url: str) -> str:
        """Turn a relative video path into an absolute URL when a public base is configured."""
        base = self.settings.public_base_url.rstrip("/")
        if not base or urlparse(video_url).scheme:
            return video_url
        return f"{base}/{video_url.lstrip('/')}"

    def _metrics_model(self, provider: str, request: VideoGenerationRequest) -> str:
        options = request.provider_options
        if provider == "sora" and options.sora and options.sora.model:
            return options.sora.model
        if provider == "veo" and options.veo and options.veo.model_id:
            return options.veo.model_id
        if self.settings.video_model:
            return self.settings.video_model
        if provider == "sora":
            return self.settings.sora_default_model
        if provider == "veo":
            return self.settings.veo_model_id
        return get_video_model_capabilities(provider).model_id

    async def render(
        self,
        request: VideoGenerationRequest,
        provider: str | None = None,
        *,
        manifest_version: int = 1,
        tier: str = "standard",
        context: RenderContext | None = None,
    ) -> VideoRenderTask:
        """
        Render a video and record the attempt.

        Args:
            request: Provider-agnostic generation request
            provider: Provider key. Uses the configured default if not provided.
            manifest_version: Version of the manifest this render belongs to
            tier: Billing tier reported in metrics
            context: Job/item/owner identifiers

        Returns:
            VideoRenderTask with status "completed" and a result, or
            status "failed" and an error

        Example:
            service = VideoRenderService()
            task = await service.render(
                VideoGenerationRequest(prompt="A cat walking", duration=8),
                provider="veo",
            )
        """
        key = UnifiedVideoRenderer.normalize_provider(provider or self.settings.default_provider)
        requested_at = _now()
        model = self._metrics_model(key, request)
        capabilities = get_video_model_capabilities(key, model)
        plan = plan_render(request.duration, capabilities, request.aspect_ratio or "9:16")

        capped = request
        native_max = capabilities.max_single_shot_seconds
        if request.duration is not None and request.duration > native_max:
            logger.info(
                "Capping %s duration %.1fs to native max %ss", key, request.duration, native_max
            )
            capped = request.model_copy(update={"duration": float(native_max)})

        task_fields = {
            "id": str(uuid.uuid4()),
            "manifest_version": manifest_version,
            "renderer": key,
            "requested_at": requested_at,
        }

        try:
            output = await self.renderer.render_video(key, capped, context)
        except VideoRendererError as error:
            return self._failed_task(task_fields, error, model, tier, plan)
        except Exception as exc:
            logger.exception("Video render pipeline failed for %s", key)
            error = VideoRendererError(
                str(exc) or "Video generation pipeline failed",
                ErrorCode.PROVIDER_ERROR,
                {"provider": key, "original_error": type(exc).__name__},
            )
            return self._failed_task(task_fields, error, model, tier, plan)

        seconds = output.seconds if output.seconds is not None else (capped.duration or 0)
        return VideoRenderTask(
            **task_fields,
            mode="file",
            status="completed",
            completed_at=_now(),
            metrics=RenderMetrics(
                seconds_generated=seconds,
                model=model,
                tier=tier,
                planned_seconds=plan.final_planned_seconds,
                extends_requested=plan.extends_needed,
                extends_completed=0,
            ),
            result=RenderTaskResult(video_url=self.to_public_url(output.video_url)),
        )

    def _failed_task(
        self,
        task_fields: dict,
        error: VideoRendererError,
        model: str,
        tier: str,
        plan: RenderPlan,
    ) -> VideoRenderTask:
        logger.warning("Render task %s failed: %s", task_fields["id"], error)
        return VideoRenderTask(
            **task_fields,
            mode="file",
            status="failed",
            completed_at=_now(),
            metrics=RenderMetrics(
                seconds_generated=0,
                model=model,
                tier=tier,
                planned_seconds=plan.final_planned_seconds,
                extends_requested=plan.extends_needed,
                extends_completed=0,
            ),
            error=RenderTaskError(
                reason=error.code.value,
                message=error.message,
                retry_after_ms=error.retry_after_ms,
            ),
        )

    async def render_batch(
        self,
        items: list[tuple[VideoGenerationRequest, str | None]],
        *,
        tier: str = "standard",
    ) -> list[VideoRenderTask]:
        """
        Render multiple videos in parallel.

        Args:
            items: List of (request, provider) tuples

        Returns:
            List of VideoRenderTask objects in input order
        """
        tasks = [self.render(request, provider, tier=tier) for request, provider in items]
        return await asyncio.gather(*tasks)
