"""Tests for VideoRenderService."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.integrations.video_rendering import (
    ErrorCode,
    RenderOutput,
    SoraOptions,
    UnifiedVideoRenderer,
    VideoGenerationRequest,
    VideoGenerationResult,
    VideoRendererError,
    VideoRenderService,
)
from app.integrations.video_rendering.types import ProviderOptions


def make_output(provider: str = "veo", seconds: float | None = 8.0) -> RenderOutput:
    return RenderOutput(
        video_url="/video-assets/veo_abc.mp4",
        seconds=seconds,
        job_id="job-1",
        provider=provider,
    )


@pytest.fixture
def mock_renderer():
    """Renderer double whose render_video is an AsyncMock."""
    renderer = MagicMock()
    renderer.render_video = AsyncMock(return_value=make_output())
    return renderer


@pytest.fixture
def service(settings, mock_renderer) -> VideoRenderService:
    return VideoRenderService(settings, renderer=mock_renderer)


class TestVideoRenderService:
    """Tests for VideoRenderService.render."""

    @pytest.mark.asyncio
    async def test_completed_task(self, service, settings, sample_request):
        settings.public_base_url = "https://videos.example.com/"

        task = await service.render(sample_request, "VEO", manifest_version=3, tier="premium")

        assert task.status == "completed"
        assert task.renderer == "veo"
        assert task.manifest_version == 3
        assert task.result.video_url == "https://videos.example.com/video-assets/veo_abc.mp4"
        assert task.metrics.seconds_generated == 8.0
        assert task.metrics.tier == "premium"
        assert task.metrics.model == "veo-3.1-generate-preview"
        assert task.completed_at >= task.requested_at
        assert task.error is None

    @pytest.mark.asyncio
    async def test_default_provider(self, service, mock_renderer, sample_request):
        await service.render(sample_request)

        assert mock_renderer.render_video.await_args.args[0] == "veo"

    @pytest.mark.asyncio
    async def test_relative_url_without_public_base(self, service, sample_request):
        task = await service.render(sample_request, "veo")
        assert task.result.video_url == "/video-assets/veo_abc.mp4"

    @pytest.mark.asyncio
    async def test_duration_capped_to_native_max(self, service, mock_renderer):
        """Test durations above a single clip are capped before rendering."""
        request = VideoGenerationRequest(prompt="A long scene", duration=20)

        task = await service.render(request, "sora")

        sent = mock_renderer.render_video.await_args.args[1]
        assert sent.duration == 12
        assert request.duration == 20
        assert task.metrics.planned_seconds == 12
        assert task.metrics.extends_requested == 0

    @pytest.mark.asyncio
    async def test_plan_recorded_in_metrics(self, service, mock_renderer):
        request = VideoGenerationRequest(prompt="A long scene", duration=20)

        task = await service.render(request, "veo")

        assert mock_renderer.render_video.await_args.args[1].duration == 8
        assert task.metrics.planned_seconds == 22
        assert task.metrics.extends_requested == 2
        assert task.metrics.extends_completed == 0

    @pytest.mark.asyncio
    async def test_seconds_fall_back_to_request(self, service, mock_renderer, sample_request):
        mock_renderer.render_video.return_value = make_output(seconds=None)

        task = await service.render(sample_request, "veo")

        assert task.metrics.seconds_generated == 8

    @pytest.mark.asyncio
    async def test_model_from_options(self, service):
        request = VideoGenerationRequest(
            prompt="A cat", provider_options=ProviderOptions(sora=SoraOptions(model="sora-2"))
        )

        task = await service.render(request, "sora")

        assert task.metrics.model == "sora-2"

    @pytest.mark.asyncio
    async def test_failed_task(self, service, mock_renderer, sample_request):
        """Test taxonomy errors are recorded on the task instead of raised."""
        mock_renderer.render_video.side_effect = VideoRendererError(
            "slow down", ErrorCode.RATE_LIMITED, {"retry_after_ms": 5000}
        )

        task = await service.render(sample_request, "sora")

        assert task.status == "failed"
        assert task.result is None
        assert task.error.reason == "RATE_LIMITED"
        assert task.error.message == "slow down"
        assert task.error.retry_after_ms == 5000
        assert task.metrics.seconds_generated == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_provider_error(self, service, mock_renderer, sample_request):
        mock_renderer.render_video.side_effect = RuntimeError("boom")

        task = await service.render(sample_request, "veo")

        assert task.status == "failed"
        assert task.error.reason == "PROVIDER_ERROR"
        assert task.error.message == "boom"

    @pytest.mark.asyncio
    async def test_unknown_provider_fails_task(self, settings, sample_request):
        service = VideoRenderService(settings)

        task = await service.render(sample_request, "runway")

        assert task.status == "failed"
        assert task.error.reason == "INVALID_PROVIDER"

    @pytest.mark.asyncio
    async def test_render_batch_keeps_order(self, service, mock_renderer):
        async def render_video(provider, request, context=None):
            await asyncio.sleep(0.01 if provider == "veo" else 0)
            return make_output(provider=provider)

        mock_renderer.render_video.side_effect = render_video
        items = [
            (VideoGenerationRequest(prompt="first"), "veo"),
            (VideoGenerationRequest(prompt="second"), "sora"),
        ]

        tasks = await service.render_batch(items)

        assert [t.renderer for t in tasks] == ["veo", "sora"]
        assert all(t.status == "completed" for t in tasks)
        assert len({t.id for t in tasks}) == 2

    @pytest.mark.asyncio
    async def test_end_to_end_with_fake_client(self, settings, fake_clock, fake_client_factory, sample_request):
        renderer = UnifiedVideoRenderer(
            settings, traffic_log=lambda *entry: None, clock=fake_clock, sleep=fake_clock.sleep
        )
        renderer.register_client(
            "veo",
            fake_client_factory(
                [
                    VideoGenerationResult(id="job-1", status="pending"),
                    VideoGenerationResult(
                        id="job-1", status="completed", video_url="https://cdn.example.com/v.mp4"
                    ),
                ]
            ),
        )
        service = VideoRenderService(settings, renderer=renderer)

        task = await service.render(sample_request, "veo")

        assert task.status == "completed"
        assert task.result.video_url == "https://cdn.example.com/v.mp4"
        assert task.metrics.seconds_generated == 8


class TestPlan:
    def test_plan_defaults_to_portrait(self, service):
        plan = service.plan("veo", 20)
        assert plan.aspect_ratio == "9:16"
        assert plan.final_planned_seconds == 22

    def test_plan_with_model(self, service):
        plan = service.plan("sora", 30, "16:9", "sora-2")
        assert plan.model_id == "sora-2"
        assert plan.final_planned_seconds == 12
