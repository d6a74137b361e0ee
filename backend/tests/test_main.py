"""Tests for the FastAPI endpoints."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.config import get_settings
from app.integrations.video_rendering import (
    ErrorCode,
    VideoRendererError,
    VideoRenderService,
    VideoRenderTask,
)
from app.integrations.video_rendering.types import RenderTaskResult
from app.main import _ERROR_STATUS, app, get_render_service, resolve_asset_path


@pytest.fixture
def render_service(settings):
    service = VideoRenderService(settings, renderer=MagicMock())
    service.render = AsyncMock(
        return_value=VideoRenderTask(
            id="task-1",
            status="completed",
            renderer="veo",
            requested_at="2025-01-20T12:00:00+00:00",
            completed_at="2025-01-20T12:01:00+00:00",
            result=RenderTaskResult(video_url="/video-assets/veo_abc.mp4"),
        )
    )
    return service


@pytest.fixture
def client(settings, render_service):
    app.dependency_overrides[get_render_service] = lambda: render_service
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestRenderEndpoints:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_create_render(self, client, render_service):
        response = client.post(
            "/renders",
            json={
                "provider": "veo",
                "request": {"prompt": "A cat walking", "duration": 8, "aspect_ratio": "9:16"},
                "context": {"job_id": "job-42"},
                "manifest_version": 2,
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["result"]["video_url"] == "/video-assets/veo_abc.mp4"

        args = render_service.render.await_args
        assert args.args[0].prompt == "A cat walking"
        assert args.args[1] == "veo"
        assert args.kwargs["manifest_version"] == 2
        assert args.kwargs["context"].job_id == "job-42"

    def test_create_render_validation(self, client):
        response = client.post("/renders", json={"request": {"prompt": "x"}, "manifest_version": 0})
        assert response.status_code == 422

    def test_renderer_error_mapped(self, client, render_service):
        """Test errors escaping a route become JSON with a Retry-After header."""
        render_service.render.side_effect = VideoRendererError(
            "slow down", ErrorCode.RATE_LIMITED, {"retry_after_ms": 5000}
        )

        response = client.post("/renders", json={"request": {"prompt": "x"}})

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "5"
        assert response.json()["error"]["code"] == "RATE_LIMITED"

    @pytest.mark.parametrize(
        "code, expected",
        [
            (ErrorCode.AUTH_ERROR, 502),
            (ErrorCode.PROVIDER_ERROR, 502),
            (ErrorCode.INVALID_PROVIDER, 400),
            (ErrorCode.TIMEOUT, 504),
            (ErrorCode.PERSISTENCE_ERROR, 500),
        ],
    )
    def test_error_status_codes(self, client, render_service, code, expected):
        render_service.render.side_effect = VideoRendererError("failed", code)

        response = client.post("/renders", json={"request": {"prompt": "x"}})

        assert response.status_code == expected
        assert response.json()["error"]["code"] == code.value

    def test_every_error_code_has_status(self):
        assert set(_ERROR_STATUS) == set(ErrorCode)

    def test_plan(self, client):
        response = client.post("/renders/plan", json={"provider": "veo", "target_seconds": 20})

        assert response.status_code == 200
        body = response.json()
        assert body["plan"]["strategy"] == "multi_extend"
        assert body["plan"]["final_planned_seconds"] == 22
        assert "Video Provider: veo" in body["capabilities"]

    def test_plan_rejects_non_positive_target(self, client):
        response = client.post("/renders/plan", json={"target_seconds": 0})
        assert response.status_code == 422


class TestVideoAssets:
    def test_serves_file(self, client, settings):
        output_dir = Path(settings.output_dir)
        output_dir.mkdir(parents=True)
        (output_dir / "veo_abc.mp4").write_bytes(b"mp4-bytes")

        response = client.get("/video-assets/veo_abc.mp4")

        assert response.status_code == 200
        assert response.content == b"mp4-bytes"
        assert response.headers["content-type"] == "video/mp4"

    def test_missing_file(self, client):
        response = client.get("/video-assets/missing.mp4")
        assert response.status_code == 404

    def test_dotfile_rejected(self, client):
        response = client.get("/video-assets/.env")
        assert response.status_code == 400

    @pytest.mark.parametrize("file_name", ["../secret.mp4", "nested/v.mp4", "..", ".hidden"])
    def test_resolve_rejects_escapes(self, tmp_path, file_name):
        with pytest.raises(HTTPException) as exc_info:
            resolve_asset_path(tmp_path, file_name)
        assert exc_info.value.status_code == 400

    def test_resolve_accepts_plain_name(self, tmp_path):
        assert resolve_asset_path(tmp_path, "v.mp4") == (tmp_path / "v.mp4").resolve()
