"""FastAPI entrypoint exposing the video render endpoints."""

from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

import logging
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from .config import Settings, get_settings
from .integrations.video_rendering import (
    ErrorCode,
    RenderContext,
    RenderPlan,
    VideoGenerationRequest,
    VideoRendererError,
    VideoRenderService,
    VideoRenderTask,
    format_capabilities,
    get_video_model_capabilities,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ErrorCode.INVALID_PROVIDER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.CONFIGURATION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.PERSISTENCE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.AUTH_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.PROVIDER_ERROR: status.HTTP_502_BAD_GATEWAY,
}

app = FastAPI(title="Video Render API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_render_service: VideoRenderService | None = None


def get_render_service() -> VideoRenderService:
    """Dependency to get the shared render service instance."""
    global _render_service
    if _render_service is None:
        _render_service = VideoRenderService(get_settings())
    return _render_service


class RenderRequestBody(BaseModel):
    """Body of POST /renders."""

    provider: str | None = Field(None, description="sora or veo; defaults to VIDEO_DEFAULT_PROVIDER")
    request: VideoGenerationRequest
    context: RenderContext | None = None
    manifest_version: int = Field(1, ge=1)
    tier: str = "standard"


class PlanRequestBody(BaseModel):
    """Body of POST /renders/plan."""

    provider: str = "veo"
    target_seconds: float | None = Field(None, gt=0)
    aspect_ratio: str | None = None
    model_id: str | None = None


class PlanResponse(BaseModel):
    plan: RenderPlan
    capabilities: str


@app.exception_handler(VideoRendererError)
async def video_renderer_error_handler(request: Request, exc: VideoRendererError) -> JSONResponse:
    """Map renderer errors that escape a route onto JSON responses."""
    status_code = _ERROR_STATUS[exc.code]
    headers: dict[str, str] = {}
    if exc.retry_after_ms is not None:
        headers["Retry-After"] = str(max(1, round(exc.retry_after_ms / 1000)))
    return JSONResponse(status_code=status_code, content={"error": exc.to_dict()}, headers=headers)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.post("/renders")
async def create_render(
    body: RenderRequestBody,
    service: VideoRenderService = Depends(get_render_service),
) -> VideoRenderTask:
    """Render a video and return the task record.

    Provider failures are reported on the task (``status="failed"``) rather
    than as an HTTP error.
    """
    return await service.render(
        body.request,
        body.provider,
        manifest_version=body.manifest_version,
        tier=body.tier,
        context=body.context,
    )


@app.post("/renders/plan")
async def plan_render_endpoint(
    body: PlanRequestBody,
    service: VideoRenderService = Depends(get_render_service),
) -> PlanResponse:
    """Return the segmentation plan for a target duration, with provider capabilities."""
    plan = service.plan(body.provider, body.target_seconds, body.aspect_ratio, body.model_id)
    capabilities = get_video_model_capabilities(body.provider, body.model_id)
    return PlanResponse(plan=plan, capabilities=format_capabilities(capabilities))


def resolve_asset_path(output_dir: Path, file_name: str) -> Path:
    """Resolve a served file name inside ``output_dir``; rejects anything else."""
    root = output_dir.resolve()
    candidate = (root / file_name).resolve()
    if Path(file_name).name != file_name or file_name.startswith(".") or candidate.parent != root:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file name")
    return candidate


@app.get("/video-assets/{file_name}")
async def serve_video_asset(
    file_name: str,
    settings: Settings = Depends(get_settings),
) -> FileResponse:
    """Serve a rendered video file."""
    file_path = resolve_asset_path(Path(settings.output_dir), file_name)

    if not file_path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Video not found: {file_name}",
        )

    return FileResponse(file_path, media_type="video/mp4")

