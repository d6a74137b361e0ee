"""Pydantic models for video rendering requests, plans, results and tasks."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

RenderStatus = Literal["pending", "completed", "failed"]
RenderStrategy = Literal["single_shot", "multi_extend", "fallback_shorter"]


class SoraOptions(BaseModel):
    """Explicit Sora overrides; each field wins over the value derived from the request."""

    model: Optional[str] = Field(None, description="Sora model identifier (sora-2, sora-2-pro)")
    size: Optional[str] = Field(None, description="Output size, e.g. 720x1280")
    seconds: Optional[str] = Field(None, description="Clip length, one of 4, 8, 12")


class VeoOptions(BaseModel):
    """Explicit Veo overrides; each field wins over the value derived from the request."""

    model_id: Optional[str] = Field(None, description="Veo model identifier")
    aspect_ratio: Optional[str] = Field(None, description="Aspect ratio, e.g. 9:16")
    duration_seconds: Optional[int] = Field(None, gt=0, description="Clip length in seconds")
    sample_count: Optional[int] = Field(None, ge=1, le=4, description="Videos per request")
    resolution: Optional[Literal["720p", "1080p"]] = Field(None, description="Output resolution")
    negative_prompt: Optional[str] = Field(None, description="What NOT to include")
    generate_audio: Optional[bool] = Field(None, description="Generate an audio track")
    person_generation: Optional[str] = Field(None, description="Person generation policy")
    storage_uri: Optional[str] = Field(None, description="gs:// prefix for provider-side output")


class ProviderOptions(BaseModel):
    """Per-provider override bag, keyed by provider name."""

    sora: Optional[SoraOptions] = None
    veo: Optional[VeoOptions] = None


class VideoGenerationRequest(BaseModel):
    """Provider-agnostic video generation request."""

    prompt: str = Field(..., max_length=8192, description="Text description for the video model")
    duration: Optional[float] = Field(None, gt=0, description="Target duration in seconds")
    aspect_ratio: Optional[str] = Field(None, description="Aspect ratio, e.g. 9:16 or 16:9")
    provider_options: ProviderOptions = Field(
        default_factory=ProviderOptions, description="Per-provider overrides"
    )


class RenderContext(BaseModel):
    """Identifiers describing who/what a render belongs to."""

    job_id: Optional[str] = None
    item_id: Optional[str] = None
    owner_user_id: Optional[str] = None

    @property
    def storage_key(self) -> Optional[str]:
        return self.job_id or self.item_id or self.owner_user_id


class RenderSegment(BaseModel):
    """One generation hop of a render plan."""

    kind: Literal["initial", "extend"]
    seconds: float = Field(..., ge=0)


class RenderPlan(BaseModel):
    """Deterministic segmentation plan for a requested duration."""

    provider: str
    model_id: str
    strategy: RenderStrategy
    segments: list[RenderSegment] = Field(..., min_length=1)
    final_planned_seconds: float
    aspect_ratio: Optional[str] = None
    resolution: Optional[str] = None

    @model_validator(mode="after")
    def _check_invariants(self) -> "RenderPlan":
        total = sum(segment.seconds for segment in self.segments)
        if abs(total - self.final_planned_seconds) > 1e-9:
            raise ValueError(
                f"segment seconds ({total}) must add up to final_planned_seconds "
                f"({self.final_planned_seconds})"
            )
        if self.segments[0].kind != "initial":
            raise ValueError("the first segment of a plan must be the initial clip")
        single = len(self.segments) == 1
        # fallback_shorter is also a single clip, flagged as shorter than requested
        if self.strategy == "multi_extend" and single:
            raise ValueError("multi_extend plans need at least one extend segment")
        if self.strategy != "multi_extend" and not single:
            raise ValueError(f"{self.strategy} plans must contain exactly one initial segment")
        return self

    @property
    def extends_needed(self) -> int:
        return sum(1 for segment in self.segments if segment.kind == "extend")


class VideoGenerationResult(BaseModel):
    """Normalized status of a provider job, as observed by one poll."""

    id: str = Field(..., description="Opaque provider handle for the job")
    status: RenderStatus
    video_url: Optional[str] = Field(None, description="Video location, only when completed")
    seconds: Optional[float] = Field(None, description="Measured duration, if the provider reports it")
    error: Optional[str] = Field(None, description="Provider error detail, only when failed")
    local_path: Optional[str] = Field(None, description="Local file written by the client, if any")
    retry_after_ms: Optional[int] = Field(None, description="Provider hint for the next poll")
    raw: Optional[dict[str, Any]] = Field(None, exclude=True, repr=False)

    @model_validator(mode="after")
    def _check_status_fields(self) -> "VideoGenerationResult":
        if self.video_url is not None and self.status != "completed":
            raise ValueError("video_url is only allowed on completed results")
        if self.error is not None and self.status != "failed":
            raise ValueError("error is only allowed on failed results")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")


class RenderOutput(BaseModel):
    """Final outcome of a successful render."""

    video_url: str = Field(..., min_length=1)
    seconds: Optional[float] = None
    job_id: str
    provider: str
    local_path: Optional[str] = None


class RenderMetrics(BaseModel):
    seconds_generated: float = 0
    model: str
    tier: str = "standard"
    planned_seconds: Optional[float] = None
    extends_requested: int = 0
    extends_completed: int = 0


class RenderTaskResult(BaseModel):
    video_url: str


class RenderTaskError(BaseModel):
    reason: str
    message: str
    retry_after_ms: Optional[int] = None


class VideoRenderTask(BaseModel):
    """Immutable record of a single render attempt, returned to callers."""

    model_config = ConfigDict(frozen=True)

    id: str
    manifest_version: int = 1
    mode: Literal["file", "dry_run"] = "file"
    status: Literal["completed", "failed"]
    renderer: str
    requested_at: str = Field(..., description="ISO 8601 timestamp")
    completed_at: Optional[str] = Field(None, description="ISO 8601 timestamp")
    metrics: Optional[RenderMetrics] = None
    result: Optional[RenderTaskResult] = None
    error: Optional[RenderTaskError] = None

    @model_validator(mode="after")
    def _check_outcome(self) -> "VideoRenderTask":
        if self.status == "completed" and self.result is None:
            raise ValueError("completed tasks must carry a result")
        if self.status == "failed" and self.error is None:
            raise ValueError("failed tasks must carry an error")
        return self
