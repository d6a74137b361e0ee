"""Duration planning: segmentation plans and per-model capabilities."""

import math
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from .types import RenderPlan, RenderSegment

BASE_SECONDS = 8
EXTEND_SECONDS = 7
MIN_CLIP_SECONDS = 4

DEFAULT_VEO_MODEL = "veo-3.1-generate-preview"
DEFAULT_SORA_MODEL = "sora-2-pro"


class VideoModelCapabilities(BaseModel):
    """What a video model can do in a single call and with extensions."""

    provider: str
    model_id: str
    supported_durations: list[int] = Field(default_factory=list)
    max_single_shot_seconds: int
    supports_extend: bool = False
    extend_step_seconds: Optional[int] = None
    max_total_seconds: int
    supported_aspect_ratios: list[str] = Field(default_factory=list)
    supported_resolutions: list[str] = Field(default_factory=list)


SORA_CAPABILITIES = VideoModelCapabilities(
    provider="sora",
    model_id=DEFAULT_SORA_MODEL,
    supported_durations=[4, 8, 12],
    max_single_shot_seconds=12,
    supports_extend=False,
    max_total_seconds=12,
    supported_aspect_ratios=["9:16", "16:9"],
    supported_resolutions=["720x1280", "1280x720", "1024x1792", "1792x1024"],
)

VEO_CAPABILITIES = VideoModelCapabilities(
    provider="veo",
    model_id=DEFAULT_VEO_MODEL,
    supported_durations=[4, 6, 8],
    max_single_shot_seconds=8,
    supports_extend=True,
    extend_step_seconds=7,
    max_total_seconds=140,
    supported_aspect_ratios=["16:9", "9:16"],
    supported_resolutions=["720p", "1080p"],
)

_CAPABILITIES_BY_PROVIDER = {
    "sora": SORA_CAPABILITIES,
    "veo": VEO_CAPABILITIES,
}


def get_video_model_capabilities(provider: str, model_id: str | None = None) -> VideoModelCapabilities:
    """Return capabilities for a provider, with an optional model override.

    Unknown providers get a conservative single 8s clip.
    """
    base = _CAPABILITIES_BY_PROVIDER.get((provider or "").lower())
    if base is None:
        return VideoModelCapabilities(
            provider=provider,
            model_id=model_id or "unknown",
            supported_durations=[BASE_SECONDS],
            max_single_shot_seconds=BASE_SECONDS,
            max_total_seconds=BASE_SECONDS,
            supported_aspect_ratios=["9:16"],
            supported_resolutions=["1080x1920"],
        )
    if model_id:
        return base.model_copy(update={"model_id": model_id})
    return base.model_copy()


def format_capabilities(caps: VideoModelCapabilities) -> str:
    """Human-readable capability summary."""
    durations = ", ".join(str(d) for d in caps.supported_durations) or str(
        caps.max_single_shot_seconds
    )
    lines = [
        f"Video Provider: {caps.provider}",
        f"Model: {caps.model_id}",
        f"Maximum single clip duration: {caps.max_single_shot_seconds} seconds",
        f"Supported durations: {durations} seconds",
        f"Can extend clips: {'Yes' if caps.supports_extend else 'No'}",
    ]
    if caps.supports_extend and caps.extend_step_seconds:
        lines.append(f"Extension step: {caps.extend_step_seconds} seconds per extension")
        lines.append(f"Maximum total duration: {caps.max_total_seconds} seconds")
    lines.append(f"Supported aspect ratios: {', '.join(caps.supported_aspect_ratios)}")
    return "\n".join(lines)


def nearest_supported(value: float, candidates: Sequence[int]) -> int:
    """Closest candidate by absolute difference; ties go to the first candidate."""
    return min(candidates, key=lambda candidate: abs(candidate - value))


def snap_to_supported_duration(
    duration: float,
    supported_durations: Sequence[int] | None,
    max_duration: float = 60,
) -> int:
    """Clamp a duration to [4, max_duration] and snap it to a supported value."""
    clamped = max(MIN_CLIP_SECONDS, min(duration, max_duration))
    if not supported_durations:
        return round(clamped)
    return nearest_supported(clamped, supported_durations)


def compute_duration_plan(
    min_seconds: float,
    max_seconds: float,
    base_seconds: float = BASE_SECONDS,
    extend_seconds: float = EXTEND_SECONDS,
    *,
    provider: str = "veo",
    model_id: str = DEFAULT_VEO_MODEL,
    aspect_ratio: str | None = None,
) -> RenderPlan:
    """Plan one base clip plus as many extensions as needed to reach ``min_seconds``.

    Extensions are dropped while the total exceeds ``max_seconds``, then the
    total is clamped into ``[min_seconds, max_seconds]``. If the clamp moves
    the total, the last segment absorbs the difference.

    When ``max_seconds < base_seconds`` the clamp yields a single clip shorter
    than the base unit. That is kept as-is pending product confirmation.
    """
    extends_needed = 0
    if min_seconds > base_seconds:
        extends_needed = math.ceil((min_seconds - base_seconds) / extend_seconds)

    planned = base_seconds + extends_needed * extend_seconds
    while planned > max_seconds and extends_needed > 0:
        extends_needed -= 1
        planned = base_seconds + extends_needed * extend_seconds

    unclamped = planned
    planned = min(max(planned, min_seconds), max_seconds)

    segments = [RenderSegment(kind="initial", seconds=base_seconds)]
    segments.extend(
        RenderSegment(kind="extend", seconds=extend_seconds) for _ in range(extends_needed)
    )
    if planned != unclamped:
        last = segments[-1]
        segments[-1] = RenderSegment(kind=last.kind, seconds=last.seconds + (planned - unclamped))

    return RenderPlan(
        provider=provider,
        model_id=model_id,
        strategy="multi_extend" if extends_needed else "single_shot",
        segments=segments,
        final_planned_seconds=planned,
        aspect_ratio=aspect_ratio,
    )


def plan_render(
    target_seconds: float | None,
    capabilities: VideoModelCapabilities,
    aspect_ratio: str = "9:16",
    resolution: str | None = None,
) -> RenderPlan:
    """Choose single_shot, multi_extend or fallback_shorter for a target duration."""
    desired = target_seconds if target_seconds is not None and math.isfinite(target_seconds) else BASE_SECONDS
    clamped = min(max(desired, MIN_CLIP_SECONDS), capabilities.max_total_seconds)
    single_cap = capabilities.max_single_shot_seconds

    def build(strategy: str, segments: list[RenderSegment]) -> RenderPlan:
        return RenderPlan(
            provider=capabilities.provider,
            model_id=capabilities.model_id,
            strategy=strategy,
            segments=segments,
            final_planned_seconds=sum(segment.seconds for segment in segments),
            aspect_ratio=aspect_ratio,
            resolution=resolution,
        )

    if clamped <= single_cap:
        snapped = snap_to_supported_duration(clamped, capabilities.supported_durations, single_cap)
        return build("single_shot", [RenderSegment(kind="initial", seconds=snapped)])

    base = snap_to_supported_duration(single_cap, capabilities.supported_durations, single_cap)
    step = capabilities.extend_step_seconds
    if capabilities.supports_extend and step:
        extends_needed = math.ceil((clamped - base) / step)
        while base + extends_needed * step > capabilities.max_total_seconds and extends_needed > 0:
            extends_needed -= 1
        if extends_needed == 0:
            return build("single_shot", [RenderSegment(kind="initial", seconds=base)])
        segments = [RenderSegment(kind="initial", seconds=base)]
        segments.extend(RenderSegment(kind="extend", seconds=step) for _ in range(extends_needed))
        return build("multi_extend", segments)

    # Provider cannot extend: render the longest single clip it supports.
    return build("fallback_shorter", [RenderSegment(kind="initial", seconds=base)])
