"""Video rendering module with a unified interface for Sora and Veo providers."""

from .credentials import CredentialProvider, GoogleADCCredentialProvider, StaticTokenProvider
from .exceptions import ErrorCode, VideoRendererError
from .planning import (
    VideoModelCapabilities,
    compute_duration_plan,
    format_capabilities,
    get_video_model_capabilities,
    plan_render,
)
from .polling import ConstantInterval, ExponentialBackoff, PollStrategy
from .providers import ProviderClient, SoraClient, VeoClient
from .renderer import UnifiedVideoRenderer
from .service import VideoRenderService
from .types import (
    ProviderOptions,
    RenderContext,
    RenderOutput,
    RenderPlan,
    RenderSegment,
    SoraOptions,
    VeoOptions,
    VideoGenerationRequest,
    VideoGenerationResult,
    VideoRenderTask,
)

__all__ = [
    # Service
    "VideoRenderService",
    "UnifiedVideoRenderer",
    # Providers
    "ProviderClient",
    "SoraClient",
    "VeoClient",
    "CredentialProvider",
    "GoogleADCCredentialProvider",
    "StaticTokenProvider",
    # Planning and polling
    "VideoModelCapabilities",
    "compute_duration_plan",
    "format_capabilities",
    "get_video_model_capabilities",
    "plan_render",
    "PollStrategy",
    "ConstantInterval",
    "ExponentialBackoff",
    # Types
    "ProviderOptions",
    "RenderContext",
    "RenderOutput",
    "RenderPlan",
    "RenderSegment",
    "SoraOptions",
    "VeoOptions",
    "VideoGenerationRequest",
    "VideoGenerationResult",
    "VideoRenderTask",
    # Exceptions
    "ErrorCode",
    "VideoRendererError",
]
