"""Integrations module for external API providers."""

from .video_rendering import (
    # Service
    VideoRenderService,
    UnifiedVideoRenderer,
    # Providers
    ProviderClient,
    SoraClient,
    VeoClient,
    # Types
    RenderContext,
    RenderOutput,
    RenderPlan,
    VideoGenerationRequest,
    VideoGenerationResult,
    VideoRenderTask,
    # Exceptions
    ErrorCode,
    VideoRendererError,
)

__all__ = [
    # Service
    "VideoRenderService",
    "UnifiedVideoRenderer",
    # Providers
    "ProviderClient",
    "SoraClient",
    "VeoClient",
    # Types
    "RenderContext",
    "RenderOutput",
    "RenderPlan",
    "VideoGenerationRequest",
    "VideoGenerationResult",
    "VideoRenderTask",
    # Exceptions
    "ErrorCode",
    "VideoRendererError",
]
