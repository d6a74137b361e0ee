"""Pytest configuration and shared fixtures for video rendering tests."""

import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.config import Settings
from app.integrations.video_rendering import (
    ProviderClient,
    RenderContext,
    StaticTokenProvider,
    VideoGenerationRequest,
    VideoGenerationResult,
)
from app.integrations.video_rendering.providers.sora import SoraClient
from app.integrations.video_rendering.providers.veo import VeoClient

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)

VEO_OPERATION_NAME = (
    "projects/test-project/locations/us-central1/publishers/google/models/"
    "veo-3.1-generate-preview/operations/op-123"
)


# ============================================================================
# Request Fixtures
# ============================================================================


@pytest.fixture
def sample_request() -> VideoGenerationRequest:
    """Create a sample provider-agnostic request."""
    return VideoGenerationRequest(
        prompt="A cute cat walking through a sunny garden, cinematic lighting",
        duration=8,
        aspect_ratio="9:16",
    )


@pytest.fixture
def render_context() -> RenderContext:
    """Create a render context for a recruiting job."""
    return RenderContext(job_id="Job 42", item_id="item-7", owner_user_id="user-1")


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment, writing under tmp_path."""
    return Settings(
        openai_api_key="sk-test-key-12345",
        sora_base_url="https://api.openai.test/v1",
        sora_default_model="sora-2-pro",
        google_cloud_project="test-project",
        google_cloud_location="us-central1",
        veo_model_id="veo-3.1-generate-preview",
        vertex_access_token="vertex-test-token",
        poll_interval_seconds=2.0,
        poll_timeout_seconds=60.0,
        poll_max_interval_seconds=30.0,
        poll_strategies={},
        output_dir=tmp_path / "renders",
        public_base_url="",
        storage_bucket="",
        storage_base_url="",
        storage_make_public=False,
        persist_download_timeout_seconds=30.0,
        traffic_log_path=tmp_path / "logs" / "traffic.jsonl",
        default_provider="veo",
        video_model="",
    )


# ============================================================================
# Client Fixtures
# ============================================================================


@pytest.fixture
def sora_client() -> SoraClient:
    """Sora client with a fixed key and base URL."""
    return SoraClient(api_key="sk-test-key-12345", base_url="https://api.openai.test/v1")


@pytest.fixture
def veo_client(tmp_path: Path) -> VeoClient:
    """Veo client with a static token writing under tmp_path."""
    return VeoClient(
        credentials=StaticTokenProvider("vertex-test-token"),
        project_id="test-project",
        location="us-central1",
        model_id="veo-3.1-generate-preview",
        output_dir=tmp_path / "renders",
    )


@pytest.fixture
def veo_operation_name() -> str:
    """A Vertex operation name as returned by predictLongRunning."""
    return VEO_OPERATION_NAME


class FakeClient(ProviderClient):
    """Scripted provider client: returns (or raises) the queued poll results in order."""

    provider_name = "fake"

    def __init__(
        self,
        polls: list[VideoGenerationResult | Exception] | None = None,
        job_id: str = "job-1",
        durable: bool = True,
        native_max_seconds: int = 8,
    ):
        self.polls = list(polls or [])
        self.job_id = job_id
        self.hosts_output_durably = durable
        self.native_max_seconds = native_max_seconds
        self.start_calls = 0
        self.status_calls = 0

    async def start_generation(self, request: VideoGenerationRequest) -> VideoGenerationResult:
        self.start_calls += 1
        self._require_prompt(request)
        return VideoGenerationResult(id=self.job_id, status="pending")

    async def check_status(self, job_id: str) -> VideoGenerationResult:
        self.status_calls += 1
        if self.polls:
            outcome = self.polls.pop(0) if len(self.polls) > 1 else self.polls[0]
        else:
            outcome = VideoGenerationResult(id=job_id, status="pending")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def content_headers(self) -> dict[str, str]:
        return {"Authorization": "Bearer fake"}


@pytest.fixture
def fake_client_factory():
    """Build FakeClient instances."""
    return FakeClient


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def mock_openai_api_key():
    """Mock OPENAI_API_KEY environment variable."""
    with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test-key-12345"}):
        yield "sk-test-key-12345"


# ============================================================================
# HTTP Mock Fixtures
# ============================================================================


def make_response(status_code: int = 200, json_data=None, headers: dict | None = None) -> MagicMock:
    """Create a mock httpx.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = ""
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


@pytest.fixture
def response_factory():
    """Build mock httpx responses."""
    return make_response


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx.AsyncClient and patch it in for the test."""
    mock_client = MagicMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client.post = AsyncMock()
    mock_client.get = AsyncMock()
    with patch("httpx.AsyncClient") as mock_client_class:
        mock_client_class.return_value = mock_client
        yield mock_client
