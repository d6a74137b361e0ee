"""Persist provider-hosted videos to a GCS bucket or local disk."""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Literal

import google.auth.exceptions
import httpx
from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage
from pydantic import BaseModel

from .exceptions import ErrorCode, VideoRendererError

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = Path("./tmp/video-renders")
PUBLIC_PATH = "/video-assets"
GCS_PUBLIC_BASE_URL = "https://storage.googleapis.com"


class PersistedVideo(BaseModel):
    """Where a mirrored video ended up."""

    video_url: str
    storage_path: str
    location: Literal["bucket", "local"]
    local_path: str | None = None


def sanitize_segment(value: str | None, fallback: str = "job") -> str:
    """Lowercase slug safe for object paths and file names."""
    if not value:
        return fallback
    normalized = re.sub(r"[^a-z0-9]+", "-", str(value).lower()).strip("-")
    return normalized or fallback


async def download_video(
    url: str, headers: dict[str, str] | None = None, timeout: float = 300.0
) -> tuple[bytes, str]:
    """Fetch video bytes and content type."""
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.get(url, headers=headers or {}, follow_redirects=True)
        response.raise_for_status()
        content_type = response.headers.get("content-type") or "video/mp4"
        return response.content, content_type


def _upload_to_bucket(
    bucket_name: str,
    object_path: str,
    content: bytes,
    content_type: str,
    make_public: bool,
) -> None:
    client = storage.Client()
    blob = client.bucket(bucket_name).blob(object_path)
    blob.upload_from_string(content, content_type=content_type)
    if make_public:
        try:
            blob.make_public()
        except gcs_exceptions.GoogleAPICallError as e:
            logger.warning("Could not make %s public: %s", object_path, e)


def bucket_object_url(bucket_name: str, object_path: str, base_url: str | None = None) -> str:
    base = (base_url or f"{GCS_PUBLIC_BASE_URL}/{bucket_name}").rstrip("/")
    return f"{base}/{object_path}"


def _save_local(output_dir: Path, file_name: str, content: bytes) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / file_name
    with open(path, "wb") as f:
        f.write(content)
    return path.resolve()


async def persist_remote_video(
    source_url: str,
    job_id: str | None,
    provider: str,
    headers: dict[str, str] | None = None,
    *,
    output_dir: str | Path | None = None,
    bucket: str | None = None,
    bucket_base_url: str | None = None,
    make_public: bool = False,
    download_timeout: float = 300.0,
) -> PersistedVideo:
    """
    Mirror a provider-hosted video into durable storage.

    Uploads to ``bucket`` when one is configured. If no bucket is configured
    or the upload fails, the video is written to ``output_dir`` and served
    from ``/video-assets/<file>``.

    Raises:
        VideoRendererError: PERSISTENCE_ERROR if the video cannot be stored
    """
    if not source_url:
        raise VideoRendererError(
            "source_url is required to persist a remote video",
            ErrorCode.PERSISTENCE_ERROR,
            {"provider": provider, "job_id": job_id},
        )

    safe_job = sanitize_segment(job_id, "job")
    safe_provider = sanitize_segment(provider, "video")
    timestamp = int(time.time() * 1000)

    try:
        content, content_type = await download_video(source_url, headers, download_timeout)
    except httpx.HTTPStatusError as e:
        raise VideoRendererError(
            f"Failed to download video: HTTP {e.response.status_code}",
            ErrorCode.PERSISTENCE_ERROR,
            {"provider": provider, "job_id": job_id, "http_status": e.response.status_code},
        ) from e
    except httpx.HTTPError as e:
        raise VideoRendererError(
            f"Failed to download video: {e}",
            ErrorCode.PERSISTENCE_ERROR,
            {"provider": provider, "job_id": job_id},
        ) from e

    if bucket:
        object_path = f"videos/{safe_job}/{safe_provider}-{timestamp}.mp4"
        try:
            await asyncio.to_thread(
                _upload_to_bucket, bucket, object_path, content, content_type, make_public
            )
        except (gcs_exceptions.GoogleAPIError, google.auth.exceptions.GoogleAuthError, OSError) as e:
            logger.error(
                "Failed to upload video to gs://%s; falling back to local disk: %s", bucket, e
            )
        else:
            return PersistedVideo(
                video_url=bucket_object_url(bucket, object_path, bucket_base_url),
                storage_path=f"gs://{bucket}/{object_path}",
                location="bucket",
            )

    file_name = f"{safe_provider}_{timestamp}.mp4"
    try:
        path = _save_local(Path(output_dir) if output_dir else DEFAULT_OUTPUT_DIR, file_name, content)
    except OSError as e:
        raise VideoRendererError(
            f"Failed to write video to disk: {e}",
            ErrorCode.PERSISTENCE_ERROR,
            {"provider": provider, "job_id": job_id},
        ) from e

    logger.info("Persisted %s video for %s to %s", provider, safe_job, path)
    return PersistedVideo(
        video_url=f"{PUBLIC_PATH}/{file_name}",
        storage_path=str(path),
        location="local",
        local_path=str(path),
    )
