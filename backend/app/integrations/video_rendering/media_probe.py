"""Measure video duration with ffprobe."""

import asyncio
import json
import logging
import shutil
import subprocess

logger = logging.getLogger(__name__)

FFPROBE_TIMEOUT_SECONDS = 30


def _run_ffprobe(path: str) -> str:
    cmd = [
        "ffprobe",
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        path,
    ]
    result = subprocess.run(
        cmd, capture_output=True, text=True, timeout=FFPROBE_TIMEOUT_SECONDS, check=True
    )
    return result.stdout


async def probe_duration_seconds(path: str) -> float | None:
    """Duration of a local media file in seconds, or None if it cannot be measured."""
    if not path or shutil.which("ffprobe") is None:
        return None
    try:
        output = await asyncio.to_thread(_run_ffprobe, path)
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("ffprobe failed for %s: %s", path, e)
        return None

    try:
        duration = float(json.loads(output)["format"]["duration"])
    except (ValueError, KeyError, TypeError) as e:
        logger.warning("ffprobe returned no duration for %s: %s", path, e)
        return None
    return duration if duration > 0 else None
