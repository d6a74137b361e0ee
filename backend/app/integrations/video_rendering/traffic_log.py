"""Append-only JSONL audit log of provider traffic."""

import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

BINARY_DATA_PLACEHOLDER = "<BASE64_DATA_OMITTED>"
BASE64_LENGTH_THRESHOLD = 1024
BINARY_KEYS = frozenset(
    {
        "bytesBase64Encoded",
        "videoBytes",
        "videoBytesBase64",
        "b64_json",
        "imageBase64",
        "base64",
        "dataUri",
        "data_url",
    }
)

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=_-]+$")
_WHITESPACE_RE = re.compile(r"\s+")

DEFAULT_LOG_PATH = Path("./logs/llm_traffic_audit.jsonl")


def strip_binary(value: Any) -> Any:
    """Copy of ``value`` with base64 blobs replaced by a placeholder."""
    if isinstance(value, str):
        compact = _WHITESPACE_RE.sub("", value)
        if len(compact) >= BASE64_LENGTH_THRESHOLD and _BASE64_RE.match(compact):
            return BINARY_DATA_PLACEHOLDER
        return value
    if isinstance(value, dict):
        return {
            key: BINARY_DATA_PLACEHOLDER
            if key in BINARY_KEYS and isinstance(item, str) and item
            else strip_binary(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [strip_binary(item) for item in value]
    return value


def log_raw_traffic(
    task_id: str,
    direction: str,
    provider_endpoint: str | None,
    payload: Any,
    log_path: str | Path | None = None,
) -> None:
    """Append one entry to the audit log. Never raises."""
    try:
        path = Path(log_path) if log_path else DEFAULT_LOG_PATH
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "taskId": task_id or "unknown",
            "direction": direction,
            "payload": strip_binary(payload),
        }
        if provider_endpoint:
            entry["providerEndpoint"] = provider_endpoint
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")
    except Exception as e:
        logger.debug("Failed to write traffic log entry: %s", e)
