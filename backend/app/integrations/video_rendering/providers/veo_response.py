"""Decoders for the Veo ``fetchPredictOperation`` response shapes.

The location of the generated video in a finished operation differs between
model versions and API surfaces. Each known shape has its own decoder;
decoders are tried in order and the first match wins. An operation that
matches none of them is reported by the caller as a provider error rather
than guessed at.

Known shapes (all under the operation's ``response`` object):

* ``vertex_videos``: ``videos[]`` with ``gcsUri``, ``bytesBase64Encoded`` or a
  base64 string under ``video``
  (Vertex AI predictLongRunning, Veo 2/3).
* ``gemini_generate_video_response``:
  ``generateVideoResponse.generatedSamples[].video`` with ``uri``
  (Gemini API).
* ``generated_samples``: ``generatedSamples[].video`` or
  ``generatedVideos[].video`` with ``uri``/``videoBytes``/``bytesBase64Encoded``,
  or ``video`` itself holding the base64 string.
* ``legacy_predictions``: ``predictions[]`` with ``bytesBase64Encoded``,
  ``videoBytesBase64``, ``uri`` or ``videoUri`` (early preview models).
"""

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional

URI_KEYS = ("gcsUri", "uri", "videoUri")
INLINE_KEYS = ("bytesBase64Encoded", "videoBytes", "videoBytesBase64", "video")
# A bare string under ``video`` only counts as base64 past this length.
BARE_VIDEO_MIN_CHARS = 100


@dataclass(frozen=True)
class VeoVideoPayload:
    """A video located in an operation response."""

    kind: Literal["uri", "inline"]
    value: str
    schema: str
    mime_type: Optional[str] = None


def _is_uri(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("gs://", "https://", "http://"))


def _is_inline(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _from_bare_string(value: Any, schema: str) -> Optional[VeoVideoPayload]:
    if _is_uri(value):
        return VeoVideoPayload("uri", value, schema)
    if isinstance(value, str) and len(value.strip()) > BARE_VIDEO_MIN_CHARS:
        return VeoVideoPayload("inline", value, schema)
    return None


def _from_video_object(video: Any, schema: str) -> Optional[VeoVideoPayload]:
    if isinstance(video, str):
        return _from_bare_string(video, schema)
    if not isinstance(video, dict):
        return None
    mime_type = video.get("mimeType") or video.get("encoding")
    for key in URI_KEYS:
        if _is_uri(video.get(key)):
            return VeoVideoPayload("uri", video[key], schema, mime_type)
    for key in INLINE_KEYS:
        value = video.get(key)
        if key == "video":
            payload = _from_bare_string(value, schema)
            if payload:
                return VeoVideoPayload(payload.kind, payload.value, schema, mime_type)
        elif _is_inline(value):
            return VeoVideoPayload("inline", value, schema, mime_type)
    return None


def _first_match(items: Any, schema: str, unwrap: Optional[str] = None) -> Optional[VeoVideoPayload]:
    if not isinstance(items, list):
        return None
    for item in items:
        candidate = item.get(unwrap) if unwrap and isinstance(item, dict) else item
        payload = _from_video_object(candidate, schema)
        if payload:
            return payload
    return None


def decode_vertex_videos(response: dict[str, Any]) -> Optional[VeoVideoPayload]:
    return _first_match(response.get("videos"), "vertex_videos")


def decode_gemini_generate_video_response(response: dict[str, Any]) -> Optional[VeoVideoPayload]:
    container = response.get("generateVideoResponse")
    if not isinstance(container, dict):
        return None
    return _first_match(
        container.get("generatedSamples"), "gemini_generate_video_response", unwrap="video"
    )


def decode_generated_samples(response: dict[str, Any]) -> Optional[VeoVideoPayload]:
    for key in ("generatedSamples", "generatedVideos"):
        payload = _first_match(response.get(key), "generated_samples", unwrap="video")
        if payload:
            return payload
    return None


def decode_legacy_predictions(response: dict[str, Any]) -> Optional[VeoVideoPayload]:
    return _first_match(response.get("predictions"), "legacy_predictions")


DECODERS: tuple[Callable[[dict[str, Any]], Optional[VeoVideoPayload]], ...] = (
    decode_vertex_videos,
    decode_gemini_generate_video_response,
    decode_generated_samples,
    decode_legacy_predictions,
)


def decode_operation_video(operation: dict[str, Any]) -> Optional[VeoVideoPayload]:
    """Locate the generated video in a finished operation, or return None."""
    response = operation.get("response")
    if not isinstance(response, dict):
        return None
    for decoder in DECODERS:
        payload = decoder(response)
        if payload:
            return payload
    return None


def filtered_reasons(operation: dict[str, Any]) -> list[str]:
    """Responsible-AI filter reasons reported when videos were withheld."""
    response = operation.get("response")
    if not isinstance(response, dict):
        return []
    containers = [response]
    if isinstance(response.get("generateVideoResponse"), dict):
        containers.append(response["generateVideoResponse"])
    reasons: list[str] = []
    for container in containers:
        values = container.get("raiMediaFilteredReasons")
        if isinstance(values, list):
            reasons.extend(str(value) for value in values)
    if not reasons:
        count = response.get("raiMediaFilteredCount")
        if isinstance(count, int) and count > 0:
            reasons.append(f"{count} video(s) filtered by responsible AI policy")
    return reasons


def operation_shape(operation: dict[str, Any]) -> dict[str, Any]:
    """Key outline of an operation, for diagnostics on unmatched shapes."""
    response = operation.get("response")
    return {
        "operation_keys": sorted(operation.keys()),
        "response_keys": sorted(response.keys()) if isinstance(response, dict) else None,
    }
