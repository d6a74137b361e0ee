"""Tests for Veo operation response decoders."""

from app.integrations.video_rendering.providers.veo_response import (
    decode_operation_video,
    filtered_reasons,
    operation_shape,
)


class TestDecodeOperationVideo:
    """Each known response shape is located by its own decoder."""

    def test_vertex_videos_uri(self):
        video = decode_operation_video(
            {"done": True, "response": {"videos": [{"gcsUri": "gs://b/v.mp4", "mimeType": "video/mp4"}]}}
        )
        assert video.kind == "uri"
        assert video.value == "gs://b/v.mp4"
        assert video.schema == "vertex_videos"
        assert video.mime_type == "video/mp4"

    def test_vertex_videos_inline(self):
        video = decode_operation_video({"response": {"videos": [{"bytesBase64Encoded": "AAAA"}]}})
        assert video.kind == "inline"
        assert video.value == "AAAA"

    def test_gemini_generate_video_response(self):
        video = decode_operation_video(
            {
                "response": {
                    "generateVideoResponse": {
                        "generatedSamples": [{"video": {"uri": "https://example.com/v.mp4"}}]
                    }
                }
            }
        )
        assert video.schema == "gemini_generate_video_response"
        assert video.value == "https://example.com/v.mp4"

    def test_generated_videos(self):
        video = decode_operation_video(
            {"response": {"generatedVideos": [{"video": {"videoBytes": "QUJD"}}]}}
        )
        assert video.schema == "generated_samples"
        assert video.kind == "inline"

    def test_legacy_predictions(self):
        video = decode_operation_video(
            {"response": {"predictions": [{"videoUri": "gs://legacy/v.mp4"}]}}
        )
        assert video.schema == "legacy_predictions"
        assert video.value == "gs://legacy/v.mp4"

    def test_first_decoder_wins(self):
        video = decode_operation_video(
            {
                "response": {
                    "videos": [{"gcsUri": "gs://first/v.mp4"}],
                    "predictions": [{"uri": "gs://second/v.mp4"}],
                }
            }
        )
        assert video.value == "gs://first/v.mp4"

    def test_skips_empty_entries(self):
        video = decode_operation_video(
            {"response": {"videos": [{}, {"gcsUri": ""}, {"gcsUri": "gs://b/2.mp4"}]}}
        )
        assert video.value == "gs://b/2.mp4"

    def test_vertex_videos_bare_video_string(self):
        encoded = "A" * 200
        video = decode_operation_video({"done": True, "response": {"videos": [{"video": encoded}]}})
        assert video.kind == "inline"
        assert video.value == encoded
        assert video.schema == "vertex_videos"

    def test_generated_samples_video_string(self):
        """Test a sample whose ``video`` is the base64 string itself."""
        encoded = "QUJD" * 50
        video = decode_operation_video({"response": {"generatedSamples": [{"video": encoded}]}})
        assert video.kind == "inline"
        assert video.value == encoded
        assert video.schema == "generated_samples"

    def test_gemini_video_string(self):
        encoded = "QUJD" * 50
        video = decode_operation_video(
            {"response": {"generateVideoResponse": {"generatedSamples": [{"video": encoded}]}}}
        )
        assert video.kind == "inline"
        assert video.schema == "gemini_generate_video_response"

    def test_video_string_uri(self):
        video = decode_operation_video({"response": {"generatedSamples": [{"video": "gs://b/v.mp4"}]}})
        assert video.kind == "uri"
        assert video.value == "gs://b/v.mp4"

    def test_short_video_string_ignored(self):
        """Test short strings under ``video`` are not mistaken for base64."""
        assert decode_operation_video({"response": {"videos": [{"video": "pending"}]}}) is None
        assert decode_operation_video({"response": {"generatedSamples": [{"video": "A" * 100}]}}) is None

    def test_unknown_shape(self):
        assert decode_operation_video({"response": {"output": {"file": "x"}}}) is None
        assert decode_operation_video({"done": True}) is None


class TestDiagnostics:
    def test_filtered_reasons(self):
        reasons = filtered_reasons(
            {"response": {"generateVideoResponse": {"raiMediaFilteredReasons": ["policy"]}}}
        )
        assert reasons == ["policy"]

    def test_filtered_count_only(self):
        reasons = filtered_reasons({"response": {"raiMediaFilteredCount": 2}})
        assert reasons == ["2 video(s) filtered by responsible AI policy"]

    def test_no_filtering(self):
        assert filtered_reasons({"response": {"videos": []}}) == []

    def test_operation_shape(self):
        shape = operation_shape({"name": "op", "done": True, "response": {"b": 1, "a": 2}})
        assert shape == {"operation_keys": ["done", "name", "response"], "response_keys": ["a", "b"]}
