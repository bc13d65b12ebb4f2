"""Unit tests for data models."""

import pytest

from models.generation import (
    GenerationOutcome,
    GenerationRequest,
    ImageSource,
    JobResult,
    JobState,
    Operation,
)


class TestOperation:
    """Tests for Operation image requirements."""

    @pytest.mark.parametrize("operation", [Operation.REPLACE, Operation.OVERLAY, Operation.INSERT])
    def test_reference_operations_need_both_images(self, operation):
        assert operation.needs_base
        assert operation.needs_secondary

    def test_remove_needs_only_base(self):
        assert Operation.REMOVE.needs_base
        assert not Operation.REMOVE.needs_secondary

    def test_secondary_only_needs_only_secondary(self):
        assert not Operation.SECONDARY_ONLY.needs_base
        assert Operation.SECONDARY_ONLY.needs_secondary

    def test_default_needs_neither_specifically(self):
        assert not Operation.DEFAULT.needs_base
        assert not Operation.DEFAULT.needs_secondary


class TestJobState:
    """Tests for JobState terminal detection."""

    def test_created_and_running_are_not_terminal(self):
        assert not JobState.CREATED.is_terminal
        assert not JobState.RUNNING.is_terminal

    @pytest.mark.parametrize(
        "state",
        [JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELED, JobState.TIMED_OUT],
    )
    def test_terminal_states(self, state):
        assert state.is_terminal


class TestImageSource:
    """Tests for ImageSource rendering."""

    def test_inline_renders_canonical_data_url(self):
        source = ImageSource(mime_type="image/jpeg", data="AAAA", size_bytes=3)
        assert source.is_inline
        assert source.to_upstream() == "data:image/jpeg;base64,AAAA"

    def test_url_renders_as_is(self):
        source = ImageSource(url="https://example.com/a.png")
        assert not source.is_inline
        assert source.to_upstream() == "https://example.com/a.png"

    def test_describe_never_contains_payload(self):
        source = ImageSource(mime_type="image/png", data="SECRETPAYLOAD", size_bytes=9)
        described = source.describe()
        assert described == {"kind": "inline", "mime_type": "image/png", "bytes": 9}
        assert "SECRETPAYLOAD" not in str(described)


class TestGenerationRequest:
    """Tests for GenerationRequest echo summary."""

    def test_summary_fields(self):
        request = GenerationRequest(
            prompt="red car",
            operation=Operation.REPLACE,
            base_image=ImageSource(url="https://example.com/base.png"),
            secondary_image=ImageSource(mime_type="image/png", data="QUJD", size_bytes=3),
            strength=0.5,
            guidance_scale=5.5,
            seed=7,
        )
        summary = request.summary()

        assert summary["operation"] == "replace"
        assert summary["baseImage"] == {"kind": "url", "url": "https://example.com/base.png"}
        assert summary["secondaryImage"]["kind"] == "inline"
        assert summary["guidanceScale"] == 5.5
        assert summary["seed"] == 7
        assert summary["keepBackground"] is True

    def test_request_is_immutable(self):
        request = GenerationRequest(prompt="x")
        with pytest.raises(AttributeError):
            request.strength = 0.9


class TestJobResult:
    """Tests for JobResult output selection."""

    def test_first_output_is_canonical(self):
        result = JobResult(job_id="p1", state=JobState.SUCCEEDED, outputs=["a", "b"])
        assert result.first_output == "a"

    def test_first_output_none_when_empty(self):
        result = JobResult(job_id="p1", state=JobState.SUCCEEDED)
        assert result.first_output is None


def test_outcome_to_dict_includes_echo():
    request = GenerationRequest(prompt="red car", base_image=ImageSource(url="https://x/y.png"))
    outcome = GenerationOutcome(
        image="https://replicate.delivery/out.png",
        engine="replicate:owner/model:abc",
        variant="base",
        job_id="pred1",
        attempts=1,
        request=request,
    )

    body = outcome.to_dict()

    assert body["ok"] is True
    assert body["image"] == "https://replicate.delivery/out.png"
    assert body["engine"] == "replicate:owner/model:abc"
    assert body["jobId"] == "pred1"
    assert body["echo"]["prompt"] == "red car"
