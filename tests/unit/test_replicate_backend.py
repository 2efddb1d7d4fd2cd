"""Unit tests for Replicate backend."""

import pytest
from unittest.mock import Mock, patch

from replicate.exceptions import ReplicateError

from src.backends.replicate import ReplicateBackend
from src.core.errors import UpstreamJobFailedError, UpstreamSubmitError
from src.core.models import BackendJobRequest, GenerationTuning, JobStatus


def _prediction(status="starting", output=None, error=None, prediction_id="pred-123"):
    prediction = Mock()
    prediction.id = prediction_id
    prediction.status = status
    prediction.output = output
    prediction.error = error
    return prediction


@pytest.fixture
def job_request(sample_prompts):
    return BackendJobRequest(
        image_bytes=b"photo",
        mime_type="image/png",
        prompts=sample_prompts,
        tuning=GenerationTuning(),
    )


class TestReplicateBackend:
    """Tests for ReplicateBackend construction."""

    @patch('src.backends.replicate.replicate.Client')
    def test_initialization(self, mock_client_class):
        """Test backend initialization."""
        backend = ReplicateBackend(api_key="test_token")

        assert backend.api_key == "test_token"
        assert backend.name == "Replicate"
        assert backend.model == ReplicateBackend.DEFAULT_MODEL
        mock_client_class.assert_called_once_with(api_token="test_token")

    def test_initialization_empty_api_key(self):
        """Test that initialization fails with empty API key."""
        with pytest.raises(ValueError, match="API key is required"):
            ReplicateBackend(api_key="")

    @patch('src.backends.replicate.replicate.Client')
    def test_supported_models(self, mock_client_class):
        models = ReplicateBackend(api_key="test_token").supported_models

        assert "black-forest-labs/flux-dev" in models


class TestBuildInput:
    """Tests for prediction input per model family."""

    @patch('src.backends.replicate.replicate.Client')
    def test_flux_input(self, mock_client_class, job_request, sample_prompts):
        backend = ReplicateBackend(api_key="test_token")

        params = backend.build_input(job_request)

        assert params["prompt"] == f"{sample_prompts.positive_text} Avoid: {sample_prompts.negative_text}."
        assert params["image"].startswith("data:image/png;base64,")
        assert params["prompt_strength"] == 0.55
        assert params["guidance"] == 7.5
        assert params["aspect_ratio"] == "1:1"
        assert "negative_prompt" not in params

    @patch('src.backends.replicate.replicate.Client')
    def test_flux_caps_steps(self, mock_client_class, sample_prompts):
        backend = ReplicateBackend(api_key="test_token")
        request = BackendJobRequest(
            image_bytes=b"photo",
            prompts=sample_prompts,
            tuning=GenerationTuning(num_inference_steps=80),
        )

        assert backend.build_input(request)["num_inference_steps"] == 50

    @patch('src.backends.replicate.replicate.Client')
    def test_sdxl_input(self, mock_client_class, job_request, sample_prompts):
        backend = ReplicateBackend(api_key="test_token", model="stability-ai/sdxl:abc123")

        params = backend.build_input(job_request)

        assert params["prompt"] == sample_prompts.positive_text
        assert params["negative_prompt"] == sample_prompts.negative_text
        assert params["width"] == 1024
        assert params["height"] == 1024
        assert params["controlnet_conditioning_scale"] == 0.8


class TestSubmit:
    """Tests for prediction creation."""

    @patch('src.backends.replicate.replicate.Client')
    def test_submit_by_model(self, mock_client_class, job_request):
        mock_client = mock_client_class.return_value
        mock_client.predictions.create.return_value = _prediction("starting")

        job = ReplicateBackend(api_key="test_token").submit(job_request)

        assert job.job_id == "pred-123"
        assert job.status == JobStatus.QUEUED
        kwargs = mock_client.predictions.create.call_args.kwargs
        assert kwargs["model"] == "black-forest-labs/flux-dev"
        assert "prompt" in kwargs["input"]

    @patch('src.backends.replicate.replicate.Client')
    def test_submit_by_version(self, mock_client_class, job_request):
        mock_client = mock_client_class.return_value
        mock_client.predictions.create.return_value = _prediction("processing")

        ReplicateBackend(api_key="test_token", model="stability-ai/sdxl:abc123").submit(job_request)

        assert mock_client.predictions.create.call_args.kwargs["version"] == "abc123"

    @patch('src.backends.replicate.replicate.Client')
    def test_submit_unauthorized(self, mock_client_class, job_request):
        mock_client = mock_client_class.return_value
        mock_client.predictions.create.side_effect = ReplicateError(
            status=401, detail="You did not pass an authentication token"
        )

        with pytest.raises(UpstreamSubmitError, match="Invalid Replicate API token") as exc_info:
            ReplicateBackend(api_key="bad_token").submit(job_request)

        assert exc_info.value.status == 401
        assert exc_info.value.provider == "Replicate"

    @patch('src.backends.replicate.replicate.Client')
    def test_submit_rejected(self, mock_client_class, job_request):
        mock_client = mock_client_class.return_value
        mock_client.predictions.create.side_effect = ReplicateError(
            status=422, detail="Invalid input: prompt_strength"
        )

        with pytest.raises(UpstreamSubmitError) as exc_info:
            ReplicateBackend(api_key="test_token").submit(job_request)

        assert exc_info.value.status == 422
        assert str(exc_info.value) == "Replicate error (422): Invalid input: prompt_strength"

    @patch('src.backends.replicate.replicate.Client')
    def test_submit_network_error(self, mock_client_class, job_request):
        mock_client = mock_client_class.return_value
        mock_client.predictions.create.side_effect = ConnectionError("Network error")

        with pytest.raises(UpstreamSubmitError, match="Failed to submit prediction"):
            ReplicateBackend(api_key="test_token").submit(job_request)


class TestPoll:
    """Tests for reading predictions back."""

    @patch('src.backends.replicate.replicate.Client')
    def test_poll_succeeded_with_list_output(self, mock_client_class):
        mock_client = mock_client_class.return_value
        mock_client.predictions.get.return_value = _prediction(
            "succeeded", output=["https://replicate.delivery/out.png"]
        )
        backend = ReplicateBackend(api_key="test_token")

        job = backend.poll(backend._to_job(_prediction("starting")))

        assert job.status == JobStatus.SUCCEEDED
        assert job.output_url == "https://replicate.delivery/out.png"
        mock_client.predictions.get.assert_called_once_with("pred-123")

    @patch('src.backends.replicate.replicate.Client')
    def test_poll_succeeded_with_file_output(self, mock_client_class):
        file_output = Mock()
        file_output.url = "https://replicate.delivery/file.png"
        mock_client_class.return_value.predictions.get.return_value = _prediction(
            "succeeded", output=file_output
        )
        backend = ReplicateBackend(api_key="test_token")

        job = backend.poll(backend._to_job(_prediction("processing")))

        assert job.output_url == "https://replicate.delivery/file.png"

    @patch('src.backends.replicate.replicate.Client')
    def test_poll_failed_carries_error(self, mock_client_class):
        mock_client_class.return_value.predictions.get.return_value = _prediction(
            "failed", error="NSFW content detected"
        )
        backend = ReplicateBackend(api_key="test_token")

        job = backend.poll(backend._to_job(_prediction("processing")))

        assert job.status == JobStatus.FAILED
        assert job.error == "NSFW content detected"
        assert job.output_url is None

    @pytest.mark.parametrize("raw,expected", [
        ("starting", JobStatus.QUEUED),
        ("processing", JobStatus.PROCESSING),
        ("canceled", JobStatus.CANCELED),
        ("aborted", JobStatus.CANCELED),
        ("booting", JobStatus.PROCESSING),
    ])
    @patch('src.backends.replicate.replicate.Client')
    def test_status_mapping(self, mock_client_class, raw, expected):
        backend = ReplicateBackend(api_key="test_token")

        assert backend._to_job(_prediction(raw)).status == expected

    @patch('src.backends.replicate.replicate.Client')
    def test_poll_error(self, mock_client_class):
        mock_client_class.return_value.predictions.get.side_effect = RuntimeError("503")
        backend = ReplicateBackend(api_key="test_token")

        with pytest.raises(UpstreamJobFailedError, match="Failed to poll prediction"):
            backend.poll(backend._to_job(_prediction("processing")))


class TestHealthCheck:
    """Tests for the health check."""

    @patch('src.backends.replicate.replicate.Client')
    def test_health_check_success(self, mock_client_class):
        mock_client_class.return_value.models.list.return_value = iter([Mock()])

        assert ReplicateBackend(api_key="test_token").health_check() is True

    @patch('src.backends.replicate.replicate.Client')
    def test_health_check_failure(self, mock_client_class):
        mock_client_class.return_value.models.list.side_effect = Exception("API error")

        assert ReplicateBackend(api_key="test_token").health_check() is False
