"""Unit tests for HuggingFace backend."""

import pytest
from unittest.mock import Mock, patch
from PIL import Image

from huggingface_hub.utils import HfHubHTTPError

from src.backends.huggingface import HuggingFaceBackend
from src.core.errors import UpstreamSubmitError
from src.core.models import BackendJobRequest, GenerationTuning, JobStatus


@pytest.fixture
def job_request(sample_image_bytes, sample_prompts):
    return BackendJobRequest(
        image_bytes=sample_image_bytes,
        mime_type="image/png",
        prompts=sample_prompts,
        tuning=GenerationTuning(prompt_strength=0.7, num_inference_steps=35),
    )


def _http_error(message, status_code):
    mock_response = Mock()
    mock_response.status_code = status_code
    return HfHubHTTPError(message, response=mock_response)


class TestHuggingFaceBackend:
    """Tests for HuggingFaceBackend."""

    @patch('src.backends.huggingface.InferenceClient')
    def test_initialization(self, mock_client_class):
        """Test backend initialization."""
        backend = HuggingFaceBackend(api_key="test_token", timeout=45)

        assert backend.api_key == "test_token"
        assert backend.name == "HuggingFace"
        assert backend.model == HuggingFaceBackend.DEFAULT_MODEL
        mock_client_class.assert_called_once_with(token="test_token", timeout=45)

    def test_initialization_empty_api_key(self):
        """Test that initialization fails with empty API key."""
        with pytest.raises(ValueError, match="API key is required"):
            HuggingFaceBackend(api_key="")

    @patch('src.backends.huggingface.InferenceClient')
    def test_submit_success(self, mock_client_class, job_request, sample_prompts):
        """Test successful image-to-image generation."""
        mock_client = mock_client_class.return_value
        mock_client.image_to_image.return_value = Image.new('RGB', (64, 64), color='blue')

        job = HuggingFaceBackend(api_key="test_token").submit(job_request)

        assert job.status == JobStatus.SUCCEEDED
        assert job.job_id.startswith("hf-")
        assert job.output_bytes[:8] == b"\x89PNG\r\n\x1a\n"

        kwargs = mock_client.image_to_image.call_args.kwargs
        assert kwargs["prompt"] == sample_prompts.positive_text
        assert kwargs["negative_prompt"] == sample_prompts.negative_text
        assert kwargs["strength"] == 0.7
        assert kwargs["num_inference_steps"] == 35
        assert kwargs["model"] == HuggingFaceBackend.DEFAULT_MODEL

    @patch('src.backends.huggingface.InferenceClient')
    def test_submit_unauthorized(self, mock_client_class, job_request):
        """Test handling of an invalid token."""
        mock_client_class.return_value.image_to_image.side_effect = _http_error("Unauthorized", 401)

        with pytest.raises(UpstreamSubmitError, match="Invalid HuggingFace API token") as exc_info:
            HuggingFaceBackend(api_key="test_token").submit(job_request)

        assert exc_info.value.status == 401

    @patch('src.backends.huggingface.InferenceClient')
    def test_submit_rate_limited(self, mock_client_class, job_request):
        """Test handling of other HTTP errors."""
        mock_client_class.return_value.image_to_image.side_effect = _http_error("Rate limit exceeded", 429)

        with pytest.raises(UpstreamSubmitError, match="HuggingFace API error") as exc_info:
            HuggingFaceBackend(api_key="test_token").submit(job_request)

        assert exc_info.value.status == 429

    @patch('src.backends.huggingface.InferenceClient')
    def test_submit_unreadable_source(self, mock_client_class, sample_prompts):
        """Test that a corrupt source photo is reported as a submit failure."""
        request = BackendJobRequest(image_bytes=b"not an image", prompts=sample_prompts)

        with pytest.raises(UpstreamSubmitError, match="Failed to generate image"):
            HuggingFaceBackend(api_key="test_token").submit(request)

        mock_client_class.return_value.image_to_image.assert_not_called()

    @patch('src.backends.huggingface.InferenceClient')
    def test_poll_returns_job(self, mock_client_class, succeeded_job):
        assert HuggingFaceBackend(api_key="test_token").poll(succeeded_job) is succeeded_job

    @patch('src.backends.huggingface.model_info')
    @patch('src.backends.huggingface.InferenceClient')
    def test_health_check_success(self, mock_client_class, mock_model_info):
        assert HuggingFaceBackend(api_key="test_token").health_check() is True
        mock_model_info.assert_called_once_with(HuggingFaceBackend.DEFAULT_MODEL, token="test_token")

    @patch('src.backends.huggingface.model_info')
    @patch('src.backends.huggingface.InferenceClient')
    def test_health_check_failure(self, mock_client_class, mock_model_info):
        mock_model_info.side_effect = Exception("Connection error")

        assert HuggingFaceBackend(api_key="test_token").health_check() is False
