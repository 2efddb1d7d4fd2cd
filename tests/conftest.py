"""Shared test fixtures and configuration."""

import base64
import io
import os
from unittest.mock import Mock, patch

import pytest
from PIL import Image

from src.core.attributes import resolve_attributes
from src.core.models import GenerationTuning, Job, JobStatus
from src.core.prompt_composer import compose_prompts


@pytest.fixture
def sample_fake_image():
    """Return a fake PIL Image for testing."""
    return Image.new('RGB', (64, 64), color='red')


@pytest.fixture
def sample_image_bytes(sample_fake_image):
    """Return sample image as PNG bytes."""
    img_byte_arr = io.BytesIO()
    sample_fake_image.save(img_byte_arr, format='PNG')
    return img_byte_arr.getvalue()


@pytest.fixture
def sample_image_base64(sample_image_bytes):
    """Return sample image as a raw base64 string."""
    return base64.b64encode(sample_image_bytes).decode("utf-8")


@pytest.fixture
def sample_prompts():
    """Return prompts for a single male self-portrait."""
    return compose_prompts(resolve_attributes("self", "male", 1, False))


@pytest.fixture
def sample_tuning():
    """Return default tuning parameters."""
    return GenerationTuning()


@pytest.fixture
def make_settings():
    """Build isolated Settings, ignoring the real environment and .env file."""
    from app.config import Settings

    def _make(**overrides):
        values = {"replicate_token": "r8_test_token"}
        values.update(overrides)
        with patch.dict(os.environ, {}, clear=True):
            return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def succeeded_job():
    """Return a succeeded job with an inline payload."""
    return Job(job_id="job-1", status=JobStatus.SUCCEEDED, output_bytes=b"image-bytes")


@pytest.fixture
def mock_backend():
    """Return a mocked backend whose output is fetched from the job itself."""
    backend = Mock()
    backend.name = "MockBackend"
    backend.fetch_output.side_effect = lambda job: job.output_bytes
    return backend


@pytest.fixture
def test_api_key():
    """Return a test API key."""
    return "r8_test_token_12345"


# Skip integration tests unless explicitly requested
def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    from app.config import Settings

    if Settings().run_integration_tests:
        return

    skip_integration = pytest.mark.skip(reason="Integration tests disabled (set RUN_INTEGRATION_TESTS=true to enable)")

    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
