"""Abstract base class for image generation backends."""

import base64
import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import requests

from .errors import UpstreamJobFailedError
from .models import BackendJobRequest, Job, PromptPair

logger = logging.getLogger(__name__)


class BaseBackend(ABC):
    """Abstract interface that all image generation backends must implement.

    A backend exposes an asynchronous job protocol: ``submit`` creates a job,
    ``poll`` reports its current state and ``fetch_output`` turns a succeeded
    job into raw bytes. Synchronous providers simply return a job that is
    already terminal from ``submit``.

    Attributes:
        api_key: API key for the provider
        timeout: Timeout in seconds for a single HTTP call
    """

    def __init__(self, api_key: Optional[str] = None, timeout: int = 60):
        """Initialize the backend.

        Args:
            api_key: Optional API key for authentication with cloud services
            timeout: Timeout in seconds for a single HTTP call
        """
        self.api_key = api_key
        self.timeout = timeout

    @abstractmethod
    def submit(self, request: BackendJobRequest) -> Job:
        """Submit a generation job.

        Args:
            request: Source image, prompts and tuning

        Returns:
            The job as reported by the provider right after submission

        Raises:
            UpstreamSubmitError: If the provider rejects the submission
        """
        pass

    @abstractmethod
    def poll(self, job: Job) -> Job:
        """Fetch the current state of a previously submitted job.

        Args:
            job: The last known snapshot of the job

        Returns:
            A fresh snapshot of the job
        """
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check if the backend is available and working.

        Returns:
            True if the backend is healthy, False otherwise
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the human-readable name of this backend."""
        pass

    @property
    @abstractmethod
    def supported_models(self) -> list[str]:
        """Get a list of models supported by this backend."""
        pass

    def format_prompts(self, prompts: PromptPair) -> Tuple[str, Optional[str]]:
        """Render a PromptPair in the syntax this backend expects.

        The default passes sentences and a comma-separated negative prompt
        through unchanged. Backends without a negative prompt parameter fold
        the exclusions into the positive text instead.

        Returns:
            Tuple of (positive_text, negative_text or None)
        """
        return prompts.positive_text, prompts.negative_text or None

    def fetch_output(self, job: Job) -> bytes:
        """Dereference the output of a succeeded job into raw bytes.

        Inline payloads are returned as-is, ``data:`` URLs are decoded and
        remote URLs are downloaded once.

        Raises:
            UpstreamJobFailedError: If the job has no output or it cannot be fetched
        """
        if job.output_bytes:
            return job.output_bytes

        if not job.output_url:
            raise UpstreamJobFailedError(
                self.name, "job succeeded but returned no output", job_id=job.job_id
            )

        if job.output_url.startswith("data:"):
            try:
                _, payload = job.output_url.split(",", 1)
                return base64.b64decode(payload)
            except ValueError as e:
                raise UpstreamJobFailedError(
                    self.name, f"malformed inline output: {e}", job_id=job.job_id
                ) from e

        try:
            logger.debug(f"Downloading output of job {job.job_id} from {job.output_url}")
            response = requests.get(job.output_url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to download generated image: {e}")
            raise UpstreamJobFailedError(
                self.name, f"failed to download generated image: {e}", job_id=job.job_id
            ) from e

        if not response.content:
            raise UpstreamJobFailedError(
                self.name, "generated image download was empty", job_id=job.job_id
            )
        return response.content

    def __repr__(self) -> str:
        """String representation of the backend."""
        return f"{self.__class__.__name__}(name='{self.name}')"
