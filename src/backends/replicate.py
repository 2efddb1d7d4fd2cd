"""Replicate API backend implementation."""

import logging
from typing import Any, Dict, Optional, Tuple

import replicate
from replicate.exceptions import ReplicateError

from src.core.base_backend import BaseBackend
from src.core.errors import UpstreamJobFailedError, UpstreamSubmitError
from src.core.models import BackendJobRequest, Job, JobStatus, PromptPair
from src.utils.image_utils import to_data_url

logger = logging.getLogger(__name__)


_STATUS_MAP = {
    "starting": JobStatus.QUEUED,
    "processing": JobStatus.PROCESSING,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "canceled": JobStatus.CANCELED,
    "aborted": JobStatus.CANCELED,
}


class ReplicateBackend(BaseBackend):
    """Backend implementation using Replicate predictions.

    Predictions are asynchronous: ``submit`` creates one and ``poll`` reads
    it back until Replicate reports a terminal status.

    Attributes:
        api_key: Replicate API token
        model: Model identifier, either ``owner/name`` or ``owner/name:version``
        client: Replicate client instance
    """

    DEFAULT_MODEL = "black-forest-labs/flux-dev"

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: int = 60):
        """Initialize the Replicate backend.

        Args:
            api_key: Replicate API token
            model: Optional model identifier (defaults to FLUX.1-dev)
            timeout: Timeout in seconds for downloading the output

        Raises:
            ValueError: If API key is empty
        """
        super().__init__(api_key, timeout=timeout)

        if not api_key:
            raise ValueError("Replicate API key is required")

        self.model = model or self.DEFAULT_MODEL
        self.client = replicate.Client(api_token=api_key)
        logger.info(f"Initialized Replicate backend with model: {self.model}")

    @property
    def is_flux(self) -> bool:
        return "flux" in self.model.lower()

    def format_prompts(self, prompts: PromptPair) -> Tuple[str, Optional[str]]:
        # FLUX models take no negative prompt
        if self.is_flux:
            return f"{prompts.positive_text} Avoid: {prompts.negative_text}.", None
        return prompts.positive_text, prompts.negative_text

    def build_input(self, request: BackendJobRequest) -> Dict[str, Any]:
        """Build the prediction input for the configured model family."""
        positive, negative = self.format_prompts(request.prompts)
        tuning = request.tuning

        input_params: Dict[str, Any] = {
            "prompt": positive,
            "image": to_data_url(request.image_bytes, request.mime_type),
            "prompt_strength": tuning.prompt_strength,
        }

        # FLUX models: max 50 steps, aspect ratio instead of dimensions
        if self.is_flux:
            input_params["guidance"] = tuning.guidance_scale
            input_params["num_inference_steps"] = min(tuning.num_inference_steps, 50)
            input_params["aspect_ratio"] = tuning.aspect_ratio
            input_params["output_format"] = "png"
        else:
            input_params["negative_prompt"] = negative
            input_params["guidance_scale"] = tuning.guidance_scale
            input_params["num_inference_steps"] = tuning.num_inference_steps
            input_params["width"] = tuning.width
            input_params["height"] = tuning.height
            input_params["controlnet_conditioning_scale"] = tuning.conditioning_scale

        return input_params

    def submit(self, request: BackendJobRequest) -> Job:
        """Create a prediction.

        Raises:
            UpstreamSubmitError: If Replicate rejects the prediction
        """
        input_params = self.build_input(request)
        logger.info(f"Submitting Replicate prediction with prompt: {input_params['prompt'][:50]}...")
        logger.debug(f"Calling Replicate API with params: {list(input_params.keys())}")

        try:
            if ":" in self.model:
                version = self.model.split(":", 1)[1]
                prediction = self.client.predictions.create(version=version, input=input_params)
            else:
                prediction = self.client.predictions.create(model=self.model, input=input_params)

        except ReplicateError as e:
            status = getattr(e, "status", None)
            message = getattr(e, "detail", None) or str(e)
            logger.error(f"Replicate API error: {e}")

            if status == 401 or "unauthorized" in message.lower() or "authentication" in message.lower():
                raise UpstreamSubmitError(
                    self.name,
                    f"Invalid Replicate API token. Please check your REPLICATE_TOKEN. ({message})",
                    status=status,
                ) from e
            raise UpstreamSubmitError(self.name, message, status=status) from e

        except Exception as e:
            logger.error(f"Unexpected error submitting prediction: {e}")
            raise UpstreamSubmitError(self.name, f"Failed to submit prediction: {e}") from e

        job = self._to_job(prediction)
        logger.info(f"Replicate prediction {job.job_id} submitted ({job.status.value})")
        return job

    def poll(self, job: Job) -> Job:
        """Read back a prediction.

        Raises:
            UpstreamJobFailedError: If the prediction cannot be read
        """
        try:
            prediction = self.client.predictions.get(job.job_id)
        except Exception as e:
            logger.error(f"Failed to poll prediction {job.job_id}: {e}")
            raise UpstreamJobFailedError(
                self.name, f"Failed to poll prediction: {e}", job_id=job.job_id
            ) from e
        return self._to_job(prediction)

    def _to_job(self, prediction) -> Job:
        status = _STATUS_MAP.get(str(prediction.status).lower(), JobStatus.PROCESSING)
        output_url = None

        if status == JobStatus.SUCCEEDED:
            output = prediction.output
            # Replicate returns either a URL or list of URLs
            if isinstance(output, list):
                output = output[0] if output else None
            if output is not None:
                output_url = str(getattr(output, "url", output))

        error = getattr(prediction, "error", None)
        return Job(
            job_id=prediction.id,
            status=status,
            output_url=output_url,
            error=str(error) if error else None,
        )

    def health_check(self) -> bool:
        """Check if the Replicate API is accessible.

        Returns:
            True if the backend is healthy, False otherwise
        """
        try:
            logger.debug("Performing health check...")
            models_iter = self.client.models.list()
            next(iter(models_iter))
            logger.debug("Health check passed")
            return True
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return False

    @property
    def name(self) -> str:
        return "Replicate"

    @property
    def supported_models(self) -> list[str]:
        """Get a list of image-to-image capable models.

        Returns:
            List of model identifiers on Replicate
        """
        return [
            "black-forest-labs/flux-dev",
            "black-forest-labs/flux-1.1-pro",
            "stability-ai/sdxl",
        ]
