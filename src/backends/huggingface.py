"""HuggingFace Inference API backend implementation."""

import io
import logging
import uuid
from typing import Optional

from huggingface_hub import InferenceClient, model_info
from huggingface_hub.utils import HfHubHTTPError
from PIL import Image

from src.core.base_backend import BaseBackend
from src.core.errors import UpstreamSubmitError
from src.core.models import BackendJobRequest, Job, JobStatus

logger = logging.getLogger(__name__)


class HuggingFaceBackend(BaseBackend):
    """Backend implementation using HuggingFace Inference API.

    ``image_to_image`` blocks until the image is ready, so jobs are terminal
    as soon as they are submitted.

    Attributes:
        api_key: HuggingFace API token
        model: The model ID to use for generation
        client: HuggingFace InferenceClient instance
    """

    DEFAULT_MODEL = "stabilityai/stable-diffusion-xl-base-1.0"

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: int = 60):
        """Initialize the HuggingFace backend.

        Args:
            api_key: HuggingFace API token
            model: Optional model ID (defaults to SDXL base)
            timeout: Timeout in seconds for inference calls

        Raises:
            ValueError: If API key is empty
        """
        super().__init__(api_key, timeout=timeout)

        if not api_key:
            raise ValueError("HuggingFace API key is required")

        self.model = model or self.DEFAULT_MODEL
        self.client = InferenceClient(token=api_key, timeout=timeout)
        logger.info(f"Initialized HuggingFace backend with model: {self.model}")

    def submit(self, request: BackendJobRequest) -> Job:
        """Run image-to-image generation.

        Raises:
            UpstreamSubmitError: If the inference call fails
        """
        positive, negative = self.format_prompts(request.prompts)
        tuning = request.tuning

        try:
            logger.info(f"Generating image-to-image with prompt: {positive[:50]}...")
            init_image = Image.open(io.BytesIO(request.image_bytes))

            image = self.client.image_to_image(
                image=init_image,
                prompt=positive,
                negative_prompt=negative,
                model=self.model,
                guidance_scale=tuning.guidance_scale,
                num_inference_steps=tuning.num_inference_steps,
                strength=tuning.prompt_strength,
            )

            img_byte_arr = io.BytesIO()
            image.save(img_byte_arr, format="PNG")
            image_data = img_byte_arr.getvalue()

        except HfHubHTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"HuggingFace API error: {e}")
            if status == 401:
                raise UpstreamSubmitError(
                    self.name,
                    "Invalid HuggingFace API token. Please check your HUGGINGFACE_TOKEN.",
                    status=status,
                ) from e
            raise UpstreamSubmitError(self.name, f"HuggingFace API error: {e}", status=status) from e

        except Exception as e:
            logger.error(f"Unexpected error during image generation: {e}")
            raise UpstreamSubmitError(self.name, f"Failed to generate image: {e}") from e

        logger.info(f"Successfully generated image ({len(image_data)} bytes)")
        return Job(
            job_id=f"hf-{uuid.uuid4().hex[:12]}",
            status=JobStatus.SUCCEEDED,
            output_bytes=image_data,
        )

    def poll(self, job: Job) -> Job:
        # Inference is synchronous, so the job is already terminal
        return job

    def health_check(self) -> bool:
        """Check if the configured model is reachable.

        Returns:
            True if the backend is healthy, False otherwise
        """
        try:
            logger.debug("Performing health check...")
            model_info(self.model, token=self.api_key)
            logger.debug("Health check passed")
            return True
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            return False

    @property
    def name(self) -> str:
        return "HuggingFace"

    @property
    def supported_models(self) -> list[str]:
        return [
            "stabilityai/stable-diffusion-xl-base-1.0",
            "stabilityai/stable-diffusion-xl-refiner-1.0",
            "timbrooks/instruct-pix2pix",
        ]
