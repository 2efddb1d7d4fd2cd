"""xAI (Grok) backend implementation.

Grok's image endpoint is synchronous and text-only, so the source photo is
used by first asking the vision model to describe the subject. The
description becomes the opening sentence of the prompt.
"""

import base64
import binascii
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

import requests

from src.core.base_backend import BaseBackend
from src.core.errors import UpstreamJobFailedError, UpstreamSubmitError
from src.core.models import BackendJobRequest, Job, JobStatus, PromptPair
from src.utils.image_utils import to_data_url

logger = logging.getLogger(__name__)


DESCRIBE_INSTRUCTION = (
    "Describe the subject(s) of this photo in vivid detail for a Renaissance portrait "
    "painter. Include: species or type (if animal), age estimate, hair/fur colour, eye "
    "colour, skin tone, distinguishing features, expression, and any notable physical "
    "characteristics. Be specific and descriptive. Maximum 120 words. No preamble."
)


def _error_message(response: requests.Response) -> str:
    """Extract the provider's error text from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"

    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    return f"HTTP {response.status_code}"


def _first_item(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    """First object of a list field, or an empty dict when the shape is off."""
    items = data.get(key)
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


class XaiBackend(BaseBackend):
    """Backend implementation using the xAI Grok API.

    Attributes:
        api_key: xAI API key
        model: Image generation model
        vision_model: Vision model used to describe the source photo
        describe_subject: Whether to run the vision step at all
        api_url: Base URL of the xAI API
    """

    DEFAULT_MODEL = "grok-2-image"
    DEFAULT_VISION_MODEL = "grok-2-vision-1212"
    DEFAULT_API_URL = "https://api.x.ai/v1"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        vision_model: Optional[str] = None,
        describe_subject: bool = True,
        api_url: Optional[str] = None,
        timeout: int = 60,
    ):
        super().__init__(api_key, timeout=timeout)

        if not api_key:
            raise ValueError("xAI API key is required")

        self.model = model or self.DEFAULT_MODEL
        self.vision_model = vision_model or self.DEFAULT_VISION_MODEL
        self.describe_subject = describe_subject
        self.api_url = (api_url or self.DEFAULT_API_URL).rstrip("/")
        logger.info(f"Initialized xAI backend with model: {self.model}")

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def format_prompts(self, prompts: PromptPair) -> Tuple[str, Optional[str]]:
        # No negative prompt parameter; exclusions become a closing sentence
        return f"{prompts.positive_text} Avoid: {prompts.negative_text}.", None

    def _post(self, path: str, payload: Dict[str, Any], step: str) -> Dict[str, Any]:
        try:
            response = requests.post(
                f"{self.api_url}{path}",
                headers=self.headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Grok {step} request failed: {e}")
            raise UpstreamSubmitError(self.name, f"Grok {step} request failed: {e}") from e

        if not response.ok:
            message = _error_message(response)
            logger.error(f"Grok {step} error ({response.status_code}): {message}")
            if response.status_code == 401:
                message = "Invalid xAI API key. Check your XAI_API_KEY environment variable."
            raise UpstreamSubmitError(
                self.name, f"Grok {step} error: {message}", status=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamSubmitError(
                self.name, f"Grok {step} returned invalid JSON", status=response.status_code
            ) from e

        if not isinstance(data, dict):
            raise UpstreamSubmitError(
                self.name, f"Grok {step} returned an unexpected response", status=response.status_code
            )
        return data

    def describe(self, image_bytes: bytes, mime_type: str) -> str:
        """Ask the vision model for a description of the photographed subject."""
        data = self._post(
            "/chat/completions",
            {
                "model": self.vision_model,
                "max_tokens": 300,
                "messages": [{
                    "role": "user",
                    "content": [
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": to_data_url(image_bytes, mime_type),
                                "detail": "high",
                            },
                        },
                        {"type": "text", "text": DESCRIBE_INSTRUCTION},
                    ],
                }],
            },
            step="Vision",
        )
        message = _first_item(data, "choices").get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            content = ""
        return content.strip() or "a noble subject"

    def submit(self, request: BackendJobRequest) -> Job:
        """Generate the image; the returned job is always terminal.

        Raises:
            UpstreamSubmitError: If either the vision or the image call fails
            UpstreamJobFailedError: If the returned image data cannot be decoded
        """
        prompt, _ = self.format_prompts(request.prompts)

        if self.describe_subject:
            description = self.describe(request.image_bytes, request.mime_type)
            logger.debug(f"Subject description: {description[:80]}...")
            prompt = f"The subject: {description} {prompt}"

        logger.info(f"Generating with Grok, prompt: {prompt[:50]}...")
        data = self._post(
            "/images/generations",
            {
                "model": self.model,
                "prompt": prompt,
                "n": 1,
                "response_format": "b64_json",
            },
            step="Imagine",
        )

        job_id = f"xai-{uuid.uuid4().hex[:12]}"
        b64 = _first_item(data, "data").get("b64_json")
        if not b64:
            # Succeeded without output; the runner reports the contract violation
            return Job(job_id=job_id, status=JobStatus.SUCCEEDED)

        try:
            image_bytes = base64.b64decode(b64, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            logger.error(f"Grok returned undecodable image data: {e}")
            raise UpstreamJobFailedError(
                self.name, f"Grok returned undecodable image data: {e}", job_id=job_id
            ) from e

        return Job(job_id=job_id, status=JobStatus.SUCCEEDED, output_bytes=image_bytes)

    def poll(self, job: Job) -> Job:
        # Generation is synchronous, so the job is already terminal
        return job

    def health_check(self) -> bool:
        try:
            response = requests.get(
                f"{self.api_url}/models", headers=self.headers, timeout=self.timeout
            )
            return response.ok
        except requests.exceptions.RequestException as e:
            logger.warning(f"Health check failed: {e}")
            return False

    @property
    def name(self) -> str:
        return "xAI"

    @property
    def supported_models(self) -> list[str]:
        return ["grok-2-image", "grok-2-image-1212"]
