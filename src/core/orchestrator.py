"""Portrait generation orchestrator.

Ties the pipeline together for one request::

    body -> GenerationRequest -> SubjectAttributes -> PromptPair
         -> job (submit/poll) -> image bytes -> publish -> PortraitResponse

Validation and configuration problems are raised before any network call.
Upstream failures abort the request. Publishing can only add to the response.
"""

import base64
import logging
from typing import Callable, Optional

from src.core.attributes import resolve_attributes
from src.core.backend_factory import BackendFactory
from src.core.errors import ConfigurationError, UpstreamJobFailedError, ValidationError
from src.core.job_runner import GenerationJobRunner
from src.core.models import (
    AssetResult,
    Category,
    GenderHint,
    GenerationRequest,
    PortraitRequestBody,
    PortraitResponse,
    ResolvedDecisions,
)
from src.core.prompt_composer import compose_prompts
from src.core.publisher import PrintifyPublisher
from src.utils.image_utils import MIME_TYPES, convert_image, decode_image_input

logger = logging.getLogger(__name__)


class PortraitOrchestrator:
    """Entry point for portrait generation requests.

    Attributes:
        settings: Application settings
        publisher: Media library publisher
    """

    def __init__(
        self,
        settings,
        runner_factory: Optional[Callable[[], GenerationJobRunner]] = None,
        publisher: Optional[PrintifyPublisher] = None,
    ):
        """Initialize the orchestrator.

        Args:
            settings: Application settings (credentials, tuning, timeouts)
            runner_factory: Optional override for building the job runner;
                by default one is built per request for the configured backend
            publisher: Optional publisher; by default built from settings
        """
        self.settings = settings
        self._runner_factory = runner_factory or self._build_runner
        self.publisher = publisher or PrintifyPublisher(
            api_key=settings.printify_api_key,
            shop_id=settings.printify_shop_id,
            api_url=settings.printify_api_url,
            timeout=settings.timeout,
        )

    def _build_runner(self) -> GenerationJobRunner:
        backend = BackendFactory.create_backend(self.settings.default_backend, self.settings)
        return GenerationJobRunner(
            backend,
            poll_interval=self.settings.poll_interval,
            max_wait=self.settings.max_wait,
        )

    @staticmethod
    def parse_request(body: PortraitRequestBody) -> GenerationRequest:
        """Validate the raw body into a GenerationRequest.

        Raises:
            ValidationError: If the image or category is missing, or a field is malformed
        """
        if not body.image_base64 or not body.category:
            raise ValidationError("Missing imageBase64 or category")

        if body.photo_count is not None and body.photo_count < 1:
            raise ValidationError("photoCount must be a positive integer")

        try:
            image_bytes, mime_type = decode_image_input(body.image_base64, body.image_mime_type)
        except ValueError as e:
            raise ValidationError(f"Invalid imageBase64: {e}") from e

        style = body.style_prompt if body.style_prompt else body.style
        return GenerationRequest(
            image_bytes=image_bytes,
            image_mime_type=mime_type,
            category=Category.parse(body.category),
            label=body.cat_label or "",
            style_override=style,
            gender_hint=GenderHint.parse(body.gender) if body.gender else None,
            subject_count=body.photo_count,
            multi_photo=body.is_multi_photo,
        )

    def generate(self, body: PortraitRequestBody) -> PortraitResponse:
        """Generate a portrait for one request.

        Args:
            body: Raw request body

        Returns:
            PortraitResponse with the encoded image and optional Printify reference

        Raises:
            ValidationError: If the request is incomplete
            ConfigurationError: If the backend credentials are missing
            UpstreamError: If the generation backend fails or times out
        """
        request = self.parse_request(body)
        self.settings.validate_required_keys()
        if self.settings.output_format.upper() not in MIME_TYPES:
            raise ConfigurationError(
                f"Server misconfiguration: unsupported OUTPUT_FORMAT '{self.settings.output_format}'"
            )
        runner = self._runner_factory()

        attrs = resolve_attributes(
            request.category,
            request.gender_hint,
            request.subject_count,
            request.multi_photo,
        )
        prompts = compose_prompts(attrs, request.style_override)
        tuning = self.settings.tuning_for(attrs.is_multi_subject)

        logger.info(
            f"Generating {attrs.category.value} portrait"
            f"{f' ({request.label})' if request.label else ''}: "
            f"gender={attrs.effective_gender.value}, multi={attrs.is_multi_subject}, "
            f"count={attrs.subject_count}, backend={runner.backend.name}"
        )

        generated = runner.run(request.image_bytes, request.image_mime_type, prompts, tuning)

        try:
            image_bytes, mime_type = convert_image(generated.image_data, self.settings.output_format)
        except ValueError as e:
            raise UpstreamJobFailedError(
                generated.backend, f"returned an unreadable image: {e}", job_id=generated.job_id
            ) from e

        published = self.publisher.publish(image_bytes, attrs.category)
        asset = AssetResult(
            image_bytes_base64=base64.b64encode(image_bytes).decode("utf-8"),
            mime_type=mime_type,
            remote_asset_id=published.remote_asset_id,
            remote_asset_url=published.remote_asset_url,
        )

        return PortraitResponse(
            image_data=f"data:{asset.mime_type};base64,{asset.image_bytes_base64}",
            printify_image_id=asset.remote_asset_id,
            printify_image_url=asset.remote_asset_url,
            portrait_image_url=generated.source_url,
            resolved=ResolvedDecisions(
                category=attrs.category,
                gender=attrs.effective_gender,
                subject_count=attrs.subject_count,
                is_multi_subject=attrs.is_multi_subject,
            ),
        )
