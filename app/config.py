"""Application configuration management."""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.errors import ConfigurationError
from src.core.models import GenerationTuning


# Backend name -> (settings field, environment variable, where to get a key)
BACKEND_KEYS = {
    "replicate": ("replicate_token", "REPLICATE_TOKEN", "https://replicate.com/account/api-tokens"),
    "xai": ("xai_api_key", "XAI_API_KEY", "https://console.x.ai"),
    "huggingface": ("huggingface_token", "HUGGINGFACE_TOKEN", "https://huggingface.co/settings/tokens"),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    These settings are automatically loaded from the .env file or environment variables.
    All sensitive data (API keys) should be stored in environment variables, not hardcoded.

    Attributes:
        default_backend: Which generation backend to use
        replicate_token: Replicate API token
        xai_api_key: xAI API key
        huggingface_token: HuggingFace API token
        printify_api_key: Printify API key; publishing is skipped without it
        printify_shop_id: Printify shop; publishing is skipped without it
        poll_interval: Seconds between job status polls
        max_wait: Seconds to wait for a job before giving up
        timeout: Timeout in seconds for a single HTTP call
        single_subject_tuning: Tuning for one-subject portraits
        group_tuning: Tuning for multi-subject portraits
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # Backend selection
    default_backend: str = "replicate"

    # API Keys
    replicate_token: Optional[str] = None
    xai_api_key: Optional[str] = None
    huggingface_token: Optional[str] = None

    # Model Configuration
    replicate_model: str = "black-forest-labs/flux-dev"
    xai_image_model: str = "grok-2-image"
    xai_vision_model: str = "grok-2-vision-1212"
    xai_describe_subject: bool = True
    xai_api_url: str = "https://api.x.ai/v1"
    huggingface_model: str = "stabilityai/stable-diffusion-xl-base-1.0"

    # Publishing
    printify_api_key: Optional[str] = None
    printify_shop_id: Optional[str] = None
    printify_api_url: str = "https://api.printify.com/v1"

    # Job lifecycle
    poll_interval: float = 2.0
    max_wait: float = 120.0
    timeout: int = 60

    # Group scenes trade identity fidelity for compositional room
    single_subject_tuning: GenerationTuning = GenerationTuning(
        prompt_strength=0.55,
        guidance_scale=7.5,
        conditioning_scale=0.8,
        num_inference_steps=30,
        width=1024,
        height=1024,
    )
    group_tuning: GenerationTuning = GenerationTuning(
        prompt_strength=0.7,
        guidance_scale=6.5,
        conditioning_scale=0.55,
        num_inference_steps=35,
        width=1216,
        height=832,
    )

    # Output
    output_format: str = "JPEG"

    # Server
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = ["*"]

    # Testing
    run_integration_tests: bool = False

    @property
    def publishing_enabled(self) -> bool:
        """Whether Printify credentials are present."""
        return bool(self.printify_api_key and self.printify_shop_id)

    def tuning_for(self, is_multi_subject: bool) -> GenerationTuning:
        """Tuning profile for a single- or multi-subject portrait."""
        return self.group_tuning if is_multi_subject else self.single_subject_tuning

    def validate_required_keys(self) -> None:
        """Validate that the configured backend has its API key.

        Raises:
            ConfigurationError: If the backend is unknown or its key is missing
        """
        backend = self.default_backend.lower()
        if backend not in BACKEND_KEYS:
            raise ConfigurationError(
                f"Server misconfiguration: unknown DEFAULT_BACKEND '{self.default_backend}'"
            )

        field, env_name, url = BACKEND_KEYS[backend]
        if not getattr(self, field):
            raise ConfigurationError(
                f"Server misconfiguration: {env_name} not set. "
                f"It is required when using the {backend} backend. "
                f"Get your token from: {url}"
            )


# Global settings instance
settings = Settings()
