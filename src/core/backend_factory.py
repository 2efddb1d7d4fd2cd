"""Factory for creating backend instances from settings."""

import logging
from typing import Callable, Dict

from src.core.base_backend import BaseBackend
from src.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _create_replicate(settings) -> BaseBackend:
    from src.backends.replicate import ReplicateBackend
    return ReplicateBackend(
        api_key=settings.replicate_token or "",
        model=settings.replicate_model,
        timeout=settings.timeout,
    )


def _create_xai(settings) -> BaseBackend:
    from src.backends.xai import XaiBackend
    return XaiBackend(
        api_key=settings.xai_api_key or "",
        model=settings.xai_image_model,
        vision_model=settings.xai_vision_model,
        describe_subject=settings.xai_describe_subject,
        api_url=settings.xai_api_url,
        timeout=settings.timeout,
    )


def _create_huggingface(settings) -> BaseBackend:
    from src.backends.huggingface import HuggingFaceBackend
    return HuggingFaceBackend(
        api_key=settings.huggingface_token or "",
        model=settings.huggingface_model,
        timeout=settings.timeout,
    )


class BackendFactory:
    """Factory class for creating backend instances.

    Backends are registered by name with a builder that takes the
    application settings. Backend modules are imported lazily so that an
    unused provider SDK is never loaded.
    """

    _builders: Dict[str, Callable[..., BaseBackend]] = {
        "replicate": _create_replicate,
        "xai": _create_xai,
        "huggingface": _create_huggingface,
    }

    @classmethod
    def register(cls, backend_type: str, builder: Callable[..., BaseBackend]) -> None:
        """Register an additional backend builder.

        Args:
            backend_type: Name used in ``DEFAULT_BACKEND``
            builder: Callable taking the settings and returning a backend
        """
        cls._builders[backend_type.lower()] = builder
        logger.info(f"Registered backend: {backend_type.lower()}")

    @classmethod
    def create_backend(cls, backend_type: str, settings) -> BaseBackend:
        """Create a backend instance.

        Args:
            backend_type: The type of backend (e.g., "replicate", "xai", "huggingface")
            settings: Application settings holding credentials and models

        Returns:
            An instance of the requested backend

        Raises:
            ConfigurationError: If the backend is unknown or its credentials are missing
        """
        backend_type_lower = backend_type.lower()
        builder = cls._builders.get(backend_type_lower)
        if builder is None:
            supported = ", ".join(cls.get_supported_backends())
            raise ConfigurationError(
                f"Unsupported backend type: '{backend_type}'. "
                f"Supported backends: {supported}"
            )

        logger.info(f"Creating {backend_type_lower} backend")
        try:
            return builder(settings)
        except ValueError as e:
            raise ConfigurationError(f"Server misconfiguration: {e}") from e

    @classmethod
    def get_supported_backends(cls) -> list[str]:
        """Get list of supported backend type names."""
        return sorted(cls._builders)

    @classmethod
    def is_supported(cls, backend_type: str) -> bool:
        """Check if a backend type is supported."""
        return backend_type.lower() in cls._builders
