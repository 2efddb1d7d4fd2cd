"""Error taxonomy for portrait generation.

Every error carries the HTTP status it should be reported with, so the web
layer can turn any of them into an ``{"error": ...}`` payload without
inspecting the type.
"""

from typing import Optional


class PortraitError(Exception):
    """Base class for all errors raised by the portrait pipeline."""

    http_status: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortraitError):
    """Required input is missing or malformed. Caller's fault, never retried."""

    http_status = 400


class ConfigurationError(PortraitError):
    """A required credential or setting is absent. Operator's fault."""

    http_status = 500


class UpstreamError(PortraitError):
    """Base class for failures attributable to a generation backend."""

    http_status = 502

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class UpstreamSubmitError(UpstreamError):
    """The backend rejected the job submission (non-2xx or network failure).

    Attributes:
        provider: Backend name
        status: HTTP status reported by the provider, if any
        message: Provider's error text
    """

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        super().__init__(provider, message)
        self.status = status

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.provider} error ({self.status}): {self.message}"
        return f"{self.provider} error: {self.message}"


class UpstreamJobFailedError(UpstreamError):
    """The job reached ``failed``/``canceled`` or succeeded without usable output."""

    def __init__(self, provider: str, message: str, job_id: Optional[str] = None):
        super().__init__(provider, message)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"{self.provider} job failed: {self.message}"


class UpstreamTimeoutError(UpstreamError):
    """The job did not reach a terminal state within the maximum wait."""

    def __init__(self, provider: str, job_id: str, waited: float):
        super().__init__(
            provider,
            f"job {job_id} did not finish within {waited:.0f}s"
        )
        self.job_id = job_id
        self.waited = waited

    def __str__(self) -> str:
        return f"{self.provider} timed out: {self.message}"


class PublishError(PortraitError):
    """Uploading to the media library failed. Never surfaced to the caller."""
