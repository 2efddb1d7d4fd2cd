"""Core data models for portrait generation."""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Tuple
from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    """Coarse subject type driving framing and default style text."""

    PETS = "pets"
    FAMILY = "family"
    CHILDREN = "children"
    COUPLES = "couples"
    SELF = "self"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Category":
        """Parse a raw category value, falling back to ``SELF`` when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.SELF

    @property
    def is_group(self) -> bool:
        """Whether the category always depicts more than one person."""
        return self in (Category.FAMILY, Category.COUPLES)


class GenderHint(str, Enum):
    """Caller-supplied gender hint."""

    AUTO = "auto"
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def parse(cls, value: Optional[str]) -> "GenderHint":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.AUTO


class EffectiveGender(str, Enum):
    """Resolved gender used by the prompt rules."""

    MALE = "male"
    FEMALE = "female"
    MIXED = "mixed"
    UNSPECIFIED = "unspecified"

    @property
    def is_known(self) -> bool:
        return self in (EffectiveGender.MALE, EffectiveGender.FEMALE)


class GenerationRequest(BaseModel):
    """Validated generation request.

    Attributes:
        image_bytes: Decoded source photo
        image_mime_type: MIME type of the source photo
        category: Subject category (unknown values already mapped to ``self``)
        label: Free-text display label, used for logging only
        style_override: Optional caller-supplied style text
        gender_hint: Optional gender hint
        subject_count: Optional number of people in the portrait
        multi_photo: Whether the caller uploaded several photos to combine
    """

    model_config = ConfigDict(frozen=True)

    image_bytes: bytes = Field(..., min_length=1, description="Decoded source photo")
    image_mime_type: str = Field(default="image/jpeg", description="MIME type of the photo")
    category: Category = Field(..., description="Subject category")
    label: str = Field(default="", description="Display label")
    style_override: Optional[str] = Field(default=None, description="Style override text")
    gender_hint: Optional[GenderHint] = Field(default=None, description="Gender hint")
    subject_count: Optional[int] = Field(default=None, ge=1, description="Number of subjects")
    multi_photo: Optional[bool] = Field(default=None, description="Multiple photos supplied")


class PortraitRequestBody(BaseModel):
    """JSON body accepted by ``POST /api/generate``.

    Every field is optional here; presence of the required ones is checked by
    the orchestrator so that the failure is reported as a plain error payload.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "imageBase64": "/9j/4AAQSkZJRgABAQ...",
                "imageMimeType": "image/jpeg",
                "category": "pets",
                "catLabel": "Pet",
                "gender": "auto",
                "photoCount": 1,
                "isMultiPhoto": False,
            }
        },
    )

    image_base64: Optional[str] = Field(default=None, alias="imageBase64")
    image_mime_type: str = Field(default="image/jpeg", alias="imageMimeType")
    category: Optional[str] = None
    cat_label: Optional[str] = Field(default=None, alias="catLabel")
    style_prompt: Optional[str] = Field(default=None, alias="stylePrompt")
    style: Optional[str] = None
    gender: Optional[str] = None
    photo_count: Optional[int] = Field(default=None, alias="photoCount")
    is_multi_photo: Optional[bool] = Field(default=None, alias="isMultiPhoto")


class SubjectAttributes(BaseModel):
    """Canonical attribute set derived from a request."""

    model_config = ConfigDict(frozen=True)

    category: Category
    effective_gender: EffectiveGender
    is_multi_subject: bool
    subject_count: int = Field(default=1, ge=1)

    @property
    def group_size(self) -> int:
        """Number of subjects to name in the group clause.

        An explicit count wins; a multi-subject request with no count implies two.
        """
        if self.subject_count > 1:
            return self.subject_count
        return 2 if self.is_multi_subject else 1


class PromptPair(BaseModel):
    """Positive and negative prompt, kept as ordered parts.

    Backends may join the parts with their own syntax, but never add or
    remove any of them.
    """

    model_config = ConfigDict(frozen=True)

    positive_clauses: Tuple[str, ...]
    negative_terms: Tuple[str, ...]

    @property
    def positive_text(self) -> str:
        return " ".join(self.positive_clauses)

    @property
    def negative_text(self) -> str:
        return ", ".join(self.negative_terms)


class GenerationTuning(BaseModel):
    """Backend tuning parameters.

    Attributes:
        prompt_strength: Denoising strength; higher gives the model more
            freedom to depart from the source photo
        guidance_scale: How closely to follow the prompt
        conditioning_scale: Weight of the source image conditioning
        num_inference_steps: Number of denoising steps
        width: Output width in pixels
        height: Output height in pixels
    """

    prompt_strength: float = Field(default=0.55, ge=0.0, le=1.0)
    guidance_scale: float = Field(default=7.5, ge=1.0, le=20.0)
    conditioning_scale: float = Field(default=0.8, ge=0.0, le=2.0)
    num_inference_steps: int = Field(default=30, ge=1, le=150)
    width: int = Field(default=1024, ge=256, le=2048)
    height: int = Field(default=1024, ge=256, le=2048)

    @property
    def aspect_ratio(self) -> str:
        """Closest standard aspect ratio string, for backends that take one."""
        ratios = {
            "1:1": 1.0, "3:2": 1.5, "2:3": 2 / 3, "4:3": 4 / 3,
            "3:4": 0.75, "16:9": 16 / 9, "9:16": 9 / 16,
        }
        actual = self.width / self.height
        return min(ratios, key=lambda name: abs(ratios[name] - actual))


class JobStatus(str, Enum):
    """Lifecycle state of a backend job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.CANCELED)


class Job(BaseModel):
    """Snapshot of a backend job, as reported by a submit or poll call."""

    model_config = ConfigDict(frozen=True)

    job_id: str
    status: JobStatus
    output_url: Optional[str] = None
    output_bytes: Optional[bytes] = None
    error: Optional[str] = None


class BackendJobRequest(BaseModel):
    """Everything a backend needs to submit one job."""

    model_config = ConfigDict(frozen=True)

    image_bytes: bytes
    mime_type: str = "image/jpeg"
    prompts: PromptPair
    tuning: GenerationTuning = Field(default_factory=GenerationTuning)


class GeneratedImage(BaseModel):
    """Raw output of a finished generation job.

    Attributes:
        image_data: Raw image bytes
        backend: Name of the backend that generated the image
        job_id: Backend-assigned job identifier
        source_url: Remote URL the bytes were fetched from, if any
        timestamp: When the image was generated
        metadata: Additional information about the generation
    """

    image_data: bytes = Field(..., description="Raw image bytes")
    backend: str = Field(..., description="Name of the backend that generated the image")
    job_id: str = Field(..., description="Backend job identifier")
    source_url: Optional[str] = Field(default=None, description="Remote output URL")
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the image was generated"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional information about the generation"
    )


class PublishedAsset(BaseModel):
    """Result of a publish attempt; both fields absent when nothing was published."""

    remote_asset_id: Optional[str] = None
    remote_asset_url: Optional[str] = None


class AssetResult(BaseModel):
    """Final image plus its optional media-library reference."""

    image_bytes_base64: str
    mime_type: str
    remote_asset_id: Optional[str] = None
    remote_asset_url: Optional[str] = None


class ResolvedDecisions(BaseModel):
    """Attribute decisions echoed back for observability."""

    model_config = ConfigDict(populate_by_name=True)

    category: Category
    gender: EffectiveGender
    subject_count: int = Field(..., alias="subjectCount")
    is_multi_subject: bool = Field(..., alias="isMultiSubject")


class PortraitResponse(BaseModel):
    """JSON body returned by ``POST /api/generate`` on success."""

    model_config = ConfigDict(populate_by_name=True)

    image_data: str = Field(..., alias="imageData")
    printify_image_id: Optional[str] = Field(default=None, alias="printifyImageId")
    printify_image_url: Optional[str] = Field(default=None, alias="printifyImageUrl")
    portrait_image_url: Optional[str] = Field(default=None, alias="portraitImageUrl")
    resolved: ResolvedDecisions
