"""
Pydantic models and enums for the garment video pipeline.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Media ────────────────────────────────────────────────────────────────────

class MediaType(str, Enum):
    JPEG = "image/jpeg"
    PNG = "image/png"

    @classmethod
    def parse(cls, content_type: Optional[str]) -> Optional["MediaType"]:
        """Map an upload's content type onto an allowed media type, or None."""
        if not content_type:
            return None
        value = content_type.split(";")[0].strip().lower()
        if value == "image/jpg":
            return cls.JPEG
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def sniff(cls, data: bytes, default: "MediaType") -> "MediaType":
        """Detect PNG/JPEG from magic bytes, falling back to `default`."""
        if data.startswith(b"\x89PNG\r\n\x1a\n"):
            return cls.PNG
        if data.startswith(b"\xff\xd8\xff"):
            return cls.JPEG
        return default

    @property
    def extension(self) -> str:
        return "png" if self is MediaType.PNG else "jpg"


VIDEO_CONTENT_TYPE = "video/mp4"


class ImageRole(str, Enum):
    FRONT = "front"
    BACK = "back"
    ENHANCED_FRONT = "enhanced-front"
    ENHANCED_BACK = "enhanced-back"
    LEFT = "left"
    RIGHT = "right"


class ImageAsset(BaseModel):
    """An image buffer plus its declared media type and role in the run."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    media_type: MediaType
    role: ImageRole


# ── Storage ──────────────────────────────────────────────────────────────────

class Bucket(str, Enum):
    SOURCE_IMAGES = "source-images"
    ENHANCED_IMAGES = "enhanced-images"
    GENERATED_ANGLES = "generated-angles"
    GENERATED_VIDEOS = "generated-videos"


class ArtifactReference(BaseModel):
    """Public URL of an uploaded artifact, with the bucket and key it lives under."""
    model_config = ConfigDict(frozen=True)

    url: str
    bucket: Bucket
    key: str


class StoredImage(BaseModel):
    """An image that has already been uploaded in this run."""
    model_config = ConfigDict(frozen=True)

    asset: ImageAsset
    ref: ArtifactReference

    @property
    def data(self) -> bytes:
        return self.asset.data

    @property
    def media_type(self) -> MediaType:
        return self.asset.media_type

    @property
    def url(self) -> str:
        return self.ref.url


# ── Costs ────────────────────────────────────────────────────────────────────

class CostSchedule(BaseModel):
    """
    Display estimate of provider spend per run, in USD.

    Fixed per run. Not computed from actual usage and not billing-accurate.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enhancement: float = 0.08
    side_angles: float = Field(0.12, serialization_alias="sideAngles")
    video_creation: float = Field(1.27, serialization_alias="videoCreation")
    total: float = 1.47


COST_SCHEDULE = CostSchedule()


# ── Progress ─────────────────────────────────────────────────────────────────

class PipelineStatus(str, Enum):
    VALIDATING = "VALIDATING"
    UPLOADING_ORIGINALS = "UPLOADING_ORIGINALS"
    ENHANCING = "ENHANCING"
    SYNTHESIZING_ANGLES = "SYNTHESIZING_ANGLES"
    SYNTHESIZING_VIDEO = "SYNTHESIZING_VIDEO"
    FINALIZING = "FINALIZING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class EventStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class PipelineResult(BaseModel):
    status: EventStatus = EventStatus.COMPLETE
    video_url: str = Field(..., serialization_alias="videoUrl")
    generated_images: list[str] = Field(default_factory=list, serialization_alias="generatedImages")
    enhanced_images: list[str] = Field(default_factory=list, serialization_alias="enhancedImages")
    costs: CostSchedule = COST_SCHEDULE


class ProgressEvent(BaseModel):
    """
    One self-contained progress update for a run.

    `result` is set only on the terminal success event; `error` only on the
    terminal error event.
    """
    model_config = ConfigDict(frozen=True)

    step: Optional[int] = None
    progress: Optional[int] = None
    message: str
    status: EventStatus
    result: Optional[PipelineResult] = None
    error: Optional[bool] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (EventStatus.COMPLETE, EventStatus.ERROR)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


class PhaseInfo(BaseModel):
    step: int
    progress: int
    message: str


# Emitted on entry to each phase, before its work starts.
PHASES: dict[PipelineStatus, PhaseInfo] = {
    PipelineStatus.UPLOADING_ORIGINALS: PhaseInfo(
        step=1, progress=10, message="Uploading images..."
    ),
    PipelineStatus.ENHANCING: PhaseInfo(
        step=2, progress=25, message="Enhancing image quality..."
    ),
    PipelineStatus.SYNTHESIZING_ANGLES: PhaseInfo(
        step=3, progress=50, message="Generating side angles..."
    ),
    PipelineStatus.SYNTHESIZING_VIDEO: PhaseInfo(
        step=4, progress=80, message="Creating video..."
    ),
    PipelineStatus.FINALIZING: PhaseInfo(
        step=5, progress=100, message="Video generation complete!"
    ),
}
