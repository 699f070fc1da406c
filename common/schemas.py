from __future__ import annotations
import base64
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MediaKind(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"


class MediaAsset(BaseModel):
    """One object discovered by a listing pass; identity is remote_key alone."""
    model_config = ConfigDict(frozen=True)

    remote_key: str
    url: str
    kind: MediaKind = MediaKind.PHOTO

    @property
    def filename(self) -> str:
        return self.remote_key.rsplit("/", 1)[-1]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MediaAsset):
            return NotImplemented
        return self.remote_key == other.remote_key

    def __hash__(self) -> int:
        return hash(self.remote_key)


class ObjectEntry(BaseModel):
    key: str
    size: Optional[int] = None


class VideoMetadata(BaseModel):
    duration: float
    width: int
    height: int
    frame_rate: float = 30.0


class VideoFrame(BaseModel):
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    frame_number: int = Field(ge=1)
    timestamp_seconds: float = Field(ge=0)
    image_data: bytes
    mime_type: str = "image/jpeg"

    def data_url(self) -> str:
        b64 = base64.b64encode(self.image_data).decode("ascii")
        return f"data:{self.mime_type};base64,{b64}"


class StoredFrame(BaseModel):
    frame_number: int
    timestamp_seconds: float
    remote_key: str
    url: str


class BoundingBox(BaseModel):
    """
    Face region as fractions of the full image (face-detection service keys accepted).
    Detectors report slightly negative or >1 edges for faces cut by the frame;
    those are clamped into [0, 1].
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    left: float = Field(alias="Left")
    top: float = Field(alias="Top")
    width: float = Field(alias="Width")
    height: float = Field(alias="Height")

    @field_validator("left", "top", "width", "height")
    @classmethod
    def _clamp_fraction(cls, v: float) -> float:
        return min(1.0, max(0.0, v))

    @property
    def center(self) -> tuple[float, float]:
        return (self.left + self.width / 2, self.top + self.height / 2)


class FaceRecord(BaseModel):
    face_id: str
    bounding_box: Optional[BoundingBox] = None
    image: MediaAsset


class CropTransform(BaseModel):
    model_config = ConfigDict(frozen=True)

    scale: float
    translate_x: float
    translate_y: float
    container_size: float

    def css(self) -> str:
        return f"translate({self.translate_x:g}px, {self.translate_y:g}px) scale({self.scale:g})"

    def project(self, fx: float, fy: float) -> tuple[float, float]:
        """Container pixel where the fractional image point (fx, fy) lands."""
        s = self.container_size * self.scale
        return (self.translate_x + fx * s, self.translate_y + fy * s)


class VideoAsset(BaseModel):
    video_id: str
    name: str
    key: str
    url: str
    thumbnail_key: Optional[str] = None
    thumbnail_url: Optional[str] = None
    frame_count: int = 0


class UploadProgress(BaseModel):
    stage: Literal["processing", "extracting", "uploading", "indexing"]
    current: float
    total: float = 100
    status: str
    current_file: Optional[str] = None


class VideoProcessingResult(BaseModel):
    video_key: str
    thumbnail_key: Optional[str] = None
    frames: List[StoredFrame] = Field(default_factory=list)
    metadata: VideoMetadata
    frame_count: int = 0


# ---------- stream events ----------
class VideoUploaded(BaseModel):
    event: str = "video.uploaded"
    event_id: str
    video_id: str
    name: str
    path: Optional[str] = None  # local file path
    url: Optional[str] = None   # or a fetchable URL
    ts: Optional[str] = None    # ISO8601 UTC


class VideoProcessed(BaseModel):
    event: str = "video.processed"
    event_id: str
    video_id: str
    video_key: str
    thumbnail_key: Optional[str] = None
    frame_keys: List[str] = Field(default_factory=list)
    duration: float
    width: int
    height: int
    ts: str
