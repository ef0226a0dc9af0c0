# sitesnap/models.py
import json
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ImageFormat(str, Enum):
    PNG = "png"    # lossless
    JPEG = "jpeg"  # lossy

    @property
    def extension(self) -> str:
        return "jpg" if self is ImageFormat.JPEG else "png"

    @property
    def lossless(self) -> bool:
        return self is ImageFormat.PNG


class JobStatus(str, Enum):
    PENDING = "pending"
    CAPTURING_DESKTOP = "capturing-desktop"
    CAPTURING_MOBILE = "capturing-mobile"
    COMPLETED = "completed"
    FAILED = "failed"


class EventStatus(str, Enum):
    STARTING = "starting"
    CAPTURING_DESKTOP = "capturing-desktop"
    CAPTURING_MOBILE = "capturing-mobile"
    COMPLETED = "completed"
    ERROR = "error"


EVENT_TO_JOB_STATUS = {
    EventStatus.STARTING: JobStatus.PENDING,
    EventStatus.CAPTURING_DESKTOP: JobStatus.CAPTURING_DESKTOP,
    EventStatus.CAPTURING_MOBILE: JobStatus.CAPTURING_MOBILE,
    EventStatus.COMPLETED: JobStatus.COMPLETED,
    EventStatus.ERROR: JobStatus.FAILED,
}


class ScreenshotRequest(BaseModel):
    url: Optional[str] = None


class JobHandle(BaseModel):
    job_id: str
    message: str


class EncodedImage(BaseModel):
    path: Path
    format: ImageFormat
    size: int
    quality: Optional[int] = None  # only for lossy output
    over_budget: bool = False


class Artifact(EncodedImage):
    viewport: str
    width: int
    height: int

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def resolution(self) -> str:
        return f"{self.width} x {self.height}"


class ArtifactInfo(BaseModel):
    url: str
    filename: str
    size: int
    format: ImageFormat
    resolution: str
    quality: Optional[int] = None
    over_budget: bool = False

    @classmethod
    def from_artifact(cls, artifact: Artifact, url_prefix: str) -> "ArtifactInfo":
        return cls(
            url=f"{url_prefix.rstrip('/')}/{artifact.filename}",
            filename=artifact.filename,
            size=artifact.size,
            format=artifact.format,
            resolution=artifact.resolution,
            quality=artifact.quality,
            over_budget=artifact.over_budget,
        )


class CaptureResult(BaseModel):
    url: str
    desktop: ArtifactInfo
    mobile: ArtifactInfo


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: EventStatus
    progress: int
    message: str
    result: Optional[CaptureResult] = None

    @property
    def terminal(self) -> bool:
        return self.status in (EventStatus.COMPLETED, EventStatus.ERROR)

    def to_sse(self) -> str:
        payload = self.model_dump(mode="json", exclude_none=True)
        return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class JobSnapshot(BaseModel):
    job_id: str
    url: str
    created_at: str
    status: JobStatus
    progress: int
    message: str
    subscribed: bool
    result: Optional[CaptureResult] = None
    error: Optional[str] = None


class JobList(BaseModel):
    jobs: List[JobSnapshot] = []

