from pydantic import BaseModel


class BBox(BaseModel):
    x: int
    y: int
    width: int
    height: int


class PoseGuideEntry(BaseModel):
    id: int
    label: str
    icon: str


class PoseGuideResponse(BaseModel):
    poses: list[PoseGuideEntry]
    settle_ms: int
    countdown_start: int


class CaptureStateMessage(BaseModel):
    type: str = "capture_state"
    phase: str
    step_index: int
    step_count: int
    required_pose: int
    pose_label: str
    pose_status: str
    detected_pose: int | None = None
    status_text: str
    countdown: int = 0
    bbox: BBox | None = None
    error: str | None = None


class CaptureResultMessage(BaseModel):
    type: str = "capture_result"
    image: str  # data:image/jpeg;base64,...
    width: int
    height: int
    mime_type: str = "image/jpeg"


class CaptureErrorMessage(BaseModel):
    type: str = "capture_error"
    message: str


class CaptureCancelledMessage(BaseModel):
    type: str = "capture_cancelled"


class RetakeAck(BaseModel):
    type: str = "retake_ack"
    phase: str


class ErrorMessage(BaseModel):
    type: str = "error"
    message: str
