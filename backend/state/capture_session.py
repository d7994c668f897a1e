from enum import Enum, IntEnum
from dataclasses import dataclass
from typing import Any

from config import POSE_SETTLE_MS, COUNTDOWN_START, COUNTDOWN_TICK_MS


class PoseId(IntEnum):
    POSE_1 = 1  # index finger
    POSE_2 = 2  # index + middle
    POSE_3 = 3  # index + middle + ring


@dataclass(frozen=True)
class PoseGuide:
    pose: PoseId
    label: str
    icon: str


POSE_GUIDE: tuple[PoseGuide, ...] = (
    PoseGuide(PoseId.POSE_1, "Pose 1", "/icon/pose1.svg"),
    PoseGuide(PoseId.POSE_2, "Pose 2", "/icon/pose2.svg"),
    PoseGuide(PoseId.POSE_3, "Pose 3", "/icon/pose3.svg"),
)


class CapturePhase(str, Enum):
    AWAITING_POSE = "AWAITING_POSE"
    COUNTDOWN = "COUNTDOWN"
    CAPTURED = "CAPTURED"
    ERROR = "ERROR"
    CLOSED = "CLOSED"


class PoseStatus(str, Enum):
    IDLE = "IDLE"
    OK = "OK"
    UNDETECTED = "UNDETECTED"


@dataclass(frozen=True)
class CaptureSettings:
    sequence: tuple[PoseId, ...] = tuple(guide.pose for guide in POSE_GUIDE)
    settle_seconds: float = POSE_SETTLE_MS / 1000
    countdown_start: int = COUNTDOWN_START
    countdown_tick_seconds: float = COUNTDOWN_TICK_MS / 1000

    def __post_init__(self):
        if not self.sequence:
            raise ValueError("capture sequence must contain at least one pose")
        if self.countdown_start < 1:
            raise ValueError("countdown_start must be >= 1")


@dataclass
class CaptureSessionState:
    phase: CapturePhase = CapturePhase.AWAITING_POSE
    step_index: int = 0
    pose_status: PoseStatus = PoseStatus.IDLE
    last_pose: PoseId | None = None

    # Settle timer (armed while the required pose is held)
    settle_pending: bool = False

    # Capture countdown
    countdown: int = 0

    # Result
    captured: Any = None
    error: str | None = None
