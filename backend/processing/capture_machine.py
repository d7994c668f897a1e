"""
Guided capture state machine.

Walks a live hand-landmark stream through a fixed sequence of poses. Each
required pose must be held continuously for the settle duration before the
next one is asked for; after the last pose a countdown runs and the current
frame is captured when it reaches zero.

Timers are wall-clock: the machine asks its scheduler (normally the running
asyncio loop) for `call_later` handles, so progress does not depend on the
camera frame rate. Only one settle timer and one countdown timer exist at a
time, and every callback checks the liveness flag before touching state.
"""

import logging
from typing import Callable

from processing.frame_capture import CapturedImage, FrameCaptureError
from processing.pose_classifier import classify_pose
from schemas.messages import CaptureStateMessage
from state.capture_session import (
    CapturePhase, CaptureSessionState, CaptureSettings, PoseId, PoseStatus, POSE_GUIDE,
)

logger = logging.getLogger("uvicorn.error")

POSE_LABELS = {guide.pose: guide.label for guide in POSE_GUIDE}


class CaptureStateMachine:
    def __init__(
        self,
        scheduler,
        capture_frame: Callable[[], CapturedImage | None],
        on_captured: Callable[[CapturedImage], None],
        settings: CaptureSettings | None = None,
        on_update: Callable[[CaptureStateMessage], None] | None = None,
        classifier: Callable = classify_pose,
    ):
        self.settings = settings or CaptureSettings()
        self.state = CaptureSessionState()
        self._scheduler = scheduler
        self._capture_frame = capture_frame
        self._on_captured = on_captured
        self._on_update = on_update
        self._classify = classifier

        self._settle_timer = None
        self._countdown_timer = None
        self._alive = True
        self._captured_emitted = False

    @property
    def required_pose(self) -> PoseId:
        return self.settings.sequence[self.state.step_index]

    @property
    def is_last_step(self) -> bool:
        return self.state.step_index >= len(self.settings.sequence) - 1

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def finished(self) -> bool:
        """True once no more frames are needed."""
        return not self._alive or self.state.phase in (CapturePhase.CAPTURED, CapturePhase.ERROR)

    # --- Frame input ---

    def on_frame(self, hand) -> PoseId | None:
        """Apply one landmark observation. Returns the classified pose."""
        if self.finished:
            return None

        try:
            pose = self._classify(hand)
        except Exception:
            logger.exception("[Capture] pose classification failed, treating frame as no hand")
            pose = None
        self.state.last_pose = pose

        # The countdown is not cancelled by losing the pose once it has started.
        # Frames no longer count as a match while counting down.
        if self.state.phase == CapturePhase.COUNTDOWN:
            self.state.pose_status = PoseStatus.UNDETECTED
            self._notify()
            return pose

        required = self.required_pose
        logger.debug(f"[Capture] runtime pose expected={required.value}, detected={pose.value if pose else None}")

        if pose == required:
            self.state.pose_status = PoseStatus.OK
            if self._settle_timer is None:
                self._settle_timer = self._scheduler.call_later(
                    self.settings.settle_seconds, self._on_settled
                )
                self.state.settle_pending = True
        else:
            self.state.pose_status = PoseStatus.UNDETECTED
            self._cancel_settle()

        self._notify()
        return pose

    # --- Timers ---

    def _on_settled(self):
        if not self._alive or self.state.phase != CapturePhase.AWAITING_POSE:
            return
        self._settle_timer = None
        self.state.settle_pending = False

        if self.is_last_step:
            logger.info(f"[Capture] pose {self.required_pose.value} held, starting countdown")
            self._start_countdown()
        else:
            self.state.step_index += 1
            self.state.pose_status = PoseStatus.IDLE
            logger.info(f"[Capture] advanced to step {self.state.step_index}, waiting for pose {self.required_pose.value}")
        self._notify()

    def _start_countdown(self):
        self._cancel_countdown()
        self.state.phase = CapturePhase.COUNTDOWN
        self.state.countdown = self.settings.countdown_start
        self._countdown_timer = self._scheduler.call_later(
            self.settings.countdown_tick_seconds, self._on_tick
        )

    def _on_tick(self):
        if not self._alive or self.state.phase != CapturePhase.COUNTDOWN:
            return
        self._countdown_timer = None
        self.state.countdown -= 1

        if self.state.countdown <= 0:
            self.state.countdown = 0
            self._capture()
            return

        self._countdown_timer = self._scheduler.call_later(
            self.settings.countdown_tick_seconds, self._on_tick
        )
        self._notify()

    def _capture(self):
        try:
            image = self._capture_frame()
        except FrameCaptureError as e:
            self.fail(str(e))
            return
        if image is None:
            self.fail("No camera frame available to capture")
            return

        self.state.captured = image
        self.state.phase = CapturePhase.CAPTURED
        logger.info(f"[Capture] photo captured: {image.width}x{image.height}, {len(image.data)} bytes")
        self._notify()

        if not self._captured_emitted:
            self._captured_emitted = True
            self._on_captured(image)

    def _cancel_settle(self):
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None
        self.state.settle_pending = False

    def _cancel_countdown(self):
        if self._countdown_timer is not None:
            self._countdown_timer.cancel()
            self._countdown_timer = None

    # --- Lifecycle ---

    def fail(self, message: str):
        """Enter the terminal error state. Classification stops."""
        if not self._alive or self.state.phase in (CapturePhase.CAPTURED, CapturePhase.ERROR):
            return
        self._cancel_settle()
        self._cancel_countdown()
        self.state.phase = CapturePhase.ERROR
        self.state.pose_status = PoseStatus.UNDETECTED
        self.state.error = message
        logger.warning(f"[Capture] session error: {message}")
        self._notify()

    def close(self) -> bool:
        """Tear down. Idempotent; returns False if already closed."""
        if not self._alive:
            return False
        self._alive = False
        self._cancel_settle()
        self._cancel_countdown()
        if self.state.phase != CapturePhase.CAPTURED:
            self.state.phase = CapturePhase.CLOSED
        return True

    # --- Reporting ---

    @property
    def status_text(self) -> str:
        if self.state.error:
            return self.state.error
        if self.state.phase == CapturePhase.CAPTURED:
            return "Photo captured"
        if self.state.phase == CapturePhase.COUNTDOWN:
            return f"Capturing photo in {self.state.countdown}..."
        if self.state.pose_status == PoseStatus.OK:
            return "Pose detected"
        if self.state.pose_status == PoseStatus.UNDETECTED:
            return "Hand pose not detected"
        return "Raise your hand"

    def snapshot(self) -> CaptureStateMessage:
        required = self.required_pose
        return CaptureStateMessage(
            phase=self.state.phase.value,
            step_index=self.state.step_index,
            step_count=len(self.settings.sequence),
            required_pose=required.value,
            pose_label=POSE_LABELS.get(required, f"Pose {required.value}"),
            pose_status=self.state.pose_status.value,
            detected_pose=self.state.last_pose.value if self.state.last_pose else None,
            status_text=self.status_text,
            countdown=self.state.countdown,
            error=self.state.error,
        )

    def _notify(self):
        if self._on_update is not None and self._alive:
            self._on_update(self.snapshot())
