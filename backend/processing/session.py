import asyncio
import logging
from typing import Callable

import cv2
import numpy as np

from models.registry import ModelRegistry
from processing.camera import CameraError
from processing.capture_machine import CaptureStateMachine
from processing.frame_capture import CapturedImage, capture_frame
from processing.hand_detection import HandObservation, NO_HAND, create_hand_landmarker, detect_hand
from processing.overlay import hand_bounding_box
from schemas.messages import BBox, CaptureStateMessage
from state.capture_session import CapturePhase, CaptureSettings

logger = logging.getLogger("uvicorn.error")


class CaptureSession:
    """One run of the guided capture flow. Owns the camera stream and the landmarker."""

    def __init__(
        self,
        camera,
        registry: ModelRegistry,
        on_captured: Callable[[CapturedImage], None],
        on_cancel: Callable[[], None],
        on_update: Callable[[CaptureStateMessage], None] | None = None,
        settings: CaptureSettings | None = None,
        landmarker_factory: Callable = create_hand_landmarker,
        detector: Callable = detect_hand,
    ):
        self.camera = camera
        self.registry = registry
        self._on_captured = on_captured
        self._on_cancel = on_cancel
        self._on_update = on_update
        self._landmarker_factory = landmarker_factory
        self._detect = detector

        self.latest_frame: np.ndarray | None = None
        self.latest_hand: HandObservation = NO_HAND
        self.still_frame: np.ndarray | None = None
        self.frame_count = 0

        self.machine = CaptureStateMachine(
            scheduler=asyncio.get_running_loop(),
            capture_frame=self._grab_still,
            on_captured=self._handle_captured,
            settings=settings,
            on_update=self._handle_update,
        )
        self._task: asyncio.Task | None = None
        self._closed = False
        self._cancel_sent = False

    @property
    def phase(self) -> CapturePhase:
        return self.machine.state.phase

    @property
    def captured(self) -> CapturedImage | None:
        return self.machine.state.captured

    def start(self) -> "CaptureSession":
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self

    async def wait(self) -> CapturedImage | None:
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        return self.captured

    async def run(self):
        """Acquire the camera, then feed frames to the state machine until it is done."""
        landmarker = None
        detection = None
        try:
            try:
                await self.camera.acquire()
            except CameraError as e:
                logger.warning(f"Camera acquisition failed: {type(e).__name__}: {e}")
                self.machine.fail(e.user_message)
                return
            except Exception:
                logger.exception("Camera acquisition failed unexpectedly")
                self.machine.fail(CameraError.user_message)
                return

            try:
                landmarker = self._landmarker_factory(self.registry)
            except Exception:
                logger.exception("Could not create hand landmarker")
                self.machine.fail("Hand tracking could not be started.")
                return

            logger.info("Capture session started, waiting for pose 1")
            while not self.machine.finished:
                frame = await self.camera.read()
                if frame is None:
                    await asyncio.sleep(0.01)
                    continue
                if self.machine.finished:
                    break

                self.latest_frame = frame
                self.frame_count += 1

                detection = asyncio.ensure_future(asyncio.to_thread(self._observe, landmarker, frame))
                hand = await asyncio.shield(detection)
                detection = None
                if self.machine.finished:
                    break

                self.latest_hand = hand
                pose = self.machine.on_frame(hand)
                if self.frame_count <= 3 or self.frame_count % 30 == 0:
                    logger.info(f"Capture frame #{self.frame_count} -> phase={self.phase.value}, "
                                f"step={self.machine.state.step_index}, pose={pose.value if pose else None}")

        except CameraError as e:
            logger.warning(f"Camera stream failed: {type(e).__name__}: {e}")
            self.machine.fail(e.user_message)
        finally:
            self.camera.release()
            if landmarker is not None:
                if detection is not None and not detection.done():
                    # Detection still running on a worker thread; close once it returns
                    detection.add_done_callback(lambda _: landmarker.close())
                else:
                    landmarker.close()
            logger.info(f"Capture cleanup: processed {self.frame_count} frames, phase={self.phase.value}")

    def _observe(self, landmarker, frame_bgr: np.ndarray) -> HandObservation:
        try:
            frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
            return self._detect(landmarker, frame_rgb)
        except Exception:
            logger.exception("Hand detection failed on frame, treating as no hand")
            return NO_HAND

    def _grab_still(self) -> CapturedImage:
        image = capture_frame(self.latest_frame)
        self.still_frame = self.latest_frame
        return image

    def _handle_captured(self, image: CapturedImage):
        # The live stream is no longer needed once the still exists
        self.camera.release()
        self._on_captured(image)

    def _handle_update(self, snapshot: CaptureStateMessage):
        if self._on_update is None:
            return
        if self.latest_frame is not None and snapshot.phase != CapturePhase.CAPTURED.value:
            img_h, img_w = self.latest_frame.shape[:2]
            bbox = hand_bounding_box(self.latest_hand, img_w, img_h)
            if bbox is not None:
                snapshot.bbox = BBox(**bbox)
        self._on_update(snapshot)

    def close(self):
        """Tear the session down from any phase. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        captured = self.phase == CapturePhase.CAPTURED
        self.machine.close()
        self.camera.release()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if not captured and not self._cancel_sent:
            self._cancel_sent = True
            self._on_cancel()


def open_session(
    camera,
    registry: ModelRegistry,
    on_captured: Callable[[CapturedImage], None],
    on_cancel: Callable[[], None],
    on_update: Callable[[CaptureStateMessage], None] | None = None,
    settings: CaptureSettings | None = None,
    **kwargs,
) -> CaptureSession:
    """Start a capture session on the running event loop."""
    return CaptureSession(
        camera, registry, on_captured, on_cancel,
        on_update=on_update, settings=settings, **kwargs,
    ).start()


def close_session(session: CaptureSession):
    session.close()
