import asyncio
import logging
import threading

import cv2
import numpy as np

from config import CAMERA_INDEX, CAMERA_WIDTH, CAMERA_HEIGHT, CAMERA_ACQUIRE_TIMEOUT

logger = logging.getLogger("uvicorn.error")

MAX_READ_FAILURES = 30


class CameraError(RuntimeError):
    user_message = "The camera could not be accessed."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.user_message)


class CameraPermissionError(CameraError):
    user_message = "Camera access was denied. Allow the camera in your browser, then reopen the capture window."


class CameraNotFoundError(CameraError):
    user_message = "No camera was found. Make sure a camera device is available."


class CameraUnsupportedError(CameraError):
    user_message = "Your browser does not support camera access. Try a recent version of Chrome or Edge."


class CameraTimeoutError(CameraError):
    user_message = "The camera did not start in time. Close the capture window and try again."


# getUserMedia DOMException names reported by browser clients
CLIENT_CAMERA_ERRORS: dict[str, type[CameraError]] = {
    "NotAllowedError": CameraPermissionError,
    "SecurityError": CameraPermissionError,
    "NotFoundError": CameraNotFoundError,
    "OverconstrainedError": CameraNotFoundError,
    "NotSupportedError": CameraUnsupportedError,
}


def camera_error_from_client(name: str | None, detail: str | None = None) -> CameraError:
    error_cls = CLIENT_CAMERA_ERRORS.get(name or "", CameraError)
    return error_cls(detail or f"Client camera error: {name or 'unknown'}")


def _release_opened(opening: asyncio.Future):
    if not opening.cancelled() and opening.exception() is None:
        opening.result().release()


class OpenCVCamera:
    """Local webcam. The capture object is opened and read on worker threads."""

    def __init__(self, camera_id: int = CAMERA_INDEX, width: int = CAMERA_WIDTH, height: int = CAMERA_HEIGHT):
        self.camera_id = camera_id
        self.width = width
        self.height = height
        self._cap = None
        self._released = False
        self._read_failures = 0
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def _open(self):
        cap = cv2.VideoCapture(self.camera_id)
        if not cap.isOpened():
            cap.release()
            raise CameraNotFoundError(f"Could not open camera {self.camera_id}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        return cap

    async def acquire(self):
        if self._released:
            raise CameraError("Camera was already released")
        if self._cap is not None:
            return
        opening = asyncio.ensure_future(asyncio.to_thread(self._open))
        try:
            cap = await asyncio.shield(opening)
        except asyncio.CancelledError:
            opening.add_done_callback(_release_opened)
            raise
        with self._lock:
            if self._released:
                # Released while the device was opening
                cap.release()
                raise CameraError("Camera was released while opening")
            self._cap = cap
        logger.info(f"Camera {self.camera_id} opened: "
                    f"{int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x{int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}")

    def _read(self) -> np.ndarray | None:
        with self._lock:
            if self._cap is None:
                return None
            ok, frame = self._cap.read()
        if not ok:
            self._read_failures += 1
            if self._read_failures >= MAX_READ_FAILURES:
                raise CameraError(f"Camera {self.camera_id} stopped delivering frames")
            return None
        self._read_failures = 0
        return frame

    async def read(self) -> np.ndarray | None:
        if self._cap is None:
            return None
        return await asyncio.to_thread(self._read)

    def release(self):
        with self._lock:
            self._released = True
            if self._cap is not None:
                self._cap.release()
                self._cap = None
                logger.info(f"Camera {self.camera_id} released")


class PushedFrameSource:
    """Frames pushed by a remote client. Only the latest frame is kept."""

    def __init__(self, acquire_timeout: float = CAMERA_ACQUIRE_TIMEOUT):
        self.acquire_timeout = acquire_timeout
        self._latest: np.ndarray | None = None
        self._error: CameraError | None = None
        self._released = False
        self._event = asyncio.Event()

    def push(self, frame: np.ndarray):
        if self._released:
            return
        # Always overwrite, stale frames are dropped
        self._latest = frame
        self._event.set()

    def fail(self, error: CameraError):
        self._error = error
        self._event.set()

    async def _first_frame(self):
        while self._latest is None:
            self._check()
            self._event.clear()
            await self._event.wait()
        self._check()

    def _check(self):
        if self._error is not None:
            raise self._error
        if self._released:
            raise CameraError("Camera stream was released")

    async def acquire(self):
        try:
            await asyncio.wait_for(self._first_frame(), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            raise CameraTimeoutError(f"No frame received within {self.acquire_timeout:.0f}s") from None

    async def read(self) -> np.ndarray | None:
        while True:
            if self._error is not None:
                raise self._error
            if self._released:
                return None
            if self._latest is not None:
                frame, self._latest = self._latest, None
                return frame
            self._event.clear()
            await self._event.wait()

    def release(self):
        self._released = True
        self._latest = None
        self._event.set()
