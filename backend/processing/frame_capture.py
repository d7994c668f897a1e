import base64
from dataclasses import dataclass

import cv2
import numpy as np

from config import JPEG_QUALITY


class FrameCaptureError(RuntimeError):
    pass


@dataclass(frozen=True)
class CapturedImage:
    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


def capture_frame(frame_bgr: np.ndarray | None, quality: int = JPEG_QUALITY) -> CapturedImage:
    """Encode the live frame as a JPEG at its native resolution."""
    if frame_bgr is None or frame_bgr.size == 0:
        raise FrameCaptureError("No camera frame available to capture")

    ok, buf = cv2.imencode(".jpg", frame_bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise FrameCaptureError("Could not encode frame as JPEG")

    img_h, img_w = frame_bgr.shape[:2]
    return CapturedImage(data=buf.tobytes(), width=img_w, height=img_h)
