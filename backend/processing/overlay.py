import cv2
import numpy as np

from config import (
    OVERLAY_PADDING, OVERLAY_VALID_COLOR, OVERLAY_INVALID_COLOR, OVERLAY_THICKNESS,
)
from processing.hand_detection import HandPresent


def hand_bounding_box(hand, img_w: int, img_h: int, padding: int = OVERLAY_PADDING) -> dict | None:
    """Padded pixel bbox around all landmarks, clamped to the frame. None without a hand."""
    if not isinstance(hand, HandPresent) or img_w <= 0 or img_h <= 0:
        return None

    xs = [lm.x * img_w for lm in hand.landmarks]
    ys = [lm.y * img_h for lm in hand.landmarks]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)

    x = max(0, int(min_x - padding))
    y = max(0, int(min_y - padding))
    w = max(0, min(img_w - x, int(max_x - min_x + padding * 2)))
    h = max(0, min(img_h - y, int(max_y - min_y + padding * 2)))
    return {"x": x, "y": y, "width": w, "height": h}


def draw_hand_box(frame_bgr: np.ndarray, bbox: dict | None, valid: bool) -> np.ndarray:
    if bbox is None:
        return frame_bgr
    color = OVERLAY_VALID_COLOR if valid else OVERLAY_INVALID_COLOR
    x, y, w, h = bbox["x"], bbox["y"], bbox["width"], bbox["height"]
    cv2.rectangle(frame_bgr, (x, y), (x + w, y + h), color, OVERLAY_THICKNESS)
    return frame_bgr


def draw_status(frame_bgr: np.ndarray, snapshot) -> np.ndarray:
    """Pose label, status line and the big countdown number for the preview window."""
    img_h, img_w = frame_bgr.shape[:2]

    if snapshot.error:
        cv2.putText(frame_bgr, snapshot.error, (16, 32),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.6, OVERLAY_INVALID_COLOR, 2)
        return frame_bgr

    cv2.putText(frame_bgr, snapshot.pose_label, (16, 32),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, OVERLAY_VALID_COLOR, 2)
    (text_w, _), _ = cv2.getTextSize(snapshot.status_text, cv2.FONT_HERSHEY_SIMPLEX, 0.6, 2)
    cv2.putText(frame_bgr, snapshot.status_text, (max(16, img_w - text_w - 16), 32),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)

    if snapshot.phase == "COUNTDOWN":
        text = str(snapshot.countdown)
        (num_w, num_h), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, 4.0, 8)
        cv2.putText(frame_bgr, text, ((img_w - num_w) // 2, (img_h + num_h) // 2),
                    cv2.FONT_HERSHEY_SIMPLEX, 4.0, (255, 255, 255), 8)
    return frame_bgr
