"""Tests for still-frame capture and the bounding-box overlay."""

import base64

import numpy as np
import pytest

from processing.frame_capture import CapturedImage, FrameCaptureError, capture_frame
from processing.hand_detection import HandAbsent, HandPresent, Landmark
from processing.overlay import draw_hand_box, draw_status, hand_bounding_box
from schemas.messages import CaptureStateMessage
from config import OVERLAY_VALID_COLOR, OVERLAY_INVALID_COLOR


class TestCaptureFrame:
    def test_encodes_jpeg_at_native_size(self):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        frame[:, :32] = (0, 0, 255)

        image = capture_frame(frame)
        assert isinstance(image, CapturedImage)
        assert image.width == 64
        assert image.height == 48
        assert image.mime_type == "image/jpeg"
        assert image.data[:2] == b"\xff\xd8"

    def test_data_url(self):
        image = capture_frame(np.full((10, 10, 3), 200, dtype=np.uint8))
        url = image.to_data_url()
        assert url.startswith("data:image/jpeg;base64,")
        assert base64.b64decode(url.split(",", 1)[1]) == image.data

    def test_quality_changes_size(self):
        rng = np.random.default_rng(0)
        frame = rng.integers(0, 255, size=(120, 160, 3), dtype=np.uint8)
        low = capture_frame(frame, quality=10)
        high = capture_frame(frame, quality=95)
        assert len(low.data) < len(high.data)

    def test_missing_frame(self):
        with pytest.raises(FrameCaptureError):
            capture_frame(None)
        with pytest.raises(FrameCaptureError):
            capture_frame(np.zeros((0, 0, 3), dtype=np.uint8))


def _hand(points):
    filled = list(points) + [points[-1]] * (21 - len(points))
    return HandPresent(tuple(Landmark(x, y) for x, y in filled))


class TestBoundingBox:
    def test_padded_box(self):
        hand = _hand([(0.25, 0.25), (0.5, 0.5)])
        bbox = hand_bounding_box(hand, 400, 200, padding=20)
        assert bbox == {"x": 80, "y": 30, "width": 140, "height": 90}

    def test_clamped_to_frame(self):
        hand = _hand([(0.0, 0.0), (1.0, 1.0)])
        bbox = hand_bounding_box(hand, 100, 50, padding=20)
        assert bbox["x"] == 0 and bbox["y"] == 0
        assert bbox["x"] + bbox["width"] <= 100
        assert bbox["y"] + bbox["height"] <= 50

    def test_no_hand(self):
        assert hand_bounding_box(HandAbsent(), 100, 100) is None
        assert hand_bounding_box(None, 100, 100) is None


class TestDrawing:
    def test_box_color_follows_match(self):
        bbox = {"x": 10, "y": 10, "width": 30, "height": 30}

        valid = draw_hand_box(np.zeros((60, 60, 3), dtype=np.uint8), bbox, valid=True)
        invalid = draw_hand_box(np.zeros((60, 60, 3), dtype=np.uint8), bbox, valid=False)

        assert tuple(valid[10, 20]) == OVERLAY_VALID_COLOR
        assert tuple(invalid[10, 20]) == OVERLAY_INVALID_COLOR

    def test_no_box_leaves_frame(self):
        frame = np.zeros((20, 20, 3), dtype=np.uint8)
        assert not draw_hand_box(frame, None, valid=True).any()

    def test_status_countdown(self):
        frame = np.zeros((240, 320, 3), dtype=np.uint8)
        snapshot = CaptureStateMessage(
            phase="COUNTDOWN", step_index=2, step_count=3, required_pose=3,
            pose_label="Pose 3", pose_status="OK", status_text="Capturing photo in 2...",
            countdown=2,
        )
        result = draw_status(frame, snapshot)
        assert result.shape == (240, 320, 3)
        assert result.any()
