import math
from dataclasses import dataclass

import numpy as np
import mediapipe as mp

from config import (
    HAND_LANDMARK_COUNT,
    MIN_HAND_DETECTION_CONFIDENCE, MIN_HAND_PRESENCE_CONFIDENCE, MIN_TRACKING_CONFIDENCE,
)
from models.registry import ModelRegistry


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0


@dataclass(frozen=True)
class HandPresent:
    landmarks: tuple[Landmark, ...]


@dataclass(frozen=True)
class HandAbsent:
    pass


HandObservation = HandPresent | HandAbsent

NO_HAND = HandAbsent()


def to_observation(points) -> HandObservation:
    """Wrap raw landmark points (objects with x/y, or dicts) as an observation.

    Anything short of a full, finite 21-point hand is reported as absent."""
    if points is None:
        return NO_HAND
    landmarks = []
    for p in points:
        try:
            if isinstance(p, dict):
                x, y, z = float(p["x"]), float(p["y"]), float(p.get("z", 0.0) or 0.0)
            else:
                x, y, z = float(p.x), float(p.y), float(getattr(p, "z", 0.0) or 0.0)
        except (KeyError, AttributeError, TypeError, ValueError):
            return NO_HAND
        if not (math.isfinite(x) and math.isfinite(y)):
            return NO_HAND
        landmarks.append(Landmark(x, y, z))

    if len(landmarks) < HAND_LANDMARK_COUNT:
        return NO_HAND
    return HandPresent(tuple(landmarks[:HAND_LANDMARK_COUNT]))


def create_hand_landmarker(registry: ModelRegistry):
    """Create a new MediaPipe HandLandmarker in IMAGE mode (thread-safe, per-session)."""
    BaseOptions = mp.tasks.BaseOptions
    HandLandmarker = mp.tasks.vision.HandLandmarker
    HandLandmarkerOptions = mp.tasks.vision.HandLandmarkerOptions
    VisionRunningMode = mp.tasks.vision.RunningMode

    if registry.hand_landmarker_asset is not None:
        base_options = BaseOptions(model_asset_buffer=registry.hand_landmarker_asset)
    else:
        base_options = BaseOptions(model_asset_path=str(registry.hand_landmarker_path))

    options = HandLandmarkerOptions(
        base_options=base_options,
        running_mode=VisionRunningMode.IMAGE,
        num_hands=1,
        min_hand_detection_confidence=MIN_HAND_DETECTION_CONFIDENCE,
        min_hand_presence_confidence=MIN_HAND_PRESENCE_CONFIDENCE,
        min_tracking_confidence=MIN_TRACKING_CONFIDENCE,
    )
    return HandLandmarker.create_from_options(options)


def detect_hand(landmarker, frame_rgb: np.ndarray) -> HandObservation:
    """Run hand detection on an RGB frame. Returns HandPresent or HandAbsent."""
    mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
    result = landmarker.detect(mp_image)

    if not result.hand_landmarks:
        return NO_HAND
    return to_observation(result.hand_landmarks[0])
