from typing import NamedTuple

from config import (
    INDEX_FINGER, MIDDLE_FINGER, RING_FINGER, PINKY_FINGER,
    FINGER_EXTENSION_MARGIN,
)
from processing.hand_detection import HandPresent, HandAbsent, to_observation
from state.capture_session import PoseId


class FingerStates(NamedTuple):
    index: bool
    middle: bool
    ring: bool
    pinky: bool


POSE_TABLE: dict[FingerStates, PoseId] = {
    FingerStates(True, False, False, False): PoseId.POSE_1,
    FingerStates(True, True, False, False): PoseId.POSE_2,
    FingerStates(True, True, True, False): PoseId.POSE_3,
}


def is_finger_extended(landmarks, tip: int, pip: int, mcp: int,
                       margin: float = FINGER_EXTENSION_MARGIN) -> bool:
    """Tip must sit above both the PIP and MCP joints by at least `margin`.

    Image y grows downwards, so "above" means a smaller y."""
    tip_y = landmarks[tip].y
    return tip_y < landmarks[pip].y - margin and tip_y < landmarks[mcp].y - margin


def finger_states(landmarks, margin: float = FINGER_EXTENSION_MARGIN) -> FingerStates:
    return FingerStates(
        index=is_finger_extended(landmarks, *INDEX_FINGER, margin=margin),
        middle=is_finger_extended(landmarks, *MIDDLE_FINGER, margin=margin),
        ring=is_finger_extended(landmarks, *RING_FINGER, margin=margin),
        pinky=is_finger_extended(landmarks, *PINKY_FINGER, margin=margin),
    )


def pose_from_finger_states(states: FingerStates) -> PoseId | None:
    return POSE_TABLE.get(FingerStates(*states))


def classify_pose(hand, margin: float = FINGER_EXTENSION_MARGIN) -> PoseId | None:
    """Map one hand to a PoseId, or None when no pose matches.

    Accepts a HandObservation, a raw landmark sequence, or None. Missing
    points and NaN coordinates count as "no hand"."""
    if hand is None or isinstance(hand, HandAbsent):
        return None
    points = hand.landmarks if isinstance(hand, HandPresent) else hand
    hand = to_observation(points)
    if isinstance(hand, HandAbsent):
        return None
    return pose_from_finger_states(finger_states(hand.landmarks, margin))
