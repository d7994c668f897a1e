"""Shared fakes for the capture tests."""

import asyncio

import numpy as np
import pytest

from processing.hand_detection import HandPresent, Landmark
from state.capture_session import PoseId

# (tip, pip, mcp) per non-thumb finger
FINGERS = {
    "index": (8, 6, 5),
    "middle": (12, 10, 9),
    "ring": (16, 14, 13),
    "pinky": (20, 18, 17),
}

POSE_FINGERS = {
    PoseId.POSE_1: (True, False, False, False),
    PoseId.POSE_2: (True, True, False, False),
    PoseId.POSE_3: (True, True, True, False),
}


def build_hand(index=False, middle=False, ring=False, pinky=False) -> HandPresent:
    """21 landmarks with the requested fingers pointing up."""
    points = [[0.3 + i * 0.02, 0.8] for i in range(21)]
    for name, extended in zip(FINGERS, (index, middle, ring, pinky)):
        tip, pip, mcp = FINGERS[name]
        points[mcp][1] = 0.7
        points[pip][1] = 0.6
        points[tip][1] = 0.4 if extended else 0.65
    return HandPresent(tuple(Landmark(x, y) for x, y in points))


def hand_for(pose: PoseId) -> HandPresent:
    return build_hand(*POSE_FINGERS[pose])


class FakeTimer:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock with the `call_later` shape of an asyncio loop."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float):
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self.now = max(self.now, timer.when)
            timer.fired = True
            timer.callback()
        self.now = target


def feed(machine, scheduler: FakeScheduler, hand, seconds: float, fps: int = 30):
    """Deliver the same observation at `fps` for `seconds` of clock time."""
    step = 1.0 / fps
    for _ in range(int(round(seconds * fps))):
        machine.on_frame(hand)
        scheduler.advance(step)


class FakeCamera:
    def __init__(self, error=None, frame_interval=0.005, shape=(48, 64, 3)):
        self.error = error
        self.frame_interval = frame_interval
        self.shape = shape
        self.acquired = False
        self.released = False
        self.release_calls = 0
        self.frames_read = 0

    async def acquire(self):
        if self.error is not None:
            raise self.error
        self.acquired = True

    async def read(self):
        if self.released:
            return None
        await asyncio.sleep(self.frame_interval)
        self.frames_read += 1
        return np.full(self.shape, 127, dtype=np.uint8)

    def release(self):
        self.released = True
        self.release_calls += 1


class FakeLandmarker:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def make_hand():
    return build_hand


@pytest.fixture
def pose_hand():
    return hand_for
