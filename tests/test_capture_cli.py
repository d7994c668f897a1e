"""Headless runs of the local capture command."""

import asyncio

import capture_cli
from models.registry import ModelRegistry
from processing.camera import CameraNotFoundError
from processing.hand_detection import HandAbsent
from state.capture_session import CaptureSettings, PoseId

from conftest import FakeCamera, FakeLandmarker, hand_for

SINGLE_POSE = CaptureSettings(
    sequence=(PoseId.POSE_1,), settle_seconds=0.02, countdown_start=1, countdown_tick_seconds=0.02,
)


def _use_fake_camera(monkeypatch, camera):
    monkeypatch.setattr(capture_cli, "load_all_models", lambda: ModelRegistry())
    monkeypatch.setattr(capture_cli, "OpenCVCamera", lambda camera_id: camera)


def test_photo_written_when_captured(monkeypatch, tmp_path):
    camera = FakeCamera()
    _use_fake_camera(monkeypatch, camera)
    output = tmp_path / "photo.jpg"

    image = asyncio.run(asyncio.wait_for(capture_cli.run_capture(
        0, output, preview=False,
        settings=SINGLE_POSE,
        landmarker_factory=lambda registry: FakeLandmarker(),
        detector=lambda _, frame_rgb: hand_for(PoseId.POSE_1),
    ), timeout=5))

    assert image is not None
    assert output.read_bytes() == image.data
    assert output.read_bytes()[:2] == b"\xff\xd8"
    assert camera.released


def test_nothing_written_without_capture(monkeypatch, tmp_path):
    _use_fake_camera(monkeypatch, FakeCamera(error=CameraNotFoundError()))
    output = tmp_path / "photo.jpg"

    image = asyncio.run(asyncio.wait_for(capture_cli.run_capture(
        0, output, preview=False,
        settings=SINGLE_POSE,
        landmarker_factory=lambda registry: FakeLandmarker(),
        detector=lambda _, frame_rgb: HandAbsent(),
    ), timeout=5))

    assert image is None
    assert not output.exists()
