"""
Guided photo capture from a local webcam.

Usage:
  python capture_cli.py                         # camera 0, writes photo.jpg
  python capture_cli.py --camera 1 --output me.jpg
  python capture_cli.py --no-preview            # headless, no window

Hold Pose 1, Pose 2 and Pose 3 in order; the photo is taken and written
to --output after a 3 second countdown.

Controls (preview window):
  Q / ESC  close (a photo already taken stays on disk)
  R        retake (the new photo replaces the old one)
"""

import argparse
import asyncio
import logging
from pathlib import Path

import cv2

from config import CAMERA_INDEX
from models.loader import load_all_models
from processing.camera import OpenCVCamera
from processing.frame_capture import CapturedImage
from processing.overlay import draw_hand_box, draw_status, hand_bounding_box
from processing.session import CaptureSession, open_session
from state.capture_session import CapturePhase, PoseStatus

logger = logging.getLogger("uvicorn.error")

WINDOW = "Raise Your Hand to Capture"


async def _preview(session: CaptureSession) -> str:
    """Show the live feed until the user or the session decides. Returns the action."""
    while True:
        phase = session.phase
        frame = session.still_frame if phase == CapturePhase.CAPTURED else session.latest_frame

        if frame is not None:
            frame = frame.copy()
            if phase != CapturePhase.CAPTURED:
                img_h, img_w = frame.shape[:2]
                bbox = hand_bounding_box(session.latest_hand, img_w, img_h)
                draw_hand_box(frame, bbox, valid=session.machine.state.pose_status == PoseStatus.OK)
            draw_status(frame, session.machine.snapshot())
            cv2.imshow(WINDOW, frame)

        key = cv2.waitKey(1) & 0xFF
        if key in (ord("q"), 27):
            return "close"
        if key == ord("r"):
            return "retake"

        await asyncio.sleep(0.03)


def save_capture(image: CapturedImage, output: Path):
    output.write_bytes(image.data)
    logger.info(f"Saved {image.width}x{image.height} photo to {output}")


async def run_capture(camera_id: int, output: Path, preview: bool = True, **session_options) -> CapturedImage | None:
    registry = load_all_models()
    result: CapturedImage | None = None

    def on_captured(image: CapturedImage):
        nonlocal result
        result = image
        save_capture(image, output)

    def on_cancel():
        logger.info("Capture cancelled")

    try:
        while True:
            session = open_session(OpenCVCamera(camera_id), registry, on_captured, on_cancel, **session_options)

            if not preview:
                await session.wait()
                session.close()
                if session.phase == CapturePhase.ERROR:
                    logger.error(session.machine.state.error)
                break

            action = await _preview(session)
            session.close()
            if action == "retake":
                logger.info("Retaking photo")
                continue
            break
    finally:
        if preview:
            cv2.destroyAllWindows()

    return result


def main():
    parser = argparse.ArgumentParser(description="Hand-pose guided photo capture")
    parser.add_argument("--camera", type=int, default=CAMERA_INDEX, help="camera index")
    parser.add_argument("--output", type=Path, default=Path("photo.jpg"), help="where to write the JPEG")
    parser.add_argument("--no-preview", action="store_true", help="run without a preview window")
    parser.add_argument("--verbose", action="store_true", help="log per-frame pose diagnostics")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    image = asyncio.run(run_capture(args.camera, args.output, preview=not args.no_preview))
    raise SystemExit(0 if image is not None else 1)


if __name__ == "__main__":
    main()
