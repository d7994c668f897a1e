import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent / ".env")
load_dotenv(Path(__file__).resolve().parent / ".env")

BASE_DIR = Path(__file__).resolve().parent

# Weights / model paths
HAND_LANDMARKER_PATH = BASE_DIR / os.getenv("HAND_LANDMARKER_PATH", "weights/hand_landmarker.task")

# Hand landmarker
MIN_HAND_DETECTION_CONFIDENCE = float(os.getenv("MIN_HAND_DETECTION_CONFIDENCE", "0.7"))
MIN_HAND_PRESENCE_CONFIDENCE = float(os.getenv("MIN_HAND_PRESENCE_CONFIDENCE", "0.6"))
MIN_TRACKING_CONFIDENCE = float(os.getenv("MIN_TRACKING_CONFIDENCE", "0.6"))
HAND_LANDMARK_COUNT = 21

# Pose classification (MediaPipe hand landmark indices: tip, pip, mcp)
INDEX_FINGER = (8, 6, 5)
MIDDLE_FINGER = (12, 10, 9)
RING_FINGER = (16, 14, 13)
PINKY_FINGER = (20, 18, 17)
FINGER_EXTENSION_MARGIN = float(os.getenv("FINGER_EXTENSION_MARGIN", "0.06"))

# Capture sequence
POSE_SETTLE_MS = int(os.getenv("POSE_SETTLE_MS", "800"))
COUNTDOWN_START = int(os.getenv("COUNTDOWN_START", "3"))
COUNTDOWN_TICK_MS = int(os.getenv("COUNTDOWN_TICK_MS", "1000"))

# Frame capture / overlay
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "90"))
OVERLAY_PADDING = 20
OVERLAY_VALID_COLOR = (94, 197, 34)     # BGR of #22c55e
OVERLAY_INVALID_COLOR = (68, 68, 239)   # BGR of #ef4444
OVERLAY_THICKNESS = 4

# Camera
CAMERA_INDEX = int(os.getenv("CAMERA_INDEX", "0"))
CAMERA_WIDTH = int(os.getenv("CAMERA_WIDTH", "960"))
CAMERA_HEIGHT = int(os.getenv("CAMERA_HEIGHT", "720"))
CAMERA_ACQUIRE_TIMEOUT = float(os.getenv("CAMERA_ACQUIRE_TIMEOUT", "10"))

# Server
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
