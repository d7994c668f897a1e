import logging
from pathlib import Path

from config import HAND_LANDMARKER_PATH
from models.registry import ModelRegistry

logger = logging.getLogger("uvicorn.error")


def _load_hand_landmarker_asset(asset_path: Path) -> bytes:
    with open(asset_path, "rb") as f:
        data = f.read()
    if not data:
        raise ValueError(f"Hand landmarker asset is empty: {asset_path}")
    return data


def load_all_models(asset_path: Path | None = None) -> ModelRegistry:
    """Read the hand landmarker task file once so every session builds from memory."""
    asset_path = Path(asset_path or HAND_LANDMARKER_PATH)
    registry = ModelRegistry(hand_landmarker_path=asset_path)

    logger.info(f"Loading hand landmarker: {asset_path}")
    registry.hand_landmarker_asset = _load_hand_landmarker_asset(asset_path)
    logger.info(f"Hand landmarker loaded ({len(registry.hand_landmarker_asset)} bytes)")

    return registry
