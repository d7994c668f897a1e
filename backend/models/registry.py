from dataclasses import dataclass, field
from pathlib import Path

from config import HAND_LANDMARKER_PATH


@dataclass
class ModelRegistry:
    hand_landmarker_path: Path = field(default_factory=lambda: HAND_LANDMARKER_PATH)
    hand_landmarker_asset: bytes | None = None

    @property
    def loaded(self) -> bool:
        return self.hand_landmarker_asset is not None
