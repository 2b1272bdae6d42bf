from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array


@dataclass
class MarkerDetection:
    payload: str
    corners: Any  # (N,2) ndarray, N == 4 for usable QR outlines

    def __post_init__(self):
        self.corners = np.asarray(self.corners, dtype=np.float64).reshape(-1, 2)

    @property
    def corner_count(self) -> int:
        return int(self.corners.shape[0])


@dataclass(frozen=True, eq=False)
class PoseResult:
    camera_pose: Any  # (4,4) ndarray, camera pose in marker coordinates
    identifier: str
    size_m: float

    @property
    def position(self) -> np.ndarray:
        """Camera position expressed in the marker frame (meters)."""
        return np.asarray(self.camera_pose)[:3, 3].copy()
