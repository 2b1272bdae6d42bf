from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import cv2
import numpy as np

from .errors import InvalidInputError


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=np.float64, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class IntrinsicsContext:
    """
    Camera calibration shared by pose estimators.

    Attributes:
        width: Image width used during calibration (pixels)
        height: Image height used during calibration (pixels)
        camera_matrix: (3,3) OpenCV camera matrix
        dist_coeffs: (1,5) distortion coefficients k1, k2, p1, p2, k3
    """

    width: int
    height: int
    camera_matrix: Any
    dist_coeffs: Any

    def __post_init__(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise InvalidInputError(f"Camera image {name} invalid: {value!r}")
            object.__setattr__(self, name, int(value))

        try:
            K = np.asarray(self.camera_matrix, dtype=np.float64)
            dist = np.asarray(self.dist_coeffs, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Calibration values are not numeric: {exc}") from exc

        if K.shape != (3, 3):
            raise InvalidInputError(f"Camera calibration matrix is not 3x3: {K.shape}")
        if dist.shape == (5,):
            dist = dist.reshape(1, 5)
        if dist.shape != (1, 5):
            raise InvalidInputError(f"Distortion coefficients vector is not 1x5: {dist.shape}")

        object.__setattr__(self, "camera_matrix", _readonly(K))
        object.__setattr__(self, "dist_coeffs", _readonly(dist))

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def matches_frame(self, image) -> bool:
        h, w = np.asarray(image).shape[:2]
        return (w, h) == (self.width, self.height)


def load_intrinsics(path: str) -> IntrinsicsContext:
    """Read an OpenCV calibration file (camera_matrix, dist_coeffs, image_width, image_height)."""
    if not Path(path).exists():
        raise FileNotFoundError(f"Calibration not found: {path}")
    fs = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    if not fs.isOpened():
        raise InvalidInputError(f"Calibration file could not be opened: {path}")
    try:
        K = fs.getNode("camera_matrix").mat()
        dist = fs.getNode("dist_coeffs").mat()
        w = int(fs.getNode("image_width").real())
        h = int(fs.getNode("image_height").real())
    finally:
        fs.release()

    if K is None or dist is None:
        raise InvalidInputError(f"Calibration file is missing camera_matrix/dist_coeffs: {path}")
    return IntrinsicsContext(w, h, K, np.asarray(dist).reshape(1, -1))
