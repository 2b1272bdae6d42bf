"""
Marker geometry and the PnP solve for a single QR outline.

Corner convention: object points are listed as
    (-s/2, -s/2, 0), (s/2, -s/2, 0), (s/2, s/2, 0), (-s/2, s/2, 0)
with the origin at the marker centre, x to the right and y down the printed
page. ``cv2.QRCodeDetector`` reports corners top-left, top-right,
bottom-right, bottom-left, which matches index for index. The solver pairs
points positionally, so a decoder with another winding must be reordered
before calling :func:`solve_marker_pnp`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from .intrinsics import IntrinsicsContext


@dataclass(frozen=True)
class MarkerPnP:
    rvec: np.ndarray  # (3,1), marker -> camera
    tvec: np.ndarray  # (3,1)


def marker_object_points(size_m: float) -> np.ndarray:
    h = float(size_m) / 2.0
    return np.array(
        [
            [-h, -h, 0.0],
            [h, -h, 0.0],
            [h, h, 0.0],
            [-h, h, 0.0],
        ],
        dtype=np.float64,
    )


def solve_marker_pnp(
    corners_px: np.ndarray,
    size_m: float,
    intrinsics: IntrinsicsContext,
) -> Optional[MarkerPnP]:
    """
    Solve the marker -> camera transform from four corner pixels.

    Args:
        corners_px: (4,2) pixel coordinates in the order described above
        size_m: Marker side length in meters
        intrinsics: Camera matrix and distortion coefficients

    Returns:
        MarkerPnP, or None if the solver reports failure
    """
    img_pts = np.asarray(corners_px, dtype=np.float64).reshape(4, 2)
    obj_pts = marker_object_points(size_m)

    ok, rvec, tvec = cv2.solvePnP(
        obj_pts,
        img_pts,
        np.array(intrinsics.camera_matrix),
        np.array(intrinsics.dist_coeffs),
        flags=cv2.SOLVEPNP_ITERATIVE,
    )
    if not ok:
        return None
    return MarkerPnP(
        np.asarray(rvec, dtype=np.float64).reshape(3, 1),
        np.asarray(tvec, dtype=np.float64).reshape(3, 1),
    )
