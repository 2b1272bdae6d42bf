"""SE(3) transformation utilities for QR marker pose handling."""

import numpy as np
import cv2
from typing import Tuple

from .errors import SingularTransformError


# Below this |det| a 4x4 pose is treated as non-invertible.
SINGULAR_DET_EPS = 1e-12


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector and translation vector to 4x4 transformation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)
        tvec: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix
    """
    rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
    tvec = np.asarray(tvec, dtype=np.float64).reshape(3)

    R, _ = cv2.Rodrigues(rvec)

    return compose_transform(R, tvec)


def compose_transform(R: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """Assemble [[R, t], [0, 0, 0, 1]]."""
    T = np.eye(4)
    T[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
    T[:3, 3] = np.asarray(tvec, dtype=np.float64).reshape(3)
    return T


def matrix_to_rvec_tvec(T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert 4x4 transformation matrix to rotation vector and translation vector.

    Args:
        T: 4x4 homogeneous transformation matrix

    Returns:
        (rvec, tvec) where rvec is (3,1) and tvec is (3,1)
    """
    R = np.ascontiguousarray(T[:3, :3], dtype=np.float64)
    tvec = np.asarray(T[:3, 3], dtype=np.float64).reshape(3, 1)

    rvec, _ = cv2.Rodrigues(R)

    return rvec, tvec


def invert_transform(T: np.ndarray) -> np.ndarray:
    """
    Invert a 4x4 homogeneous transformation matrix.

    The matrix is not assumed to be a proper rigid transform, so a general
    inverse is taken after checking the determinant.

    Args:
        T: 4x4 transformation matrix

    Returns:
        4x4 inverted transformation matrix

    Raises:
        SingularTransformError: if T is non-finite or not invertible
    """
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4) or not np.all(np.isfinite(T)):
        raise SingularTransformError(f"Pose matrix is not a finite 4x4: shape={T.shape}")

    det = np.linalg.det(T)
    if not np.isfinite(det) or abs(det) < SINGULAR_DET_EPS:
        raise SingularTransformError(f"Pose matrix is singular (det={det:.3g})")

    try:
        return np.linalg.inv(T)
    except np.linalg.LinAlgError as exc:
        raise SingularTransformError(f"Pose matrix inversion failed: {exc}") from exc
