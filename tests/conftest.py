import cv2
import numpy as np
import pytest

from qr_pose.intrinsics import IntrinsicsContext
from qr_pose.pnp import marker_object_points
from qr_pose.qr_types import MarkerDetection

# Webcam calibration at 1280x720
FOCAL = 1.3442848643472917e03
CX = 6.3950000000000000e02
CY = 3.595e02
WEBCAM_DIST = [7.9440223269640672e-03, -5.6562236732221527e-01, 0.0, 0.0, 1.6991852512288661e00]


def camera_matrix():
    return np.array(
        [
            [FOCAL, 0.0, CX],
            [0.0, FOCAL, CY],
            [0.0, 0.0, 1.0],
        ]
    )


def project_marker(size_m, rvec, tvec, intrinsics):
    """Project the marker corners into the image with a known marker -> camera pose."""
    pts, _ = cv2.projectPoints(
        marker_object_points(size_m),
        np.asarray(rvec, dtype=np.float64).reshape(3, 1),
        np.asarray(tvec, dtype=np.float64).reshape(3, 1),
        np.array(intrinsics.camera_matrix),
        np.array(intrinsics.dist_coeffs),
    )
    return pts.reshape(4, 2)


@pytest.fixture
def intrinsics():
    return IntrinsicsContext(1280, 720, camera_matrix(), np.zeros((1, 5)))


@pytest.fixture
def distorted_intrinsics():
    return IntrinsicsContext(1280, 720, camera_matrix(), WEBCAM_DIST)


@pytest.fixture
def on_axis_detection():
    """20 cm marker, fronto-parallel, centred on the optical axis 1 m away."""
    half = FOCAL * 0.1 / 1.0
    corners = np.array(
        [
            [CX - half, CY - half],
            [CX + half, CY - half],
            [CX + half, CY + half],
            [CX - half, CY + half],
        ]
    )
    return MarkerDetection("20cm-dock", corners)


def rendered_marker_frame(payload, width=1280, height=720, scale=8):
    """Gray frame with ``payload`` encoded as a QR code, centred on white."""
    code = cv2.QRCodeEncoder.create().encode(payload)
    code = cv2.resize(code, None, fx=scale, fy=scale, interpolation=cv2.INTER_NEAREST)
    frame = np.full((height, width), 255, dtype=np.uint8)
    top, left = (height - code.shape[0]) // 2, (width - code.shape[1]) // 2
    frame[top:top + code.shape[0], left:left + code.shape[1]] = code
    return frame
