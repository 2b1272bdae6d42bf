"""Camera pose from QR codes that carry their own side length."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import cv2
import numpy as np

from .decoder import QRDecoder
from .dimension import parse_dimension
from .errors import InvalidInputError, QRPoseError, SingularTransformError
from .intrinsics import IntrinsicsContext
from .overlay import OutlineOverlay
from .pnp import solve_marker_pnp
from .transforms import invert_transform, rvec_tvec_to_matrix
from .qr_types import MarkerDetection, PoseResult


class QRPoseEstimator:
    """
    Estimate the camera pose relative to every sized QR code in a frame.

    Each result's ``camera_pose`` is the inverse of the marker -> camera
    transform returned by PnP, i.e. the camera's position and orientation in
    the marker's coordinate system.
    """

    def __init__(
        self,
        intrinsics: IntrinsicsContext,
        decoder: Optional[QRDecoder] = None,
        overlay: Optional[OutlineOverlay] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not isinstance(intrinsics, IntrinsicsContext):
            raise InvalidInputError("intrinsics must be an IntrinsicsContext")
        self.intrinsics = intrinsics
        self.decoder = decoder or QRDecoder()
        self.overlay = overlay
        self.logger = logger or logging.getLogger(__name__)
        self._gray: Optional[np.ndarray] = None
        self._size_warned = False

    def estimate(self, frame, detections: Sequence[MarkerDetection]) -> list[PoseResult]:
        results: list[PoseResult] = []

        for det in detections:
            if det.corner_count != 4:
                self.logger.debug("skip marker: %d corners", det.corner_count)
                continue

            label = parse_dimension(det.payload)
            if label is None:
                self.logger.debug("skip marker: no dimension in %r", det.payload)
                continue
            if not label.size_m > 0:
                self.logger.debug("skip marker: non-positive size %r", det.payload)
                continue

            solved = solve_marker_pnp(det.corners, label.size_m, self.intrinsics)
            if solved is None:
                self.logger.warning("solvePnP failed for marker %r", label.identifier)
                continue

            view = rvec_tvec_to_matrix(solved.rvec, solved.tvec)
            try:
                camera_pose = invert_transform(view)
            except SingularTransformError as e:
                self.logger.warning("skip marker %r: %s", label.identifier, e)
                continue

            results.append(PoseResult(camera_pose, label.identifier, label.size_m))

        if self.overlay is not None and frame is not None:
            self.overlay.show(frame, detections)

        return results

    def estimate_single(self, frame, detections: Sequence[MarkerDetection]) -> Optional[PoseResult]:
        results = self.estimate(frame, detections)
        return results[0] if results else None

    def _checked_gray(self, gray: np.ndarray) -> np.ndarray:
        gray = np.asarray(gray)
        if gray.ndim == 3 and gray.shape[2] == 1:
            gray = gray[:, :, 0]
        if gray.ndim != 2:
            raise InvalidInputError(f"Given frame is not grayscale: shape={gray.shape}")

        if not self._size_warned and not self.intrinsics.matches_frame(gray):
            self.logger.warning(
                "frame size %dx%d differs from calibration %dx%d",
                gray.shape[1], gray.shape[0], self.intrinsics.width, self.intrinsics.height,
            )
            self._size_warned = True
        return gray

    def estimate_from_gray_frame(self, gray: np.ndarray) -> list[PoseResult]:
        gray = self._checked_gray(gray)
        return self.estimate(gray, self.decoder.decode(gray))

    def estimate_from_bgr_frame(self, bgr: np.ndarray) -> list[PoseResult]:
        bgr = np.asarray(bgr)
        if bgr.ndim != 3 or bgr.shape[2] != 3:
            raise InvalidInputError(f"Given frame is not BGR: shape={bgr.shape}")

        if self._gray is None or self._gray.shape != bgr.shape[:2] or self._gray.dtype != bgr.dtype:
            self._gray = np.empty(bgr.shape[:2], dtype=bgr.dtype)
        cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY, dst=self._gray)

        # decode on luma, draw on the original colour frame
        try:
            gray = self._checked_gray(self._gray)
            return self.estimate(bgr, self.decoder.decode(gray))
        except QRPoseError as e:
            raise e.add_context("Error calculating pose from image")

    def estimate_single_from_gray_frame(self, gray: np.ndarray) -> Optional[PoseResult]:
        results = self.estimate_from_gray_frame(gray)
        return results[0] if results else None

    def estimate_single_from_bgr_frame(self, bgr: np.ndarray) -> Optional[PoseResult]:
        results = self.estimate_from_bgr_frame(bgr)
        return results[0] if results else None
