from __future__ import annotations

from typing import Any

import cv2
import numpy as np

from .errors import DecoderError
from .qr_types import MarkerDetection


class QRDecoder:
    """
    Strategy: find and decode QR codes in a single-channel image.
    Returns a list[MarkerDetection] with (payload, corners) in detector order.

    cv2.QRCodeDetector keeps no results between calls, so a marker is reported
    on every frame it is visible in. One decoder belongs to one estimator and
    must not be used from several threads at once.
    """

    def __init__(self, detector: Any = None):
        self._detector = detector if detector is not None else cv2.QRCodeDetector()

    def decode(self, gray: np.ndarray) -> list[MarkerDetection]:
        try:
            _ok, payloads, points, _straight = self._detector.detectAndDecodeMulti(gray)
        except cv2.error as exc:
            raise DecoderError(f"QR code scanner returned with error: {exc}") from exc

        dets: list[MarkerDetection] = []
        if points is None or len(points) == 0:
            return dets
        for i, corners in enumerate(points):
            payload = payloads[i] if payloads is not None and i < len(payloads) else ""
            dets.append(MarkerDetection(payload or "", corners))
        return dets
