from __future__ import annotations

from typing import Optional, Sequence

import cv2
import numpy as np

from .dimension import parse_dimension
from .qr_types import MarkerDetection

DEFAULT_WINDOW_TITLE = "QR Code State Estimator"

# Edge colours for 0->1, 1->2, 2->3, 3->0
_EDGE_COLORS_BGR = [(0, 0, 255), (0, 255, 0), (255, 0, 0), (0, 255, 255)]
_EDGE_SHADES_GRAY = [(0, 0, 0), (85, 85, 85), (150, 150, 150), (255, 255, 255)]


class OutlineOverlay:
    """Debug view of the QR outlines the pose pipeline would use."""

    def __init__(self, window_title: Optional[str] = None, thickness: int = 2):
        self.window_title = window_title
        self.thickness = thickness

    def draw(self, image: np.ndarray, detections: Sequence[MarkerDetection]) -> np.ndarray:
        draw = np.array(image, copy=True)
        color_image = draw.ndim == 3 and draw.shape[2] == 3

        for det in detections:
            if det.corner_count != 4 or parse_dimension(det.payload) is None:
                continue
            pts = np.round(det.corners).astype(int)
            for i in range(4):
                p0 = (int(pts[i][0]), int(pts[i][1]))
                p1 = (int(pts[(i + 1) % 4][0]), int(pts[(i + 1) % 4][1]))
                color = _EDGE_COLORS_BGR[i] if color_image else _EDGE_SHADES_GRAY[i]
                cv2.line(draw, p0, p1, color, self.thickness, cv2.LINE_8)
        return draw

    def show(self, image: np.ndarray, detections: Sequence[MarkerDetection]) -> np.ndarray:
        draw = self.draw(image, detections)
        if self.window_title:
            cv2.imshow(self.window_title, draw)
            cv2.waitKey(1)
        return draw

    def close(self) -> None:
        if self.window_title:
            try:
                cv2.destroyWindow(self.window_title)
            except cv2.error:
                pass
