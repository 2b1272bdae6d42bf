"""Frame sources for the pose demo: a calibrated camera or a rendered marker."""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import cv2
import numpy as np

from .errors import InvalidInputError
from .qr_types import Frame

DEFAULT_SYNTHETIC_PAYLOAD = "20cm-synthetic"

_DEV_VIDEO_RE = re.compile(r"^/dev/video(\d+)$")


def _stamp() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%S")


def open_video_device(device: int | str) -> Any:
    """Integer indices and /dev/videoN go through V4L2; other strings (files, URLs) as given."""
    if isinstance(device, int):
        return cv2.VideoCapture(device, cv2.CAP_V4L2)
    match = _DEV_VIDEO_RE.match(str(device))
    if match:
        return cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
    return cv2.VideoCapture(str(device))


def render_marker(payload: str, side_px: int) -> np.ndarray:
    """
    Encode ``payload`` as a QR code, scaled by a whole factor to at most
    ``side_px`` pixels (never below one pixel per module).
    """
    code = cv2.QRCodeEncoder.create().encode(payload)
    scale = max(1, side_px // code.shape[0])
    return cv2.resize(code, None, fx=scale, fy=scale, interpolation=cv2.INTER_NEAREST)


class BaseCapture(ABC):
    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @abstractmethod
    def stop(self) -> None: ...


class USBOpenCVCapture(BaseCapture):
    """
    Camera frames via cv2.VideoCapture at the calibrated resolution.

    The pose math assumes every frame has the calibration's width/height, so
    ``start`` reads back what the driver actually negotiated and refuses to
    run on anything else.
    """

    def __init__(self, device: int | str, fps: int, size: tuple[int, int]):
        self.device = device
        self.fps = fps
        self.size = (int(size[0]), int(size[1]))
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        cap = open_video_device(self.device)
        if not cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

        width, height = self.size
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        if self.fps > 0:
            cap.set(cv2.CAP_PROP_FPS, self.fps)

        actual = (int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))
        if actual != self.size:
            cap.release()
            raise InvalidInputError(
                f"camera {self.device} delivers {actual[0]}x{actual[1]}, "
                f"calibration expects {width}x{height}"
            )
        self.cap = cap

    def next_frame(self) -> Frame | None:
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        return Frame(self.idx, _stamp(), img)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticCapture(BaseCapture):
    """
    BGR frames showing one sized QR marker centred on a white background, for
    dry runs of the full pipeline. ``payload=None`` gives blank frames.
    """

    def __init__(
        self,
        fps: int,
        size: tuple[int, int],
        payload: Optional[str] = DEFAULT_SYNTHETIC_PAYLOAD,
        side_px: Optional[int] = None,
    ):
        self.fps = fps
        self.size = (int(size[0]), int(size[1]))
        self.payload = payload
        self.side_px = side_px
        self.idx = 0
        self._image: Optional[np.ndarray] = None
        self._next_due = 0.0

    def _compose(self) -> np.ndarray:
        width, height = self.size
        if self.payload is None:
            return np.zeros((height, width, 3), dtype=np.uint8)

        side = self.side_px or min(width, height) // 3
        marker = render_marker(self.payload, side)
        mh, mw = marker.shape[:2]
        if mh > height or mw > width:
            raise InvalidInputError(f"marker of {mw}x{mh} px does not fit a {width}x{height} frame")

        gray = np.full((height, width), 255, dtype=np.uint8)
        top, left = (height - mh) // 2, (width - mw) // 2
        gray[top:top + mh, left:left + mw] = marker
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    def start(self) -> None:
        self._image = self._compose()
        self._next_due = time.monotonic()

    def next_frame(self) -> Frame | None:
        if self.fps > 0:
            delay = self._next_due - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            self._next_due = max(self._next_due, time.monotonic()) + 1.0 / self.fps
        self.idx += 1
        return Frame(self.idx, _stamp(), self._image.copy())

    def stop(self) -> None:
        self._image = None
