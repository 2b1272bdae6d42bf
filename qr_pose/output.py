import csv
import io

import numpy as np

from .transforms import matrix_to_rvec_tvec
from .qr_types import PoseResult


class CsvPoseWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "identifier", "size_m",
        "x", "y", "z",
        "rvec_x", "rvec_y", "rvec_z",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _row(ts_unix, frame_idx, result: PoseResult) -> list:
        rvec, tvec = matrix_to_rvec_tvec(np.asarray(result.camera_pose))
        return [
            f"{ts_unix:.6f}",
            frame_idx, result.identifier, result.size_m,
            *tvec.reshape(-1).tolist(),
            *rvec.reshape(-1).tolist(),
        ]

    def append(self, ts_unix, frame_idx, result: PoseResult):
        if not self._opened:
            raise RuntimeError("CsvPoseWriter.append called before open()")
        self._w.writerow(self._row(ts_unix, frame_idx, result))

    @classmethod
    def to_csv_line(cls, ts_unix, frame_idx, result: PoseResult) -> str:
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow(cls._row(ts_unix, frame_idx, result))
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
