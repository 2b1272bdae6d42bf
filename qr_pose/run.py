from __future__ import annotations

import argparse
import signal
import sys
import threading
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture
from .config import EstimatorConfig, build_intrinsics, load_config
from .errors import DecoderError
from .estimator import QRPoseEstimator
from .logging_utils import setup_logger
from .output import CsvPoseWriter
from .overlay import DEFAULT_WINDOW_TITLE, OutlineOverlay
from .qr_types import PoseResult


@dataclass
class SessionSummary:
    frames_processed: int
    poses: int
    decoder_errors: int
    dropped_frames: int
    avg_fps: float


def format_pose(result: PoseResult) -> str:
    lines = [f"Camera position/orientation matrix ({result.identifier!r}, {result.size_m:.4f} m):"]
    for row in np.asarray(result.camera_pose):
        lines.append(" ".join(f"{v:f}" for v in row))
    return "\n".join(lines)


class PoseSession:
    def __init__(
        self,
        config: EstimatorConfig,
        logger=None,
        capture: Optional[BaseCapture] = None,
        estimator: Optional[QRPoseEstimator] = None,
        out=None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_name)
        self.capture = capture
        self.estimator = estimator
        self.out = out if out is not None else sys.stdout
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self, size: tuple[int, int]) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(self.config.fps, size)
        return USBOpenCVCapture(self.config.device, self.config.fps, size)

    def _build_estimator(self) -> QRPoseEstimator:
        if self.estimator is not None:
            return self.estimator
        overlay = OutlineOverlay(DEFAULT_WINDOW_TITLE) if self.config.show_window else None
        return QRPoseEstimator(build_intrinsics(self.config), overlay=overlay, logger=self.logger)

    def run(self) -> SessionSummary:
        estimator = self._build_estimator()
        cap = self._build_capture(estimator.intrinsics.size)

        writer = None
        if self.config.csv_path:
            writer = CsvPoseWriter(self.config.csv_path)
            writer.open()

        self.logger.info("config: %s", self.config.as_dict())

        t0 = time.time()
        frames = 0
        poses = 0
        decoder_errors = 0
        dropped = 0

        try:
            cap.start()
            while not self._stop_event.is_set():
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    dropped += 1
                    if self.config.max_frames and dropped >= self.config.max_frames:
                        break
                    continue
                frames += 1

                try:
                    if self.config.single:
                        single = estimator.estimate_single_from_bgr_frame(f.image)
                        results = [single] if single is not None else []
                    else:
                        results = estimator.estimate_from_bgr_frame(f.image)
                except DecoderError as e:
                    decoder_errors += 1
                    self.logger.warning("frame=%d decode failed: %s", f.idx, e)
                    continue

                ts_unix = time.time()
                for result in results:
                    print(format_pose(result), file=self.out)
                    if writer is not None:
                        writer.append(ts_unix, f.idx, result)
                poses += len(results)

                self.logger.debug("frame=%d poses=%d", f.idx, len(results))

        finally:
            try:
                cap.stop()
            except Exception as e:
                self.logger.warning("capture stop failed: %s", e)
            if writer is not None:
                writer.close()
            if estimator.overlay is not None:
                estimator.overlay.close()

        avg = frames / max(1e-6, (time.time() - t0))
        self.logger.info(
            "summary frames=%d poses=%d decoder_errors=%d avg_fps=%.2f",
            frames, poses, decoder_errors, avg,
        )
        return SessionSummary(frames, poses, decoder_errors, dropped, avg)


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Estimate camera pose from sized QR codes")
    ap.add_argument("--config", help="Path to JSON/YAML config")

    ap.add_argument("--camera-name")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--calib")
    ap.add_argument("--csv")
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--show", action="store_true", help="Show QR outlines in a window")
    ap.add_argument("--single", action="store_true", help="Report only the first marker per frame")
    ap.add_argument("--dry-run", action="store_true")

    return ap


def _apply_args(cfg: EstimatorConfig, args: argparse.Namespace) -> EstimatorConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        camera_name=args.camera_name,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        calibration_path=args.calib,
        csv_path=args.csv,
        max_frames=args.max_frames,
        show_window=True if args.show else None,
        single=True if args.single else None,
        dry_run=True if args.dry_run else None,
    )
    return cfg


def main(argv=None) -> int:
    ap = _build_parser()
    args = ap.parse_args(argv)

    cfg = load_config(args.config) if args.config else EstimatorConfig()
    cfg = _apply_args(cfg, args)

    session = PoseSession(cfg)

    def _handle_signal(_sig, _frame):
        session.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)

    summary = session.run()
    session.logger.info("%s", summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
