from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Optional

from .intrinsics import IntrinsicsContext, load_intrinsics


@dataclass
class EstimatorConfig:
    camera_name: str = "cam"
    device: int | str = 0
    fps: int = 30
    width: int = 1280
    height: int = 720
    calibration_path: str = "calib/webcam_1280x720.yml"
    # Inline calibration; used instead of calibration_path when both are set
    camera_matrix: Optional[list[list[float]]] = None
    dist_coeffs: Optional[list[float]] = None
    show_window: bool = False
    single: bool = False
    max_frames: Optional[int] = None
    csv_path: Optional[str] = None
    dry_run: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "EstimatorConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def load_config(path: str | Path) -> EstimatorConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = EstimatorConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = str(raw.get("calibration_path", cfg.calibration_path))

    K_raw = raw.get("camera_matrix")
    if K_raw is not None:
        cfg.camera_matrix = [[float(v) for v in row] for row in K_raw]
    dist_raw = raw.get("dist_coeffs")
    if dist_raw is not None:
        cfg.dist_coeffs = [float(v) for v in dist_raw]

    cfg.show_window = bool(raw.get("show_window", cfg.show_window))
    cfg.single = bool(raw.get("single", cfg.single))
    cfg.max_frames = _optional_int(raw.get("max_frames", cfg.max_frames))
    csv_path = raw.get("csv_path", cfg.csv_path)
    cfg.csv_path = None if csv_path is None else str(csv_path)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    return cfg


def build_intrinsics(cfg: EstimatorConfig) -> IntrinsicsContext:
    if cfg.camera_matrix is not None and cfg.dist_coeffs is not None:
        return IntrinsicsContext(cfg.width, cfg.height, cfg.camera_matrix, cfg.dist_coeffs)
    return load_intrinsics(cfg.calibration_path)
