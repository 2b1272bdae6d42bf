"""Camera pose estimation from QR codes that encode their own size."""

from .dimension import ParsedMarkerLabel, parse_dimension
from .errors import DecoderError, ErrorKind, InvalidInputError, QRPoseError, SingularTransformError
from .estimator import QRPoseEstimator
from .intrinsics import IntrinsicsContext, load_intrinsics
from .qr_types import MarkerDetection, PoseResult

__all__ = [
    "DecoderError",
    "ErrorKind",
    "IntrinsicsContext",
    "InvalidInputError",
    "MarkerDetection",
    "ParsedMarkerLabel",
    "PoseResult",
    "QRPoseError",
    "QRPoseEstimator",
    "SingularTransformError",
    "load_intrinsics",
    "parse_dimension",
]
