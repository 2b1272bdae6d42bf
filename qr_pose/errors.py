"""Error taxonomy for the QR pose pipeline.

Each error carries an :class:`ErrorKind` and a chain of context messages that
callers extend with :meth:`QRPoseError.add_context` as the error travels up.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    INVALID_INPUT = "invalid_input"
    DECODER_ERROR = "decoder_error"
    SINGULAR_TRANSFORM = "singular_transform"


class QRPoseError(Exception):
    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.context: list[str] = []

    def add_context(self, message: str) -> "QRPoseError":
        self.context.append(message)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        return " <- ".join([self.message, *self.context])


class InvalidInputError(QRPoseError):
    """Malformed constructor arguments or a frame with the wrong channel count."""

    kind = ErrorKind.INVALID_INPUT


class DecoderError(QRPoseError):
    """The QR scan itself failed (distinct from finding no markers)."""

    kind = ErrorKind.DECODER_ERROR


class SingularTransformError(QRPoseError):
    kind = ErrorKind.SINGULAR_TRANSFORM
