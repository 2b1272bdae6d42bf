import logging
from unittest.mock import MagicMock, patch

import cv2
import numpy as np
import pytest

from qr_pose.errors import DecoderError, InvalidInputError
from qr_pose.estimator import QRPoseEstimator
from qr_pose.overlay import OutlineOverlay
from qr_pose.qr_types import MarkerDetection, PoseResult
from qr_pose.transforms import invert_transform, rvec_tvec_to_matrix

from conftest import project_marker, rendered_marker_frame


def _estimator(intrinsics, detections=None):
    decoder = MagicMock()
    decoder.decode.return_value = list(detections or [])
    return QRPoseEstimator(intrinsics, decoder=decoder), decoder


def test_empty_frame_yields_empty_result(intrinsics):
    estimator, _ = _estimator(intrinsics)
    assert estimator.estimate(None, []) == []
    assert estimator.estimate_single(None, []) is None


def test_on_axis_marker_gives_analytic_pose(intrinsics, on_axis_detection):
    """Fronto-parallel marker 1 m ahead: camera sits 1 m behind the marker plane."""
    estimator, _ = _estimator(intrinsics)

    results = estimator.estimate(None, [on_axis_detection])

    assert len(results) == 1
    result = results[0]
    assert isinstance(result, PoseResult)
    assert result.identifier == "dock"
    assert result.size_m == pytest.approx(0.2)

    expected = np.eye(4)
    expected[2, 3] = -1.0
    assert np.allclose(result.camera_pose, expected, atol=1e-4)
    assert np.allclose(result.position, [0.0, 0.0, -1.0], atol=1e-4)


def test_tilted_marker_pose_is_inverse_of_view(intrinsics):
    rvec = np.array([0.3, -0.2, 0.1])
    tvec = np.array([-0.04, 0.03, 0.8])
    corners = project_marker(0.15, rvec, tvec, intrinsics)
    estimator, _ = _estimator(intrinsics)

    result = estimator.estimate_single(None, [MarkerDetection("15cm-shelf", corners)])

    assert result is not None
    view = rvec_tvec_to_matrix(rvec, tvec)
    assert np.allclose(result.camera_pose, invert_transform(view), atol=1e-4)
    assert np.allclose(result.camera_pose @ view, np.eye(4), atol=1e-4)


def test_distortion_is_honoured(distorted_intrinsics):
    rvec = np.array([0.1, 0.15, 0.0])
    tvec = np.array([0.1, -0.05, 1.2])
    corners = project_marker(0.3048, rvec, tvec, distorted_intrinsics)
    estimator, _ = _estimator(distorted_intrinsics)

    result = estimator.estimate_single(None, [MarkerDetection("1ft-door", corners)])

    assert result is not None
    assert np.allclose(result.camera_pose, invert_transform(rvec_tvec_to_matrix(rvec, tvec)), atol=1e-3)


def test_results_keep_decoder_order_and_duplicates(intrinsics, on_axis_detection):
    other = MarkerDetection("40cm-far", on_axis_detection.corners)
    dup = MarkerDetection("20cm-dock", on_axis_detection.corners)
    estimator, _ = _estimator(intrinsics)

    results = estimator.estimate(None, [on_axis_detection, other, dup])

    assert [r.identifier for r in results] == ["dock", "far", "dock"]
    assert results[1].camera_pose[2, 3] == pytest.approx(-2.0, abs=1e-3)


@pytest.mark.parametrize("count", [3, 5])
def test_wrong_corner_count_is_skipped(intrinsics, on_axis_detection, count):
    corners = np.vstack([on_axis_detection.corners, on_axis_detection.corners])[:count]
    estimator, _ = _estimator(intrinsics)

    results = estimator.estimate(None, [MarkerDetection("20cm-odd", corners), on_axis_detection])

    assert [r.identifier for r in results] == ["dock"]


@pytest.mark.parametrize("payload", ["https://example.com", "cm-nosize", "0in-flat", "-5cm-neg", ""])
def test_unusable_payloads_are_skipped(intrinsics, on_axis_detection, payload):
    estimator, _ = _estimator(intrinsics)

    results = estimator.estimate(None, [MarkerDetection(payload, on_axis_detection.corners), on_axis_detection])

    assert [r.identifier for r in results] == ["dock"]


def test_estimate_is_idempotent(intrinsics, on_axis_detection):
    estimator, _ = _estimator(intrinsics)
    first = estimator.estimate(None, [on_axis_detection])
    second = estimator.estimate(None, [on_axis_detection])

    assert len(first) == len(second) == 1
    assert np.array_equal(first[0].camera_pose, second[0].camera_pose)
    assert first[0].identifier == second[0].identifier
    assert first[0].size_m == second[0].size_m


def test_singular_view_skips_only_that_marker(intrinsics, on_axis_detection, caplog):
    real = rvec_tvec_to_matrix
    calls = []

    def fake_matrix(rvec, tvec):
        calls.append(rvec)
        if len(calls) == 1:
            return np.zeros((4, 4))
        return real(rvec, tvec)

    other = MarkerDetection("40cm-far", on_axis_detection.corners)
    estimator, _ = _estimator(intrinsics)

    with caplog.at_level(logging.WARNING, logger="qr_pose.estimator"):
        with patch("qr_pose.estimator.rvec_tvec_to_matrix", side_effect=fake_matrix):
            results = estimator.estimate(None, [on_axis_detection, other])

    assert [r.identifier for r in results] == ["far"]
    assert "singular" in caplog.text


def test_solver_failure_skips_marker(intrinsics, on_axis_detection):
    estimator, _ = _estimator(intrinsics)
    with patch("qr_pose.estimator.solve_marker_pnp", return_value=None):
        assert estimator.estimate(None, [on_axis_detection]) == []


def test_single_returns_first_resolved_marker(intrinsics, on_axis_detection):
    junk = MarkerDetection("hello", on_axis_detection.corners)
    other = MarkerDetection("40cm-far", on_axis_detection.corners)
    estimator, _ = _estimator(intrinsics)

    result = estimator.estimate_single(None, [junk, other, on_axis_detection])

    assert result.identifier == "far"


def test_gray_frame_is_decoded_and_estimated(intrinsics, on_axis_detection):
    estimator, decoder = _estimator(intrinsics, [on_axis_detection])
    gray = np.zeros((720, 1280), dtype=np.uint8)

    results = estimator.estimate_from_gray_frame(gray)

    assert [r.identifier for r in results] == ["dock"]
    decoder.decode.assert_called_once()
    assert decoder.decode.call_args[0][0].shape == (720, 1280)


def test_gray_frame_with_single_channel_axis_is_accepted(intrinsics):
    estimator, decoder = _estimator(intrinsics)
    assert estimator.estimate_from_gray_frame(np.zeros((720, 1280, 1), dtype=np.uint8)) == []
    assert decoder.decode.call_args[0][0].ndim == 2


def test_bgr_frame_is_converted_to_luma(intrinsics, on_axis_detection):
    estimator, decoder = _estimator(intrinsics, [on_axis_detection])
    bgr = np.zeros((720, 1280, 3), dtype=np.uint8)
    bgr[..., 1] = 200

    result = estimator.estimate_single_from_bgr_frame(bgr)

    assert result.identifier == "dock"
    gray = decoder.decode.call_args[0][0]
    assert gray.shape == (720, 1280)
    assert gray.dtype == np.uint8
    assert int(gray[0, 0]) == pytest.approx(0.587 * 200, abs=1)


def test_bgr_scratch_buffer_is_reused(intrinsics):
    estimator, _ = _estimator(intrinsics)
    bgr = np.zeros((720, 1280, 3), dtype=np.uint8)

    estimator.estimate_from_bgr_frame(bgr)
    first = estimator._gray
    estimator.estimate_from_bgr_frame(bgr)

    assert estimator._gray is first


def test_wrong_channel_count_raises(intrinsics):
    estimator, _ = _estimator(intrinsics)
    with pytest.raises(InvalidInputError):
        estimator.estimate_from_bgr_frame(np.zeros((720, 1280), dtype=np.uint8))
    with pytest.raises(InvalidInputError):
        estimator.estimate_from_bgr_frame(np.zeros((720, 1280, 4), dtype=np.uint8))
    with pytest.raises(InvalidInputError):
        estimator.estimate_from_gray_frame(np.zeros((720, 1280, 3), dtype=np.uint8))
    with pytest.raises(InvalidInputError):
        estimator.estimate_single_from_gray_frame(np.zeros((720, 1280, 3), dtype=np.uint8))


def test_decoder_error_propagates_with_context(intrinsics):
    estimator, decoder = _estimator(intrinsics)
    decoder.decode.side_effect = DecoderError("QR code scanner returned with error")

    with pytest.raises(DecoderError) as excinfo:
        estimator.estimate_from_bgr_frame(np.zeros((720, 1280, 3), dtype=np.uint8))

    assert excinfo.value.context == ["Error calculating pose from image"]
    assert "Error calculating pose from image" in str(excinfo.value)


def test_frame_size_mismatch_warns_once(intrinsics, caplog):
    estimator, _ = _estimator(intrinsics)
    small = np.zeros((480, 640), dtype=np.uint8)

    with caplog.at_level(logging.WARNING, logger="qr_pose.estimator"):
        estimator.estimate_from_gray_frame(small)
        estimator.estimate_from_gray_frame(small)

    assert caplog.text.count("differs from calibration") == 1


def test_overlay_receives_frame_and_detections(intrinsics, on_axis_detection):
    overlay = MagicMock()
    estimator = QRPoseEstimator(intrinsics, decoder=MagicMock(), overlay=overlay)
    frame = np.zeros((720, 1280), dtype=np.uint8)

    results = estimator.estimate(frame, [on_axis_detection])

    assert len(results) == 1
    overlay.show.assert_called_once_with(frame, [on_axis_detection])


def test_bgr_entry_point_shows_the_colour_frame(intrinsics, on_axis_detection):
    overlay = MagicMock()
    decoder = MagicMock()
    decoder.decode.return_value = [on_axis_detection]
    estimator = QRPoseEstimator(intrinsics, decoder=decoder, overlay=overlay)
    bgr = np.zeros((720, 1280, 3), dtype=np.uint8)

    estimator.estimate_from_bgr_frame(bgr)

    shown = overlay.show.call_args[0][0]
    assert shown is bgr
    assert decoder.decode.call_args[0][0].ndim == 2
    drawn = OutlineOverlay().draw(shown, [on_axis_detection])
    assert (drawn.reshape(-1, 3) == (0, 0, 255)).all(axis=1).any()


def test_rendered_code_through_real_detector_faces_camera(intrinsics):
    """A code facing the camera head-on: no rotation, camera behind the marker plane."""
    estimator = QRPoseEstimator(intrinsics)

    results = estimator.estimate_from_gray_frame(rendered_marker_frame("20cm-dock"))

    assert [r.identifier for r in results] == ["dock"]
    pose = results[0].camera_pose
    assert np.allclose(pose[:3, :3], np.eye(3), atol=1e-2)
    assert pose[2, 3] < 0
    assert abs(pose[0, 3]) < 0.01
    assert abs(pose[1, 3]) < 0.01


def test_rendered_code_through_bgr_entry_point(intrinsics):
    bgr = cv2.cvtColor(rendered_marker_frame("200mm-bay"), cv2.COLOR_GRAY2BGR)

    result = QRPoseEstimator(intrinsics).estimate_single_from_bgr_frame(bgr)

    assert result is not None
    assert result.identifier == "bay"
    assert result.size_m == pytest.approx(0.2)
    assert result.camera_pose[2, 3] < 0

def test_constructor_requires_intrinsics_context():
    with pytest.raises(InvalidInputError):
        QRPoseEstimator(np.eye(3))
