"""랜드마크 정규화 테스트"""

import dataclasses

import numpy as np
import pytest

from conftest import FRAME_H, FRAME_W, make_face_landmarks
from emotion_face_analyzer.core.constants import SENTINEL_VALUE
from emotion_face_analyzer.core.normalizer import LandmarkNormalizer, landmarks_to_array
from emotion_face_analyzer.models import FaceBox, Landmark, NormalizationType
from emotion_face_analyzer.utils.exceptions import InvalidLandmarksError


def test_ferplus_centers_on_nose_and_scales_by_inner_eye_distance(face_landmarks):
    result = LandmarkNormalizer.normalize(face_landmarks, FRAME_W, FRAME_H, NormalizationType.FERPLUS)

    # 내안각 거리 = 0.1 * 640 = 64px
    assert result.shape == (478, 3)
    np.testing.assert_allclose(result[1], [0.0, 0.0, 0.0], atol=1e-9)
    np.testing.assert_allclose(result[133], [-0.5, -0.375, 0.0], atol=1e-9)
    np.testing.assert_allclose(result[362], [0.5, -0.375, 0.0], atol=1e-9)


def test_ferplus_scales_z_by_image_width():
    landmarks = make_face_landmarks()
    landmarks[10] = Landmark(x=0.5, y=0.5, z=0.1)

    result = LandmarkNormalizer.normalize(landmarks, FRAME_W, FRAME_H, NormalizationType.FERPLUS)

    assert result[10, 2] == pytest.approx(0.1 * FRAME_W / 64.0)


def test_ferplus_degenerate_eye_distance_uses_fallback_without_nan():
    landmarks = [(0.5, 0.5, 0.0)] * 478

    result = LandmarkNormalizer.normalize(landmarks, FRAME_W, FRAME_H, NormalizationType.FERPLUS)

    assert np.isfinite(result).all()
    np.testing.assert_allclose(result, 0.0)


def test_ferplus_zero_width_frame_falls_back_to_unit_scale():
    landmarks = [(0.5, 0.5, 0.0)] * 478
    landmarks[0] = (0.7, 0.5, 0.0)

    result = LandmarkNormalizer.apply_ferplus(landmarks_to_array(landmarks), 0, FRAME_H)

    assert np.isfinite(result).all()


def test_missing_landmarks_stay_sentinel(face_landmarks):
    face_landmarks[20] = None
    face_landmarks[21] = ('a', 'b', 'c')

    for normalization in NormalizationType:
        result = LandmarkNormalizer.normalize(face_landmarks, FRAME_W, FRAME_H, normalization)
        assert (result[20] == SENTINEL_VALUE).all()
        assert (result[21] == SENTINEL_VALUE).all()


def test_missing_reference_landmark_returns_input_unchanged(face_landmarks):
    face_landmarks[133] = None
    expected = landmarks_to_array(face_landmarks)

    result = LandmarkNormalizer.normalize(face_landmarks, FRAME_W, FRAME_H, NormalizationType.FERPLUS)

    np.testing.assert_array_equal(result, expected)


def test_too_few_landmarks_returns_input_unchanged():
    landmarks = [(0.1 * (i % 10), 0.2, 0.0) for i in range(100)]
    expected = landmarks_to_array(landmarks)

    for normalization in (NormalizationType.FERPLUS, NormalizationType.DISTANCE):
        result = LandmarkNormalizer.normalize(landmarks, FRAME_W, FRAME_H, normalization)
        np.testing.assert_array_equal(result, expected)


def test_distance_normalization_clamps_outliers():
    landmarks = [(0.5, 0.5, 0.0)] * 478
    landmarks[4] = (0.5, 0.5, 0.0)
    landmarks[33] = (0.4, 0.5, 0.0)
    landmarks[263] = (0.6, 0.5, 0.0)
    landmarks[100] = (2.5, 0.5, 0.0)   # 기준 거리(0.2)의 10배

    result = LandmarkNormalizer.normalize(landmarks, FRAME_W, FRAME_H, NormalizationType.DISTANCE)

    np.testing.assert_allclose(result[33], [-0.5, 0.0, 0.0])
    np.testing.assert_allclose(result[100], [5.0, 0.0, 0.0])
    np.testing.assert_allclose(result[0], [0.0, 0.0, 0.0])


def test_distance_normalization_degenerate_scale_is_finite():
    landmarks = [(0.5, 0.5, 0.0)] * 478
    landmarks[200] = (0.6, 0.5, 0.0)

    result = LandmarkNormalizer.normalize(landmarks, FRAME_W, FRAME_H, NormalizationType.DISTANCE)

    assert np.isfinite(result).all()


def test_none_normalization_passes_coordinates_through(face_landmarks):
    result = LandmarkNormalizer.normalize(face_landmarks, FRAME_W, FRAME_H, NormalizationType.NONE)

    np.testing.assert_allclose(result[133], [0.45, 0.45, 0.0])


def test_landmarks_to_array_accepts_numpy_and_marks_non_finite_rows():
    array = np.full((478, 3), 0.5)
    array[7] = [np.nan, 0.5, 0.5]

    result = landmarks_to_array(array)

    assert (result[7] == SENTINEL_VALUE).all()
    assert result is not array


def test_landmarks_to_array_rejects_wrong_shape():
    with pytest.raises(InvalidLandmarksError):
        landmarks_to_array(np.zeros((478, 2)))


def test_landmarks_to_array_reads_mediapipe_style_objects(face_landmarks):
    class LandmarkList:
        landmark = face_landmarks

    result = landmarks_to_array(LandmarkList())

    np.testing.assert_allclose(result[1], [0.5, 0.5, 0.0])


def test_face_bounding_box_in_pixels(face_landmarks):
    box = LandmarkNormalizer.face_bounding_box(face_landmarks, FRAME_W, FRAME_H)

    assert box.x == pytest.approx(0.3 * FRAME_W)
    assert box.y == pytest.approx(0.3 * FRAME_H)
    assert box.width == pytest.approx(0.4 * FRAME_W)
    assert box.height == pytest.approx(0.4 * FRAME_H)


def test_face_bounding_box_without_valid_landmarks():
    assert LandmarkNormalizer.face_bounding_box([None, None], FRAME_W, FRAME_H) is None
    assert LandmarkNormalizer.face_bounding_box([], FRAME_W, FRAME_H) is None


def test_to_box_relative_maps_box_corners_and_rescales_z():
    box = FaceBox(x=160.0, y=120.0, width=320.0, height=240.0)
    landmarks = [(0.25, 0.25, 0.0), (0.75, 0.75, 0.1), None]

    relative = LandmarkNormalizer.to_box_relative(landmarks, box, FRAME_W, FRAME_H, rescale_z=True)

    np.testing.assert_allclose(relative[0], [0.0, 0.0, 0.0])
    np.testing.assert_allclose(relative[1], [1.0, 1.0, 0.2])
    assert (relative[2] == SENTINEL_VALUE).all()


def test_to_box_relative_rejects_empty_box(face_landmarks):
    with pytest.raises(InvalidLandmarksError):
        LandmarkNormalizer.to_box_relative(face_landmarks, FaceBox(0, 0, 0, 10), FRAME_W, FRAME_H)


def test_landmark_holds_only_coordinates():
    landmark = Landmark(0.1, 0.2, 0.3)

    assert [f.name for f in dataclasses.fields(Landmark)] == ['x', 'y', 'z']
    np.testing.assert_allclose(landmarks_to_array([landmark]), [[0.1, 0.2, 0.3]])
