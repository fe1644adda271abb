"""좌표 정규화 유틸리티"""

import math
from typing import Any, Optional, Sequence

import numpy as np

from ..models.landmark_models import FaceBox
from ..models.model_config import NormalizationType
from ..utils import get_logger
from ..utils.exceptions import InvalidLandmarksError
from .constants import (
    DISTANCE_LANDMARKS,
    DISTANCE_OUTLIER_FACTOR,
    FERPLUS_LANDMARKS,
    NUM_COORDS,
    SCALE_EPSILON,
    SENTINEL_VALUE,
)

logger = get_logger(__name__)


def _coerce_point(point: Any) -> Optional[Sequence[float]]:
    """단일 랜드마크를 (x, y, z)로 변환 (실패 시 None)"""
    if point is None:
        return None
    if all(hasattr(point, attr) for attr in ('x', 'y', 'z')):
        values = (point.x, point.y, point.z)
    else:
        try:
            values = tuple(point)[:NUM_COORDS]
        except TypeError:
            return None
        if len(values) < NUM_COORDS:
            return None
    try:
        values = tuple(float(v) for v in values)
    except (TypeError, ValueError):
        return None
    if not all(math.isfinite(v) for v in values):
        return None
    return values


def landmarks_to_array(landmarks: Any) -> np.ndarray:
    """
    다양한 랜드마크 입력을 (N, 3) float64 배열로 변환

    Args:
        landmarks: Landmark 리스트, MediaPipe landmark 객체, (x, y, z) 시퀀스,
            또는 (N, 3) numpy 배열

    Returns:
        (N, 3) 배열. 누락/잘못된 항목은 SENTINEL_VALUE 행으로 채움

    Raises:
        InvalidLandmarksError: 배열 shape이 (N, 3)이 아닌 경우
    """
    if landmarks is None:
        return np.empty((0, NUM_COORDS), dtype=np.float64)

    if hasattr(landmarks, 'landmark'):
        # MediaPipe NormalizedLandmarkList
        landmarks = landmarks.landmark

    if isinstance(landmarks, np.ndarray):
        if landmarks.ndim != 2 or landmarks.shape[1] != NUM_COORDS:
            raise InvalidLandmarksError(
                f"Landmark array must have shape (N, {NUM_COORDS}), got {landmarks.shape}"
            )
        array = landmarks.astype(np.float64, copy=True)
        array[~np.isfinite(array).all(axis=1)] = SENTINEL_VALUE
        return array

    rows = []
    for point in landmarks:
        values = _coerce_point(point)
        rows.append(values if values is not None else (SENTINEL_VALUE,) * NUM_COORDS)

    if not rows:
        return np.empty((0, NUM_COORDS), dtype=np.float64)
    return np.asarray(rows, dtype=np.float64)


def sentinel_mask(array: np.ndarray) -> np.ndarray:
    """sentinel로 채워진 행 여부"""
    return np.all(array == SENTINEL_VALUE, axis=1)


class LandmarkNormalizer:
    """좌표계 변환 및 정규화"""

    @staticmethod
    def normalize(
        landmarks: Any,
        image_width: float,
        image_height: float,
        normalization_type: NormalizationType = NormalizationType.NONE
    ) -> np.ndarray:
        """
        모델 설정의 정규화 방식에 따라 랜드마크 정규화

        Args:
            landmarks: 랜드마크 입력 (landmarks_to_array 참고)
            image_width: 프레임 너비 (픽셀)
            image_height: 프레임 높이 (픽셀)
            normalization_type: 정규화 방식

        Returns:
            (N, 3) 정규화 좌표 배열 (입력과 같은 길이)
        """
        array = landmarks_to_array(landmarks)

        if normalization_type == NormalizationType.FERPLUS:
            return LandmarkNormalizer.apply_ferplus(array, image_width, image_height)
        if normalization_type == NormalizationType.DISTANCE:
            return LandmarkNormalizer.apply_distance(array)
        return array

    @staticmethod
    def _has_references(array: np.ndarray, indices: Sequence[int], scheme: str) -> bool:
        if len(array) <= max(indices):
            logger.warning(
                f"Not enough landmarks for {scheme} normalization "
                f"(got {len(array)}, need > {max(indices)}). Returning input unchanged."
            )
            return False
        if sentinel_mask(array[list(indices)]).any():
            logger.warning(f"Reference landmarks missing for {scheme} normalization. Returning input unchanged.")
            return False
        return True

    @staticmethod
    def apply_ferplus(array: np.ndarray, image_width: float, image_height: float) -> np.ndarray:
        """
        FER+ 방식 inter-ocular 정규화

        픽셀 좌표(z는 이미지 너비로 스케일)로 변환 → 코끝 원점 이동 →
        두 내안각 사이 XY 거리로 나눔.
        """
        nose_idx = FERPLUS_LANDMARKS['nose_tip']
        left_idx = FERPLUS_LANDMARKS['left_eye_inner']
        right_idx = FERPLUS_LANDMARKS['right_eye_inner']

        if not LandmarkNormalizer._has_references(array, (nose_idx, left_idx, right_idx), 'FER+'):
            return array

        missing = sentinel_mask(array)
        scale = np.array([image_width, image_height, image_width], dtype=np.float64)
        absolute = array * scale
        centered = absolute - absolute[nose_idx]

        dx = centered[left_idx, 0] - centered[right_idx, 0]
        dy = centered[left_idx, 1] - centered[right_idx, 1]
        inter_ocular = math.sqrt(dx * dx + dy * dy)

        if inter_ocular < SCALE_EPSILON:
            logger.warning("Inter-ocular distance is too small, using fallback.")
            inter_ocular = image_width / 4.0
            if inter_ocular < SCALE_EPSILON:
                inter_ocular = 1.0

        normalized = centered / inter_ocular
        normalized[missing] = SENTINEL_VALUE
        return normalized

    @staticmethod
    def apply_distance(array: np.ndarray) -> np.ndarray:
        """
        Legacy distance 정규화

        기준점 원점 이동 → 외안각 사이 3D 거리로 스케일.
        기준 거리의 DISTANCE_OUTLIER_FACTOR 배를 넘는 점은 그 구 표면으로 당김.
        """
        center_idx = DISTANCE_LANDMARKS['center']
        left_idx = DISTANCE_LANDMARKS['left_eye_outer']
        right_idx = DISTANCE_LANDMARKS['right_eye_outer']

        if not LandmarkNormalizer._has_references(array, (center_idx, left_idx, right_idx), 'distance'):
            return array

        missing = sentinel_mask(array)
        centered = array - array[center_idx]

        scale = float(np.linalg.norm(array[left_idx] - array[right_idx]))
        if scale < SCALE_EPSILON:
            logger.warning("Eye-corner distance is too small, using unit scale.")
            scale = 1.0

        limit = DISTANCE_OUTLIER_FACTOR * scale
        distances = np.linalg.norm(centered, axis=1)
        outliers = (distances > limit) & ~missing
        if outliers.any():
            logger.debug(f"Clamping {int(outliers.sum())} outlier landmarks")
            centered[outliers] *= (limit / distances[outliers])[:, np.newaxis]

        normalized = centered / scale
        normalized[missing] = SENTINEL_VALUE
        return normalized

    @staticmethod
    def face_bounding_box(landmarks: Any, image_width: float, image_height: float) -> Optional[FaceBox]:
        """
        랜드마크로부터 픽셀 좌표 bounding box 계산

        Returns:
            FaceBox, 유효한 랜드마크가 없으면 None
        """
        array = landmarks_to_array(landmarks)
        valid = array[~sentinel_mask(array)] if len(array) else array
        if len(valid) == 0:
            return None

        xs = valid[:, 0] * image_width
        ys = valid[:, 1] * image_height
        x_min, x_max = float(xs.min()), float(xs.max())
        y_min, y_max = float(ys.min()), float(ys.max())
        return FaceBox(x=x_min, y=y_min, width=x_max - x_min, height=y_max - y_min)

    @staticmethod
    def to_box_relative(
        landmarks: Any,
        box: FaceBox,
        image_width: float,
        image_height: float,
        rescale_z: bool = False
    ) -> np.ndarray:
        """
        프레임 기준 랜드마크를 얼굴 박스 기준 (0-1) 좌표로 변환

        Args:
            landmarks: 프레임 기준 랜드마크
            box: 픽셀 좌표 얼굴 박스
            image_width: 프레임 너비
            image_height: 프레임 높이
            rescale_z: True면 z에 (프레임 너비 / 박스 너비)를 곱함

        Raises:
            InvalidLandmarksError: 박스 크기가 0 이하인 경우
        """
        if box is None or box.is_empty:
            raise InvalidLandmarksError(f"Invalid face box: {box}")

        array = landmarks_to_array(landmarks)
        missing = sentinel_mask(array)

        relative = np.empty_like(array)
        relative[:, 0] = (array[:, 0] * image_width - box.x) / box.width
        relative[:, 1] = (array[:, 1] * image_height - box.y) / box.height
        relative[:, 2] = array[:, 2] * (image_width / box.width) if rescale_z else array[:, 2]
        relative[missing] = SENTINEL_VALUE
        return relative
