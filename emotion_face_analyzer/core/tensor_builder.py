"""정규화된 랜드마크 → 모델 입력 텐서 변환"""

import numbers
from typing import Any, List

import numpy as np

from ..models.model_config import InputFormat
from .constants import SENTINEL_VALUE
from .normalizer import landmarks_to_array


def _as_frames(landmarks: Any) -> List[np.ndarray]:
    """단일 프레임 / 프레임 시퀀스 입력을 (N, 3) 배열 리스트로 변환"""
    if landmarks is None:
        return []
    if isinstance(landmarks, np.ndarray):
        if landmarks.ndim == 3:
            return [frame for frame in landmarks]
        return [landmarks_to_array(landmarks)]
    if isinstance(landmarks, (list, tuple)) and landmarks:
        first = landmarks[0]
        if isinstance(first, np.ndarray) and first.ndim == 2:
            return [landmarks_to_array(frame) for frame in landmarks]
        if isinstance(first, (list, tuple)) and first and not isinstance(first[0], numbers.Number):
            # 프레임 시퀀스 [[lm, lm, ...], ...]
            return [landmarks_to_array(frame) for frame in landmarks]
    return [landmarks_to_array(landmarks)]


def build_input_tensor(landmarks: Any, input_format: InputFormat) -> np.ndarray:
    """
    랜드마크를 모델 입력 shape의 float32 텐서로 패킹

    시퀀스 위치마다 선언된 랜드마크 개수만큼 x, y, z 순서로 기록하고,
    채워지지 않은 슬롯은 SENTINEL_VALUE로 남긴다. 선언 개수를 넘는
    랜드마크는 버린다.

    Args:
        landmarks: 단일 프레임 랜드마크 또는 프레임 시퀀스
        input_format: 모델 입력 형식

    Returns:
        input_format.resolved_shape 형태의 float32 배열
    """
    seq_len = input_format.sequence_length
    num_landmarks = input_format.num_landmarks
    num_coords = input_format.num_coords

    buffer = np.full((seq_len, num_landmarks, num_coords), SENTINEL_VALUE, dtype=np.float32)

    frames = _as_frames(landmarks)
    for seq_idx, frame in enumerate(frames[:seq_len]):
        count = min(len(frame), num_landmarks)
        coords = min(frame.shape[1], num_coords) if frame.ndim == 2 else 0
        if count and coords:
            buffer[seq_idx, :count, :coords] = frame[:count, :coords]

    return buffer.reshape(input_format.resolved_shape)
