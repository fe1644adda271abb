"""입력 검증 유틸리티 함수"""

import math
import numpy as np
from .exceptions import InvalidImageError, InvalidLandmarksError


def validate_image(image: np.ndarray) -> None:
    """
    이미지 유효성 검증

    Args:
        image: 검증할 이미지 (numpy array)

    Raises:
        InvalidImageError: 이미지가 유효하지 않은 경우
    """
    if image is None:
        raise InvalidImageError("Image is None")

    if not isinstance(image, np.ndarray):
        raise InvalidImageError(f"Image must be numpy.ndarray, got {type(image)}")

    if image.size == 0:
        raise InvalidImageError("Image is empty")

    if len(image.shape) not in [2, 3]:
        raise InvalidImageError(f"Image must be 2D or 3D, got shape {image.shape}")

    if len(image.shape) == 3 and image.shape[2] not in [1, 3, 4]:
        raise InvalidImageError(f"Image channels must be 1, 3, or 4, got {image.shape[2]}")


def validate_frame_size(width: float, height: float) -> None:
    """프레임 크기 검증 (양의 유한값)"""
    for name, value in (('width', width), ('height', height)):
        if value is None or not math.isfinite(value) or value <= 0:
            raise InvalidLandmarksError(f"Frame {name} must be a positive number, got {value}")

