"""
Emotion Face Analyzer

MediaPipe 얼굴 랜드마크 → ONNX 감정/집중도 모델 추론 파이프라인.

모듈 수준 함수는 처음 호출될 때 생성되는 기본 InferenceSessionManager를 공유한다.
"""

import threading
from typing import Any, List, Optional

import numpy as np

from .core.face_crop import FaceCloseUpStage
from .core.session_manager import InferenceSessionManager
from .models import FaceBox, ModelConfig, PredictionResult

__version__ = '0.1.0'

_default_manager: Optional[InferenceSessionManager] = None
_default_crop_stage: Optional[FaceCloseUpStage] = None
_manager_lock = threading.Lock()


def get_session_manager() -> InferenceSessionManager:
    """기본 세션 관리자 (없으면 생성)"""
    global _default_manager
    with _manager_lock:
        if _default_manager is None:
            _default_manager = InferenceSessionManager()
        return _default_manager


def initialize_model(model_id: Optional[str] = None) -> bool:
    """모델 로드 (None이면 기본 모델)"""
    return get_session_manager().initialize(model_id)


def switch_model(model_id: str) -> bool:
    """다른 모델로 전환 (이미 로드된 모델이면 재로드하지 않음)"""
    return get_session_manager().switch_model(model_id)


def predict(landmarks: Any, width: float, height: float) -> Optional[PredictionResult]:
    """
    단일 프레임 랜드마크로 추론

    Args:
        landmarks: 478개 (x, y, z) 랜드마크 (프레임 비율 좌표)
        width: 프레임 너비 (픽셀)
        height: 프레임 높이 (픽셀)

    Returns:
        PredictionResult, 실패 시 None
    """
    return get_session_manager().predict(landmarks, width, height)


def get_active_model_info() -> Optional[ModelConfig]:
    return get_session_manager().get_active_model_info()


def get_all_models() -> List[ModelConfig]:
    return get_session_manager().get_all_models()


def crop_face(image: np.ndarray, face_box: Optional[FaceBox]) -> Optional[bytes]:
    """얼굴 박스 주변 close-up JPEG (박스가 없거나 비어 있으면 None)"""
    global _default_crop_stage
    if _default_crop_stage is None:
        _default_crop_stage = FaceCloseUpStage()
    return _default_crop_stage.process(image, face_box)


__all__ = [
    '__version__',
    'get_session_manager',
    'initialize_model', 'switch_model', 'predict',
    'get_active_model_info', 'get_all_models', 'crop_face',
]
