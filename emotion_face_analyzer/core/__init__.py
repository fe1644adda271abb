"""
Core inference pipeline package.
"""
# face_detector (mediapipe) / emotion_monitor 는 필요할 때 직접 import

from .model_registry import ModelRegistry, MODEL_CONFIGS, DEFAULT_MODEL_ID
from .normalizer import LandmarkNormalizer
from .session_manager import InferenceSessionManager
from .face_crop import FaceCloseUpStage

__all__ = [
    'ModelRegistry', 'MODEL_CONFIGS', 'DEFAULT_MODEL_ID',
    'LandmarkNormalizer', 'InferenceSessionManager', 'FaceCloseUpStage',
]
