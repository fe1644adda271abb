"""
Data models package.
"""
from .landmark_models import Landmark, FaceBox, PredictionResult, SessionState
from .model_config import (
    ModelConfig,
    InputFormat,
    OutputFormat,
    OutputType,
    NormalizationType,
    ScoreBucket,
)

__all__ = [
    'Landmark', 'FaceBox', 'PredictionResult', 'SessionState',
    'ModelConfig', 'InputFormat', 'OutputFormat', 'OutputType',
    'NormalizationType', 'ScoreBucket',
]
