"""분류 모델 설정 레지스트리"""

from typing import Dict, Iterable, List, Optional

from ..models.model_config import (
    InputFormat,
    ModelConfig,
    NormalizationType,
    OutputFormat,
    OutputType,
    ScoreBucket,
)
from ..utils import get_logger
from .constants import ENGAGEMENT_LABELS, ENGAGEMENT_SCORE_BUCKETS, NUM_COORDS, NUM_LANDMARKS

logger = get_logger(__name__)

FERPLUS_LABELS = {
    0: 'Neutral', 1: 'Happiness', 2: 'Surprise', 3: 'Sadness',
    4: 'Anger', 5: 'Disgust', 6: 'Fear', 7: 'Contempt',
}

AFFECTNET_LABELS = {
    0: 'Neutral', 1: 'Happy', 2: 'Sad', 3: 'Surprise',
    4: 'Fear', 5: 'Disgust', 6: 'Anger', 7: 'Contempt',
}

MODEL_CONFIGS: Dict[str, ModelConfig] = {
    'ferplus_transformer_small_v1': ModelConfig(
        id='ferplus_transformer_small_v1',
        name='Emotion Transformer Small v1 (FER+ 8 Classes)',
        filename='emotion_transformer_small.onnx',
        input_format=InputFormat(
            sequence_length=1,
            num_landmarks=NUM_LANDMARKS,
            num_coords=NUM_COORDS,
            tensor_shape=(1, NUM_LANDMARKS, NUM_COORDS),  # [batch, landmarks, coords]
        ),
        normalization_type=NormalizationType.FERPLUS,
        output_format=OutputFormat(
            output_type=OutputType.CLASSIFICATION,
            class_labels=FERPLUS_LABELS,
            output_names={'logits': 'logits', 'embedding': 'embedding'},
            apply_softmax=True,
        ),
    ),
    'emotion_transformer_v1': ModelConfig(
        id='emotion_transformer_v1',
        name='Emotion Transformer v1 (AffectNet 8 Classes)',
        filename='emotion_transformer_v1.onnx',
        input_format=InputFormat(
            sequence_length=1,
            num_landmarks=NUM_LANDMARKS,
            num_coords=NUM_COORDS,
        ),
        normalization_type=NormalizationType.NONE,
        output_format=OutputFormat(
            output_type=OutputType.CLASSIFICATION,
            class_labels=AFFECTNET_LABELS,
            output_names={'logits': 'logits', 'embedding': 'embedding'},
            apply_softmax=True,
        ),
    ),
    'engagement_transformer_v1': ModelConfig(
        id='engagement_transformer_v1',
        name='Engagement Transformer v1 (Regression Score)',
        filename='engagement_transformer_v1.onnx',
        input_format=InputFormat(
            sequence_length=1,
            num_landmarks=NUM_LANDMARKS,
            num_coords=NUM_COORDS,
        ),
        normalization_type=NormalizationType.DISTANCE,
        output_format=OutputFormat(
            output_type=OutputType.REGRESSION,
            class_labels=ENGAGEMENT_LABELS,
            output_names={'score': 'score'},
            score_buckets=tuple(
                ScoreBucket(lower=lo, upper=hi, class_index=idx)
                for lo, hi, idx in ENGAGEMENT_SCORE_BUCKETS
            ),
        ),
    ),
}

DEFAULT_MODEL_ID = 'ferplus_transformer_small_v1'


class ModelRegistry:
    """
    모델 ID → ModelConfig 매핑과 현재 활성 모델 포인터

    설정은 생성 시점에 고정되며 런타임 등록은 지원하지 않는다.
    """

    def __init__(
        self,
        configs: Optional[Iterable[ModelConfig]] = None,
        default_model_id: Optional[str] = None
    ):
        """
        Args:
            configs: 모델 설정 목록 (None이면 MODEL_CONFIGS)
            default_model_id: 기본 모델 ID (None이면 DEFAULT_MODEL_ID)
        """
        source = list(configs) if configs is not None else list(MODEL_CONFIGS.values())
        self._configs: Dict[str, ModelConfig] = {config.id: config for config in source}

        default_id = default_model_id or DEFAULT_MODEL_ID
        if default_id not in self._configs:
            default_id = next(iter(self._configs), None)
        self.preferred_default_id: Optional[str] = default_id
        self._active_id: Optional[str] = default_id

    def get_active_config(self) -> Optional[ModelConfig]:
        """현재 활성 모델 설정 (없으면 None)"""
        if self._active_id is None:
            return None
        return self._configs.get(self._active_id)

    def get_config(self, model_id: str) -> Optional[ModelConfig]:
        """ID로 모델 설정 조회"""
        return self._configs.get(model_id)

    def set_active(self, model_id: str) -> bool:
        """
        활성 모델 변경

        Returns:
            성공 여부 (알 수 없는 ID면 False, 활성 모델 유지)
        """
        if model_id in self._configs:
            self._active_id = model_id
            logger.info(f"Switched active model to: {model_id}")
            return True
        logger.warning(f"Model ID '{model_id}' not found in configurations.")
        return False

    def clear_active(self):
        """활성 모델 포인터 해제"""
        self._active_id = None

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    def list_configs(self) -> List[ModelConfig]:
        """전체 모델 설정 목록 (등록 순서)"""
        return list(self._configs.values())

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._configs

    def __repr__(self):
        return f"ModelRegistry(models={list(self._configs)}, active={self._active_id})"
