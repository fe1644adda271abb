"""모델 설정 데이터 모델 (불변)"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ..utils.exceptions import ConfigurationError


class NormalizationType(Enum):
    """랜드마크 정규화 방식"""
    FERPLUS = "ferplus"      # 코끝 원점 + 내안각 거리 스케일
    DISTANCE = "distance"    # legacy: 외안각 거리 스케일 + 이상치 clamp
    NONE = "none"


class OutputType(Enum):
    """모델 출력 해석 방식"""
    CLASSIFICATION = "classification"  # logits / 확률 벡터
    REGRESSION = "regression"          # 단일 점수 → 구간 매핑


@dataclass(frozen=True)
class ScoreBucket:
    """회귀 점수 구간 [lower, upper)"""

    lower: float
    upper: float
    class_index: int

    def contains(self, score: float, inclusive_upper: bool = False) -> bool:
        if inclusive_upper:
            return self.lower <= score <= self.upper
        return self.lower <= score < self.upper


@dataclass(frozen=True)
class InputFormat:
    """모델 입력 텐서 형식"""

    sequence_length: int = 1
    num_landmarks: int = 478
    num_coords: int = 3
    # 명시적 텐서 shape (None이면 [1, seq, landmarks, coords])
    tensor_shape: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        """shape 검증"""
        for name in ('sequence_length', 'num_landmarks', 'num_coords'):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be >= 1, got {getattr(self, name)}")

        if self.tensor_shape is not None:
            product = 1
            for dim in self.tensor_shape:
                product *= dim
            if product != self.element_count:
                raise ConfigurationError(
                    f"tensor_shape {self.tensor_shape} has {product} elements, "
                    f"expected {self.element_count}"
                )

    @property
    def element_count(self) -> int:
        return self.sequence_length * self.num_landmarks * self.num_coords

    @property
    def resolved_shape(self) -> Tuple[int, ...]:
        if self.tensor_shape is not None:
            return tuple(self.tensor_shape)
        return (1, self.sequence_length, self.num_landmarks, self.num_coords)


@dataclass(frozen=True)
class OutputFormat:
    """모델 출력 형식"""

    output_type: OutputType
    class_labels: Dict[int, str]
    output_names: Dict[str, str] = field(default_factory=dict)
    apply_softmax: bool = False
    score_buckets: Tuple[ScoreBucket, ...] = ()

    def __post_init__(self):
        if not self.class_labels:
            raise ConfigurationError("class_labels must not be empty")
        if self.output_type == OutputType.REGRESSION:
            if not self.score_buckets:
                raise ConfigurationError("Regression output requires score_buckets")
            for bucket in self.score_buckets:
                if bucket.class_index not in self.class_labels:
                    raise ConfigurationError(
                        f"Bucket class index {bucket.class_index} has no label"
                    )

    @property
    def num_classes(self) -> int:
        return len(self.class_labels)

    @property
    def primary_output(self) -> Optional[str]:
        """결과 해석에 사용할 출력 텐서 이름"""
        role = 'logits' if self.output_type == OutputType.CLASSIFICATION else 'score'
        return self.output_names.get(role)

    def label_for(self, index: int) -> str:
        return self.class_labels.get(index, f"Class {index}")

    def labels_in_order(self):
        return [self.class_labels[i] for i in sorted(self.class_labels)]


@dataclass(frozen=True)
class ModelConfig:
    """분류 모델 설정 (레지스트리 항목)"""

    id: str
    name: str
    filename: str
    input_format: InputFormat
    output_format: OutputFormat
    normalization_type: NormalizationType = NormalizationType.NONE
    processing_options: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {
            'id': self.id,
            'name': self.name,
            'filename': self.filename,
            'tensor_shape': list(self.input_format.resolved_shape),
            'normalization_type': self.normalization_type.value,
            'output_type': self.output_format.output_type.value,
            'class_labels': dict(self.output_format.class_labels),
            'apply_softmax': self.output_format.apply_softmax,
        }
