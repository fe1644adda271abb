"""데이터 모델 정의"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from enum import Enum


class SessionState(Enum):
    """추론 세션 상태"""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class Landmark:
    """단일 랜드마크 포인트"""

    x: float  # 정규화 x 좌표 (0-1)
    y: float  # 정규화 y 좌표 (0-1)
    z: float  # 깊이 정보 (상대적)


@dataclass
class FaceBox:
    """픽셀 좌표계의 얼굴 bounding box"""

    x: float
    y: float
    width: float
    height: float

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def padded(self, padding_factor: float, frame_width: float, frame_height: float) -> 'FaceBox':
        """
        너비/높이 비율만큼 사방으로 패딩 후 프레임 경계로 clamp

        Args:
            padding_factor: 박스 크기 대비 패딩 비율
            frame_width: 프레임 너비 (픽셀)
            frame_height: 프레임 높이 (픽셀)

        Returns:
            패딩된 FaceBox (경계 밖이면 width/height가 0 이하일 수 있음)
        """
        pad_w = self.width * padding_factor
        pad_h = self.height * padding_factor
        x = max(0.0, self.x - pad_w)
        y = max(0.0, self.y - pad_h)
        right = min(float(frame_width), self.x + self.width + pad_w)
        bottom = min(float(frame_height), self.y + self.height + pad_h)
        return FaceBox(x=x, y=y, width=right - x, height=bottom - y)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'x': round(self.x, 1),
            'y': round(self.y, 1),
            'width': round(self.width, 1),
            'height': round(self.height, 1),
        }


@dataclass
class PredictionResult:
    """감정 추론 결과 (매 추론마다 새로 생성)"""

    emotion: str                      # 최고 확률 라벨
    score: float                      # 최고 확률 (또는 회귀 점수)
    probabilities: List[float] = field(default_factory=list)  # 라벨 인덱스 순서
    class_index: int = -1
    raw_logits: Optional[List[float]] = None
    raw_score: Optional[float] = None  # 회귀 모델 원본 점수
    model_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        result = {
            'emotion': self.emotion,
            'score': round(float(self.score), 4),
            'class_index': self.class_index,
            'probabilities': [round(float(p), 4) for p in self.probabilities],
            'model_id': self.model_id,
        }
        if self.raw_score is not None:
            result['raw_score'] = self.raw_score
        if self.error:
            result['error'] = self.error
        return result
