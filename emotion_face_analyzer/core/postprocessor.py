"""모델 출력 후처리 (softmax, 점수 구간 매핑, 제외 감정 재정규화)"""

import math
from typing import Collection, List, Optional, Sequence, Tuple

import numpy as np

from ..models.landmark_models import PredictionResult
from ..models.model_config import OutputFormat, OutputType
from ..utils import get_logger

logger = get_logger(__name__)

LABEL_MISMATCH = "Error: Label mismatch"


def softmax(logits: Sequence[float]) -> np.ndarray:
    """수치적으로 안정적인 softmax (최대값을 빼고 지수화)"""
    values = np.asarray(logits, dtype=np.float64).ravel()
    if values.size == 0:
        return values
    exps = np.exp(values - values.max())
    return exps / exps.sum()


def map_logits_to_result(logits: Sequence[float], output_format: OutputFormat) -> PredictionResult:
    """
    분류 모델 출력(logits 또는 확률)을 PredictionResult로 변환

    Args:
        logits: 모델 출력 벡터
        output_format: 모델 출력 형식 (softmax 적용 여부, 라벨)

    Returns:
        PredictionResult (라벨 수와 확률 수가 다르면 error 결과)
    """
    raw = np.asarray(logits, dtype=np.float64).ravel()
    if raw.size == 0 or not np.isfinite(raw).all():
        logger.error("Classification output is empty or contains non-finite values")
        return PredictionResult(
            emotion="Classification Failed",
            score=0.0,
            raw_logits=raw.tolist(),
            error="invalid logits",
        )

    probabilities = softmax(raw) if output_format.apply_softmax else raw

    if output_format.num_classes != probabilities.size:
        logger.error(
            f"Class labels mismatch: {output_format.num_classes} labels, "
            f"{probabilities.size} outputs"
        )
        return PredictionResult(
            emotion=LABEL_MISMATCH,
            score=0.0,
            probabilities=probabilities.tolist(),
            raw_logits=raw.tolist(),
            error="label/probability length mismatch",
        )

    class_index = int(np.argmax(probabilities))
    return PredictionResult(
        emotion=output_format.label_for(class_index),
        score=float(probabilities[class_index]),
        probabilities=probabilities.tolist(),
        class_index=class_index,
        raw_logits=raw.tolist(),
    )


def map_score_to_result(score: float, output_format: OutputFormat) -> PredictionResult:
    """
    회귀 점수를 구간 테이블로 라벨에 매핑

    점수는 [0, 1]로 clamp 후 [lower, upper) 구간에 매핑하며,
    마지막 구간만 상한(1.0)을 포함한다.
    """
    try:
        value = float(score)
    except (TypeError, ValueError):
        value = math.nan

    if not math.isfinite(value):
        logger.error(f"Regression score is not finite: {score}")
        return PredictionResult(emotion="Prediction Failed", score=0.0, raw_score=None,
                                error="invalid score")

    clamped = min(1.0, max(0.0, value))
    buckets = output_format.score_buckets
    class_index = -1
    for i, bucket in enumerate(buckets):
        if bucket.contains(clamped, inclusive_upper=(i == len(buckets) - 1)):
            class_index = bucket.class_index
            break

    if class_index == -1:
        logger.error(f"Score {clamped} does not fall into any bucket")
        return PredictionResult(emotion="Score Mapping Error", score=clamped, raw_score=value,
                                error="score mapping error")

    probabilities = [0.0] * output_format.num_classes
    ordered = sorted(output_format.class_labels)
    probabilities[ordered.index(class_index)] = 1.0

    return PredictionResult(
        emotion=output_format.label_for(class_index),
        score=clamped,
        probabilities=probabilities,
        class_index=class_index,
        raw_score=value,
    )


def interpret_outputs(output: Sequence[float], output_format: OutputFormat) -> PredictionResult:
    """출력 형식에 따라 분류/회귀 해석 선택"""
    if output_format.output_type == OutputType.REGRESSION:
        values = np.asarray(output, dtype=np.float64).ravel()
        if values.size == 0:
            return map_score_to_result(math.nan, output_format)
        return map_score_to_result(values[0], output_format)
    return map_logits_to_result(output, output_format)


def renormalize_ignored(
    probabilities: Sequence[float],
    labels: Sequence[str],
    ignored: Collection[str]
) -> List[Optional[float]]:
    """
    제외 감정을 빼고 남은 확률만 합이 1이 되도록 재정규화

    Args:
        probabilities: 라벨 인덱스 순서의 확률
        labels: 확률과 같은 순서의 라벨
        ignored: 제외할 라벨 집합

    Returns:
        입력과 같은 길이의 리스트 (제외된 항목은 None).
        남는 항목이 없거나 합이 0이면 원본 확률을 그대로 반환
    """
    original = [float(p) for p in probabilities]
    retained = [i for i, label in enumerate(labels[:len(original)]) if label not in ignored]
    if not retained:
        return original

    total = sum(original[i] for i in retained)
    if total <= 0:
        return original

    result: List[Optional[float]] = [None] * len(original)
    for i in retained:
        result[i] = original[i] / total
    return result


def display_probabilities(
    probabilities: Sequence[float],
    labels: Sequence[str],
    ignored: Collection[str] = (),
    filtered: bool = True
) -> List[Tuple[str, float]]:
    """
    표시용 (라벨, 확률) 목록 (확률 내림차순)

    filtered=True면 제외 감정을 빼고 재정규화한 값을 사용한다.
    """
    values = renormalize_ignored(probabilities, labels, ignored) if filtered else list(probabilities)
    pairs = [(label, float(p)) for label, p in zip(labels, values) if p is not None]
    return sorted(pairs, key=lambda item: item[1], reverse=True)


def best_retained(
    probabilities: Sequence[float],
    labels: Sequence[str],
    ignored: Collection[str] = ()
) -> Optional[Tuple[str, float]]:
    """제외 감정을 뺀 재정규화 확률 중 최댓값 (라벨, 확률)"""
    ranked = display_probabilities(probabilities, labels, ignored, filtered=True)
    return ranked[0] if ranked else None
