"""
Emotion Monitor
프레임 단위 랜드마크 결과를 받아 추론 → 표시까지 연결하는 컨트롤러

Flow:
- 검출 결과 수신 (프레임당 1회 호출)
- 전체 프레임 추론 (interval_ms 간격으로 throttle)
- 얼굴 박스/라벨 오버레이
- 얼굴 close-up crop + 확대 추론 (zoom_interval_ms 간격)
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Set, Tuple

import cv2
import numpy as np

from ..models.landmark_models import FaceBox, PredictionResult
from ..models.model_config import OutputType
from ..utils import get_config, get_logger
from .constants import DEFAULT_EMOTION_COLOR, EMOTION_COLORS
from .face_crop import FaceCloseUpStage
from .normalizer import LandmarkNormalizer
from .postprocessor import best_retained, display_probabilities
from .session_manager import InferenceSessionManager

logger = get_logger(__name__)


class Throttle:
    """마지막 실행 시각 기준 최소 간격 게이트"""

    def __init__(self, interval_s: float, clock: Callable[[], float] = time.monotonic):
        self.interval_s = interval_s
        self.clock = clock
        self.last_run: Optional[float] = None

    def ready(self) -> bool:
        """간격이 지났으면 실행 시각을 갱신하고 True"""
        now = self.clock()
        if self.last_run is None or now - self.last_run >= self.interval_s:
            self.last_run = now
            return True
        return False

    def reset(self):
        self.last_run = None


@dataclass
class MonitorFrame:
    """프레임 처리 결과"""

    image: Optional[np.ndarray]
    face_detected: bool = False
    emotion: Optional[str] = None
    score: Optional[float] = None
    probabilities: List[Tuple[str, float]] = field(default_factory=list)
    zoom_probabilities: List[Tuple[str, float]] = field(default_factory=list)
    close_up: Optional[bytes] = None
    face_box: Optional[FaceBox] = None
    inference_ran: bool = False
    zoom_inference_ran: bool = False


class EmotionMonitor:
    """
    실시간 감정 모니터 컨트롤러

    Features:
    - 전체 프레임 / 확대 crop 추론을 각각 독립 throttle로 제한
    - 제외 감정(ignored emotions) 필터 + 재정규화 표시
    - OpenCV 오버레이 (감정별 색상 박스, 라벨, 확률 패널)
    """

    def __init__(
        self,
        session_manager: InferenceSessionManager,
        close_up_stage: Optional[FaceCloseUpStage] = None,
        config=None,
        clock: Callable[[], float] = time.monotonic,
        inference_interval_s: Optional[float] = None,
        zoom_interval_s: Optional[float] = None,
        enable_zoom: Optional[bool] = None,
        roi_normalization: Optional[bool] = None
    ):
        """
        Args:
            session_manager: 추론 세션 관리자
            close_up_stage: 얼굴 crop 단계 (None이면 설정 파일 기준 생성)
            config: Config 인스턴스 (None이면 전역 설정)
            clock: 현재 시각 함수 (초)
            inference_interval_s: 전체 프레임 추론 간격 (None이면 설정 값)
            zoom_interval_s: 확대 추론 간격 (None이면 설정 값)
            enable_zoom: 확대 추론 활성화 여부
            roi_normalization: 얼굴 박스 기준 좌표로 변환 후 추론할지 여부
        """
        self.config = config or get_config()
        self.session_manager = session_manager
        self.close_up_stage = close_up_stage or FaceCloseUpStage()
        self.clock = clock

        if inference_interval_s is None:
            inference_interval_s = self.config.get('inference.interval_ms', 1000) / 1000.0
        if zoom_interval_s is None:
            zoom_interval_s = self.config.get('inference.zoom_interval_ms', 1500) / 1000.0

        self.inference_throttle = Throttle(inference_interval_s, clock)
        self.zoom_throttle = Throttle(zoom_interval_s, clock)
        self.enable_zoom = (self.config.get('inference.enable_zoom_predictions', True)
                            if enable_zoom is None else enable_zoom)
        self.roi_normalization = (self.config.get('inference.roi_normalization', False)
                                  if roi_normalization is None else roi_normalization)
        self.filter_ignored = self.config.get('display.filter_ignored', True)
        self.show_probabilities = self.config.get('display.show_probabilities', True)
        self.box_thickness = int(self.config.get('display.box_thickness', 3))

        self.is_active = bool(self.config.get('inference.enabled', True))
        self.ignored_emotions: Set[str] = set()

        # 마지막 표시 상태
        self.detected_emotion: Optional[str] = None
        self.emotion_score: Optional[float] = None
        self.all_probabilities: List[Tuple[str, float]] = []
        self.zoom_probabilities: List[Tuple[str, float]] = []
        self.close_up: Optional[bytes] = None

        self._inference_lock = threading.Lock()

        # FPS 측정
        self._fps_interval = float(self.config.get('display.fps_log_interval_s', 5.0))
        self._frame_count = 0
        self._last_fps_time = clock()
        self.fps = 0.0

    # ------------------------------------------------------------------ #
    # 사용자 조작
    # ------------------------------------------------------------------ #

    def toggle_ignore(self, label: str) -> bool:
        """
        감정 라벨 제외 토글

        Returns:
            토글 후 제외 상태 여부
        """
        if label in self.ignored_emotions:
            self.ignored_emotions.discard(label)
            return False
        self.ignored_emotions.add(label)
        return True

    def set_active(self, active: bool):
        self.is_active = active
        logger.info(f"Inference {'enabled' if active else 'paused'}")

    def switch_model(self, model_id: str) -> bool:
        """모델 전환 후 표시 상태와 throttle 초기화"""
        ok = self.session_manager.switch_model(model_id)
        self.clear_state()
        self.inference_throttle.reset()
        self.zoom_throttle.reset()
        return ok

    def retry(self) -> bool:
        """세션이 준비되지 않았으면 다시 초기화"""
        self.clear_state()
        if self.session_manager.is_ready:
            return True
        ok = self.session_manager.reload()
        if not ok:
            logger.error("Failed to re-initialize ONNX model")
        return ok

    def clear_state(self):
        """얼굴이 없을 때 표시 상태 초기화"""
        self.detected_emotion = None
        self.emotion_score = None
        self.zoom_probabilities = []
        self.close_up = None

    def current_labels(self) -> List[str]:
        info = self.session_manager.get_active_model_info()
        return info.output_format.labels_in_order() if info else []

    def get_display_probabilities(self, zoom: bool = False) -> List[Tuple[str, float]]:
        """표시용 확률 목록 (filter_ignored면 제외 감정 재정규화)"""
        source = self.zoom_probabilities if zoom else self.all_probabilities
        if not source:
            return []
        labels = [label for label, _ in source]
        probs = [p for _, p in source]
        return display_probabilities(probs, labels, self.ignored_emotions, filtered=self.filter_ignored)

    # ------------------------------------------------------------------ #
    # 프레임 처리
    # ------------------------------------------------------------------ #

    def _update_fps(self):
        self._frame_count += 1
        now = self.clock()
        elapsed = now - self._last_fps_time
        if elapsed >= self._fps_interval:
            self.fps = self._frame_count / elapsed if elapsed > 0 else 0.0
            logger.info(f"Camera FPS: {self.fps:.2f}")
            self._frame_count = 0
            self._last_fps_time = now

    def handle_results(self, frame: Optional[np.ndarray], multi_face_landmarks: Optional[Sequence[Any]]) -> MonitorFrame:
        """
        검출기 결과 1회분 처리

        Args:
            frame: BGR 프레임 (H, W, 3)
            multi_face_landmarks: 얼굴별 랜드마크 목록 (첫 번째 얼굴만 사용)

        Returns:
            MonitorFrame (오버레이가 그려진 이미지 포함)
        """
        self._update_fps()

        if frame is None or not multi_face_landmarks:
            self.clear_state()
            return MonitorFrame(image=frame)

        landmarks = multi_face_landmarks[0]
        frame_h, frame_w = frame.shape[:2]
        result = MonitorFrame(image=frame.copy(), face_detected=True)

        if self.is_active and self.session_manager.is_ready and self.inference_throttle.ready():
            result.inference_ran = self._run_full_inference(landmarks, frame_w, frame_h)

        tight_box = LandmarkNormalizer.face_bounding_box(landmarks, frame_w, frame_h)
        if tight_box is None:
            result.emotion, result.score = self.detected_emotion, self.emotion_score
            return result

        padded_box = tight_box.padded(self.close_up_stage.padding_factor, frame_w, frame_h)
        result.face_box = padded_box
        self._draw_overlay(result.image, padded_box)

        if not padded_box.is_empty:
            try:
                self.close_up = self.close_up_stage.process(frame, tight_box)
            except Exception as e:
                logger.error(f"FaceCloseUpStage crop error: {e}")

            if (self.enable_zoom and self.session_manager.is_ready
                    and self.zoom_throttle.ready()):
                result.zoom_inference_ran = self._run_zoom_inference(landmarks, padded_box, frame_w, frame_h)

        if self.show_probabilities:
            self._draw_probability_panel(result.image, self.get_display_probabilities())

        result.emotion = self.detected_emotion
        result.score = self.emotion_score
        result.probabilities = self.get_display_probabilities()
        result.zoom_probabilities = self.get_display_probabilities(zoom=True)
        result.close_up = self.close_up
        return result

    def _apply_prediction(self, prediction: Optional[PredictionResult]):
        if prediction is None:
            self.detected_emotion = 'Error'
            self.emotion_score = None
            return

        if prediction.is_error:
            self.detected_emotion = prediction.emotion
            self.emotion_score = None
            return

        labels = self.current_labels()
        self.all_probabilities = list(zip(labels, prediction.probabilities))

        info = self.session_manager.get_active_model_info()
        if info is not None and info.output_format.output_type == OutputType.REGRESSION:
            self.detected_emotion = prediction.emotion
            self.emotion_score = prediction.score
            return

        best = best_retained(prediction.probabilities, labels, self.ignored_emotions)
        if best is None:
            self.detected_emotion, self.emotion_score = prediction.emotion, prediction.score
        else:
            self.detected_emotion, self.emotion_score = best

    def _run_full_inference(self, landmarks: Any, frame_w: int, frame_h: int) -> bool:
        if not self._inference_lock.acquire(blocking=False):
            logger.debug("Inference already in progress, skipping frame")
            return False

        try:
            landmarks_for_prediction = landmarks
            width, height = frame_w, frame_h

            if self.roi_normalization:
                roi = LandmarkNormalizer.face_bounding_box(landmarks, frame_w, frame_h)
                if roi is not None and not roi.is_empty:
                    landmarks_for_prediction = LandmarkNormalizer.to_box_relative(
                        landmarks, roi, frame_w, frame_h
                    )
                    width, height = roi.width, roi.height
                    logger.debug(f"ROI normalization applied: {roi.to_dict()}")
                else:
                    logger.debug(f"ROI normalization skipped: invalid ROI {roi}")

            prediction = self.session_manager.predict(landmarks_for_prediction, width, height)
            logger.debug(f"Full frame prediction: {prediction.to_dict() if prediction else None}")
            self._apply_prediction(prediction)
        except Exception as e:
            logger.error(f"Error predicting emotion: {e}", exc_info=True)
            self.detected_emotion = 'Error'
            self.emotion_score = None
        finally:
            self._inference_lock.release()
        return True

    def _run_zoom_inference(self, landmarks: Any, box: FaceBox, frame_w: int, frame_h: int) -> bool:
        if not self._inference_lock.acquire(blocking=False):
            return False

        try:
            zoom_landmarks = LandmarkNormalizer.to_box_relative(
                landmarks, box, frame_w, frame_h, rescale_z=True
            )
            prediction = self.session_manager.predict(zoom_landmarks, box.width, box.height)
            if prediction is None or prediction.is_error:
                self.zoom_probabilities = []
            else:
                self.zoom_probabilities = list(zip(self.current_labels(), prediction.probabilities))
        except Exception as e:
            logger.error(f"Zoom prediction error: {e}")
        finally:
            self._inference_lock.release()
        return True

    # ------------------------------------------------------------------ #
    # 오버레이
    # ------------------------------------------------------------------ #

    def _draw_overlay(self, image: np.ndarray, box: FaceBox):
        """감정 색상 박스와 라벨 그리기"""
        color = EMOTION_COLORS.get(self.detected_emotion, DEFAULT_EMOTION_COLOR)
        x0, y0 = int(box.x), int(box.y)
        x1, y1 = int(box.x + box.width), int(box.y + box.height)
        cv2.rectangle(image, (x0, y0), (x1, y1), color, self.box_thickness)

        if not self.detected_emotion:
            return

        font = cv2.FONT_HERSHEY_SIMPLEX
        font_scale = max(0.6, min(1.2, box.width / 250.0))
        score_text = f"{self.emotion_score * 100:.1f}%" if self.emotion_score is not None else "N/A"
        text = f"{self.detected_emotion} {score_text}"

        (text_w, text_h), baseline = cv2.getTextSize(text, font, font_scale, 2)
        label_h = text_h + baseline + 10
        label_top = y0 - label_h if y0 - label_h >= 0 else y1
        label_right = max(x1, x0 + text_w + 10)

        cv2.rectangle(image, (x0, label_top), (label_right, label_top + label_h), (0, 0, 0), -1)
        cv2.rectangle(image, (x0, label_top), (label_right, label_top + label_h), color, 2)
        cv2.putText(image, text, (x0 + 5, label_top + text_h + 5), font, font_scale, color, 2, cv2.LINE_AA)

    def _draw_probability_panel(self, image: np.ndarray, probabilities: List[Tuple[str, float]]):
        """좌측 상단 확률 막대"""
        if not probabilities:
            return
        bar_max = 150
        for i, (label, prob) in enumerate(probabilities):
            y = 20 + i * 22
            color = EMOTION_COLORS.get(label, DEFAULT_EMOTION_COLOR)
            cv2.rectangle(image, (10, y), (10 + int(bar_max * prob), y + 14), color, -1)
            cv2.putText(image, f"{label}: {prob * 100:.1f}%", (15 + bar_max, y + 12),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.45, (255, 255, 255), 1, cv2.LINE_AA)
