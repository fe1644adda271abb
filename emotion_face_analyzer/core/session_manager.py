"""
ONNX 추론 세션 관리자

단일 활성 세션과 그 세션이 바인딩된 ModelConfig를 소유한다.
initialize / switch_model / reload 만 상태를 변경하고 predict는 읽기만 한다.
"""

import threading
from typing import Any, Callable, List, Optional, Sequence

import numpy as np
import onnxruntime as ort

from ..models.landmark_models import PredictionResult, SessionState
from ..models.model_config import ModelConfig
from ..utils import get_config, get_logger
from ..utils.exceptions import InferenceError, ModelLoadError
from ..utils.validators import validate_frame_size
from .model_loader import ModelResolver, ModelSource, build_default_resolvers, load_first_success
from .model_registry import ModelRegistry
from .normalizer import LandmarkNormalizer
from .postprocessor import interpret_outputs
from .tensor_builder import build_input_tensor

logger = get_logger(__name__)

GRAPH_OPTIMIZATION_LEVELS = {
    'disable': ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
    'basic': ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
    'extended': ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
    'all': ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
}

SessionFactory = Callable[[ModelSource, ModelConfig, Any], Any]


def create_onnx_session(source: ModelSource, model_config: ModelConfig, config=None) -> ort.InferenceSession:
    """
    onnxruntime InferenceSession 생성

    실행 provider / 그래프 최적화 수준은 config.yaml inference 섹션을 기본으로,
    ModelConfig.processing_options가 있으면 그 값을 우선한다.
    """
    config = config or get_config()
    options = {
        'execution_providers': config.get('inference.execution_providers') or ['CPUExecutionProvider'],
        'graph_optimization_level': config.get('inference.graph_optimization_level', 'all'),
    }
    options.update(model_config.processing_options)

    session_options = ort.SessionOptions()
    level = str(options['graph_optimization_level']).lower()
    session_options.graph_optimization_level = GRAPH_OPTIMIZATION_LEVELS.get(
        level, ort.GraphOptimizationLevel.ORT_ENABLE_ALL
    )

    available = set(ort.get_available_providers())
    providers = [p for p in options['execution_providers'] if p in available] or ['CPUExecutionProvider']

    try:
        return ort.InferenceSession(source, sess_options=session_options, providers=providers)
    except Exception as e:
        raise ModelLoadError(f"Could not create session for '{model_config.id}': {e}") from e


def run_session(session: Any, tensor: np.ndarray, model_config: ModelConfig) -> np.ndarray:
    """
    세션 실행 후 해석 대상 출력 텐서 반환

    ModelConfig에 지정된 출력 이름이 없으면 첫 번째 출력을 사용한다.
    """
    input_name = session.get_inputs()[0].name
    output_names = [output.name for output in session.get_outputs()]

    try:
        outputs = session.run(None, {input_name: tensor})
    except Exception as e:
        raise InferenceError(f"Session run failed: {e}") from e

    primary = model_config.output_format.primary_output
    if primary in output_names:
        return np.asarray(outputs[output_names.index(primary)])

    logger.warning(f"Output '{primary}' not found in {output_names}, using the first output tensor.")
    return np.asarray(outputs[0])


class InferenceSessionManager:
    """
    추론 세션 수명 주기 관리

    - initialize(model_id): 대상 모델 결정 → resolver 체인으로 로드
    - switch_model(model_id): 이미 활성/로드 상태면 no-op
    - predict(landmarks, w, h): 정규화 → 텐서 → 추론 → 후처리
    - reload(): 현재 활성 모델로 재초기화

    initialize마다 generation이 증가하며, 더 새로운 initialize가 시작된 뒤
    끝난 로드나 추론 결과는 폐기된다 (마지막 요청 우선).
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        resolvers: Optional[Sequence[ModelResolver]] = None,
        session_factory: Optional[SessionFactory] = None,
        config=None
    ):
        """
        Args:
            registry: 모델 레지스트리 (None이면 기본 MODEL_CONFIGS)
            resolvers: 모델 파일 resolver 체인 (None이면 설정 파일 기반)
            session_factory: (source, model_config, config) → 세션
            config: Config 인스턴스 (None이면 전역 설정)
        """
        self.config = config or get_config()
        self.registry = registry or ModelRegistry(
            default_model_id=self.config.get('models.default_model_id')
        )
        self._resolvers = list(resolvers) if resolvers is not None else None
        self._session_factory = session_factory or create_onnx_session

        self._lock = threading.Lock()
        self._session = None
        self._model_config: Optional[ModelConfig] = None
        self._generation = 0
        self.state = SessionState.UNINITIALIZED

    @property
    def resolvers(self) -> List[ModelResolver]:
        if self._resolvers is None:
            self._resolvers = build_default_resolvers(self.config)
        return self._resolvers

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY and self._session is not None

    @property
    def generation(self) -> int:
        return self._generation

    def _resolve_target(self, model_id: Optional[str]) -> Optional[ModelConfig]:
        """명시 ID → 선호 기본 모델 → 현재 활성 모델 순으로 대상 결정"""
        if model_id:
            target = self.registry.get_config(model_id)
            if target is not None:
                return target
            logger.error(f"Failed to set active model to {model_id}. It might not exist.")
            return self.registry.get_active_config()

        if self.registry.preferred_default_id:
            target = self.registry.get_config(self.registry.preferred_default_id)
            if target is not None:
                logger.info(f"Defaulting to model: {target.id}")
                return target

        return self.registry.get_active_config()

    def initialize(self, model_id: Optional[str] = None) -> bool:
        """
        모델 초기화

        Args:
            model_id: 로드할 모델 ID (None이면 기본 모델)

        Returns:
            로드 성공 여부. 실패 시 세션과 활성 설정이 모두 해제된다.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            self.state = SessionState.LOADING
            self._session = None
            self._model_config = None

            target = self._resolve_target(model_id)
            if target is None:
                logger.error("No model configuration found or could be set.")
                self.registry.clear_active()
                self.state = SessionState.FAILED
                return False
            self.registry.set_active(target.id)

        logger.info(f"Initializing ONNX model: {target.name} (ID: {target.id})")

        session = load_first_success(
            self.resolvers,
            target.filename,
            lambda source: self._session_factory(source, target, self.config)
        )

        with self._lock:
            if generation != self._generation:
                logger.warning(
                    f"Discarding stale load of '{target.id}' "
                    f"(generation {generation}, current {self._generation})"
                )
                return False

            if session is None:
                logger.error(f"Failed to initialize ONNX model: {target.id}")
                self._session = None
                self._model_config = None
                self.registry.clear_active()
                self.state = SessionState.FAILED
                return False

            self._session = session
            self._model_config = target
            self.state = SessionState.READY

        try:
            logger.info(f"ONNX Session Input Names: {[i.name for i in session.get_inputs()]}")
            logger.info(f"ONNX Session Output Names: {[o.name for o in session.get_outputs()]}")
        except Exception as e:
            logger.debug(f"Could not read session metadata: {e}")
        logger.info(f"ONNX Model Class Labels: {target.output_format.class_labels}")
        return True

    def switch_model(self, model_id: str) -> bool:
        """
        모델 전환

        Returns:
            전환 성공 여부 (알 수 없는 ID면 False)
        """
        logger.info(f"Attempting to switch model to: {model_id}")
        if self.registry.get_config(model_id) is None:
            logger.error(f"Cannot switch: Model with ID '{model_id}' not found in configuration.")
            return False

        with self._lock:
            if self._model_config is not None and self._model_config.id == model_id and self._session is not None:
                logger.info(f"Model {model_id} is already active.")
                return True
            self.registry.clear_active()

        return self.initialize(model_id)

    def reload(self) -> bool:
        """현재 활성 모델로 세션 재생성 (손상/오래된 세션 복구용)"""
        with self._lock:
            model_id = self._model_config.id if self._model_config else self.registry.active_id
        logger.info(f"Reloading model: {model_id}")
        self.release()
        return self.initialize(model_id)

    def release(self):
        """세션 해제 (진행 중인 추론 결과는 폐기됨)"""
        with self._lock:
            self._generation += 1
            self._session = None
            self._model_config = None
            self.state = SessionState.UNINITIALIZED

    def predict(self, landmarks: Any, width: float, height: float) -> Optional[PredictionResult]:
        """
        랜드마크로 감정 추론

        Args:
            landmarks: 단일 프레임 랜드마크 (정규화 프레임 좌표)
            width: 프레임 너비 (픽셀)
            height: 프레임 높이 (픽셀)

        Returns:
            PredictionResult, 어느 단계든 실패하면 None
        """
        with self._lock:
            session, model_config, generation = self._session, self._model_config, self._generation

        if session is None or model_config is None:
            logger.info("ONNX session not initialized, attempting lazy initialization.")
            if not self.initialize():
                return None
            with self._lock:
                session, model_config, generation = self._session, self._model_config, self._generation
            if session is None or model_config is None:
                return None

        try:
            validate_frame_size(width, height)
            normalized = LandmarkNormalizer.normalize(
                landmarks, width, height, model_config.normalization_type
            )
        except Exception as e:
            logger.error(f"Landmark normalization failed: {e}")
            return None

        try:
            tensor = build_input_tensor(normalized, model_config.input_format)
        except Exception as e:
            logger.error(f"Tensor construction failed: {e}")
            return None

        try:
            output = run_session(session, tensor, model_config)
        except Exception as e:
            logger.error(f"Error during ONNX inference: {e}", exc_info=True)
            return None

        try:
            result = interpret_outputs(output, model_config.output_format)
        except Exception as e:
            logger.error(f"Output post-processing failed: {e}")
            return None
        result.model_id = model_config.id

        with self._lock:
            if generation != self._generation:
                logger.warning(f"Discarding prediction from replaced session ({model_config.id})")
                return None

        return result

    def get_active_model_info(self) -> Optional[ModelConfig]:
        """로드된 모델 설정 (없으면 None)"""
        return self._model_config

    def get_all_models(self) -> List[ModelConfig]:
        """등록된 전체 모델 설정"""
        return self.registry.list_configs()
