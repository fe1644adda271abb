"""추론 세션 관리자 테스트 (가짜 onnxruntime 세션 사용)"""

import numpy as np
import pytest

from conftest import FRAME_H, FRAME_W, FakeSession, logits_for
from emotion_face_analyzer.core.session_manager import run_session
from emotion_face_analyzer.models import SessionState
from emotion_face_analyzer.core.model_registry import MODEL_CONFIGS
from emotion_face_analyzer.utils.exceptions import InferenceError


def test_initialize_loads_default_model(make_manager):
    manager = make_manager()

    assert manager.initialize() is True
    assert manager.is_ready
    assert manager.state == SessionState.READY
    assert manager.get_active_model_info().id == 'ferplus_transformer_small_v1'
    assert manager.factory_calls == [(b'onnx-bytes', 'ferplus_transformer_small_v1')]


def test_switch_to_loaded_model_does_not_reload(make_manager):
    manager = make_manager()
    manager.initialize('emotion_transformer_v1')

    assert manager.switch_model('emotion_transformer_v1') is True
    assert len(manager.factory_calls) == 1


def test_switch_to_other_model_loads_it(make_manager):
    manager = make_manager()
    manager.initialize()

    assert manager.switch_model('engagement_transformer_v1') is True
    assert manager.get_active_model_info().id == 'engagement_transformer_v1'
    assert manager.registry.active_id == 'engagement_transformer_v1'


def test_switch_to_unknown_model_is_rejected(make_manager):
    manager = make_manager()
    manager.initialize()

    assert manager.switch_model('nope') is False
    assert manager.get_active_model_info().id == 'ferplus_transformer_small_v1'
    assert len(manager.factory_calls) == 1


def test_load_failure_clears_session_and_active_model(make_manager):
    def failing_factory(source, model_config, config):
        raise RuntimeError("bad model")

    manager = make_manager(factory=failing_factory)

    assert manager.initialize() is False
    assert manager.get_active_model_info() is None
    assert manager.registry.active_id is None
    assert manager.state == SessionState.FAILED
    assert not manager.is_ready


def test_no_resolvable_source_fails(make_manager):
    manager = make_manager(resolvers=[lambda filename: None])

    assert manager.initialize() is False
    assert manager.get_active_model_info() is None


def test_failed_switch_leaves_no_active_model(make_manager):
    def factory(source, model_config, config):
        if model_config.id == 'engagement_transformer_v1':
            raise RuntimeError("missing file")
        return FakeSession()

    manager = make_manager(factory=factory)
    manager.initialize()

    assert manager.switch_model('engagement_transformer_v1') is False
    assert manager.get_active_model_info() is None
    assert manager.registry.active_id is None


def test_predict_lazily_initializes(make_manager, fake_session, face_landmarks):
    manager = make_manager(session=fake_session)

    result = manager.predict(face_landmarks, FRAME_W, FRAME_H)

    assert result is not None
    assert result.emotion == 'Happiness'
    assert result.model_id == 'ferplus_transformer_small_v1'
    assert sum(result.probabilities) == pytest.approx(1.0, abs=1e-6)
    assert len(manager.factory_calls) == 1


def test_predict_feeds_normalized_tensor_with_model_shape(make_manager, fake_session, face_landmarks):
    manager = make_manager(session=fake_session)
    manager.initialize()

    manager.predict(face_landmarks, FRAME_W, FRAME_H)

    tensor = fake_session.feeds[0]['landmarks']
    assert tensor.shape == (1, 478, 3)
    assert tensor.dtype == np.float32
    # 코끝이 원점
    np.testing.assert_allclose(tensor[0, 1], [0.0, 0.0, 0.0], atol=1e-6)


def test_predict_returns_none_when_model_cannot_load(make_manager, face_landmarks):
    manager = make_manager(resolvers=[])

    assert manager.predict(face_landmarks, FRAME_W, FRAME_H) is None


def test_inference_error_returns_none(make_manager, face_landmarks):
    manager = make_manager(session=FakeSession(error=RuntimeError("kernel failure")))
    manager.initialize()

    assert manager.predict(face_landmarks, FRAME_W, FRAME_H) is None
    assert manager.is_ready


def test_invalid_frame_size_returns_none(make_manager, fake_session, face_landmarks):
    manager = make_manager(session=fake_session)
    manager.initialize()

    assert manager.predict(face_landmarks, 0, FRAME_H) is None
    assert manager.predict(face_landmarks, FRAME_W, float('nan')) is None
    assert fake_session.feeds == []


def test_regression_model_maps_score_to_bucket(make_manager, face_landmarks):
    session = FakeSession(outputs=[np.array([[0.5]], dtype=np.float32)], output_names=('score',))
    manager = make_manager(session=session)
    manager.initialize('engagement_transformer_v1')

    result = manager.predict(face_landmarks, FRAME_W, FRAME_H)

    assert result.emotion == 'Barely Engaged'
    assert result.score == pytest.approx(0.5)
    assert result.probabilities == [0.0, 1.0, 0.0, 0.0, 0.0]


def test_label_mismatch_is_reported_as_error_result(make_manager, face_landmarks):
    session = FakeSession(outputs=[np.zeros((1, 7), dtype=np.float32)])
    manager = make_manager(session=session)
    manager.initialize()

    result = manager.predict(face_landmarks, FRAME_W, FRAME_H)

    assert result.is_error
    assert result.emotion == 'Error: Label mismatch'


def test_prediction_from_replaced_session_is_discarded(make_manager, face_landmarks):
    holder = {}
    session = FakeSession(outputs=[logits_for(2)], on_run=lambda: holder['manager'].release())
    manager = make_manager(session=session)
    holder['manager'] = manager
    manager.initialize()

    assert manager.predict(face_landmarks, FRAME_W, FRAME_H) is None


def test_stale_load_is_discarded(make_manager):
    holder = {}

    def factory(source, model_config, config):
        # 로드 도중 새 요청이 들어온 상황
        holder['manager'].release()
        return FakeSession()

    manager = make_manager(factory=factory)
    holder['manager'] = manager

    assert manager.initialize() is False
    assert manager.get_active_model_info() is None


def test_reload_recreates_current_session(make_manager):
    manager = make_manager()
    manager.initialize('emotion_transformer_v1')

    assert manager.reload() is True
    assert manager.get_active_model_info().id == 'emotion_transformer_v1'
    assert len(manager.factory_calls) == 2


def test_get_all_models_without_loading(make_manager):
    manager = make_manager()

    assert len(manager.get_all_models()) == 3
    assert manager.factory_calls == []


def test_run_session_falls_back_to_first_output():
    session = FakeSession(outputs=[logits_for(0)], output_names=('output_0',))

    output = run_session(session, np.zeros((1, 478, 3), dtype=np.float32),
                         MODEL_CONFIGS['ferplus_transformer_small_v1'])

    np.testing.assert_array_equal(output, logits_for(0))


def test_run_session_wraps_runtime_errors():
    session = FakeSession(error=RuntimeError("boom"))

    with pytest.raises(InferenceError):
        run_session(session, np.zeros((1, 478, 3), dtype=np.float32),
                    MODEL_CONFIGS['ferplus_transformer_small_v1'])
