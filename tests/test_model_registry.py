"""모델 레지스트리 테스트"""

from emotion_face_analyzer.core.model_registry import DEFAULT_MODEL_ID, MODEL_CONFIGS, ModelRegistry
from emotion_face_analyzer.models import NormalizationType, OutputType


def test_default_model_is_active_initially():
    registry = ModelRegistry()

    assert registry.active_id == DEFAULT_MODEL_ID
    assert registry.get_active_config() is MODEL_CONFIGS[DEFAULT_MODEL_ID]


def test_unknown_model_keeps_current_active():
    registry = ModelRegistry()

    assert registry.set_active('does_not_exist') is False
    assert registry.active_id == DEFAULT_MODEL_ID
    assert registry.get_config('does_not_exist') is None


def test_set_active_and_clear():
    registry = ModelRegistry()

    assert registry.set_active('engagement_transformer_v1') is True
    assert registry.get_active_config().output_format.output_type == OutputType.REGRESSION

    registry.clear_active()
    assert registry.active_id is None
    assert registry.get_active_config() is None


def test_list_configs_keeps_registration_order():
    ids = [config.id for config in ModelRegistry().list_configs()]

    assert ids == ['ferplus_transformer_small_v1', 'emotion_transformer_v1', 'engagement_transformer_v1']
    assert 'emotion_transformer_v1' in ModelRegistry()


def test_unknown_default_falls_back_to_first_config():
    registry = ModelRegistry(default_model_id='missing')

    assert registry.preferred_default_id == 'ferplus_transformer_small_v1'


def test_builtin_model_settings():
    ferplus = MODEL_CONFIGS['ferplus_transformer_small_v1']
    engagement = MODEL_CONFIGS['engagement_transformer_v1']

    assert ferplus.normalization_type == NormalizationType.FERPLUS
    assert ferplus.input_format.resolved_shape == (1, 478, 3)
    assert ferplus.output_format.labels_in_order()[1] == 'Happiness'
    assert engagement.normalization_type == NormalizationType.DISTANCE
    assert engagement.output_format.primary_output == 'score'
    assert ferplus.to_dict()['tensor_shape'] == [1, 478, 3]


def test_classifiers_report_probabilities():
    for model_id in ('ferplus_transformer_small_v1', 'emotion_transformer_v1'):
        assert MODEL_CONFIGS[model_id].output_format.apply_softmax is True
