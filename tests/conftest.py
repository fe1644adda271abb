"""공용 테스트 fixture (모델 파일/카메라 없이 동작)"""

from types import SimpleNamespace

import numpy as np
import pytest

from emotion_face_analyzer.core.constants import NUM_LANDMARKS
from emotion_face_analyzer.core.model_registry import ModelRegistry
from emotion_face_analyzer.core.session_manager import InferenceSessionManager
from emotion_face_analyzer.models import Landmark

FRAME_W = 640
FRAME_H = 480


class FakeSession:
    """onnxruntime.InferenceSession 대역"""

    def __init__(self, outputs=None, output_names=('logits', 'embedding'), on_run=None, error=None):
        self.outputs = outputs if outputs is not None else [np.zeros((1, 8), dtype=np.float32)]
        self.output_names = list(output_names)
        self.on_run = on_run
        self.error = error
        self.feeds = []

    def get_inputs(self):
        return [SimpleNamespace(name='landmarks')]

    def get_outputs(self):
        return [SimpleNamespace(name=name) for name in self.output_names]

    def run(self, output_names, feed):
        self.feeds.append(feed)
        if self.on_run is not None:
            self.on_run()
        if self.error is not None:
            raise self.error
        return self.outputs


def make_face_landmarks():
    """0.3-0.7 범위 격자 + 정규화 기준점이 고정된 478개 랜드마크"""
    points = []
    for i in range(NUM_LANDMARKS):
        x = 0.3 + 0.4 * (i % 22) / 21
        y = 0.3 + 0.4 * (i // 22) / 21
        points.append([x, y, 0.0])

    points[1] = [0.5, 0.5, 0.0]      # nose tip
    points[133] = [0.45, 0.45, 0.0]  # left inner eye corner
    points[362] = [0.55, 0.45, 0.0]  # right inner eye corner
    points[4] = [0.5, 0.52, 0.0]     # nose center
    points[33] = [0.4, 0.45, 0.0]    # left outer eye corner
    points[263] = [0.6, 0.45, 0.0]   # right outer eye corner
    return [Landmark(x=x, y=y, z=z) for x, y, z in points]


def logits_for(index, num_classes=8, high=5.0):
    logits = np.zeros((1, num_classes), dtype=np.float32)
    logits[0, index] = high
    return logits


@pytest.fixture
def face_landmarks():
    return make_face_landmarks()


@pytest.fixture
def fake_session():
    return FakeSession(outputs=[logits_for(1), np.zeros((1, 16), dtype=np.float32)])


@pytest.fixture
def make_manager():
    """세션 factory 호출을 기록하는 InferenceSessionManager 생성기"""

    def _make(session=None, factory=None, resolvers=None):
        calls = []

        def default_factory(source, model_config, config):
            calls.append((source, model_config.id))
            return session if session is not None else FakeSession()

        manager = InferenceSessionManager(
            registry=ModelRegistry(),
            resolvers=resolvers if resolvers is not None else [lambda filename: b'onnx-bytes'],
            session_factory=factory or default_factory,
        )
        manager.factory_calls = calls
        return manager

    return _make


class FakeClock:
    """수동으로 진행시키는 시계"""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
