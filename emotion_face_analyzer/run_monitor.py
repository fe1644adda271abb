#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Realtime Emotion Monitor
카메라(또는 동영상) 프레임 → MediaPipe FaceMesh → ONNX 감정 추론 → OpenCV 표시

Keys:
- q: 종료
- m: 다음 모델로 전환
- r: 모델 재로드
- p: 추론 일시정지/재개
- 1-8: 해당 순번 감정 제외 토글
"""

import time

import cv2
import numpy as np

from .core.emotion_monitor import EmotionMonitor
from .core.face_detector import FaceMeshDetector
from .core.session_manager import InferenceSessionManager
from .utils import get_config, get_logger

logger = get_logger(__name__)


class RealtimeEmotionViewer:
    """
    실시간 감정 모니터 뷰어

    Features:
    - cv2.VideoCapture 입력 (카메라 인덱스 또는 파일 경로)
    - 얼굴 close-up 미리보기 창
    - 키보드로 모델 전환 / 재로드 / 감정 제외
    """

    def __init__(self, source, model_id: str = None, show_close_up: bool = True):
        """
        Args:
            source: 카메라 인덱스(int) 또는 동영상 파일 경로
            model_id: 시작 모델 ID (None이면 기본 모델)
            show_close_up: 얼굴 close-up 창 표시 여부
        """
        self.config = get_config()
        self.source = source
        self.model_id = model_id
        self.show_close_up = show_close_up

        self.window_name = self.config.get('display.window_name', 'Emotion Monitor')
        self.session_manager = InferenceSessionManager(config=self.config)
        self.monitor = EmotionMonitor(self.session_manager, config=self.config)
        self.detector = None

        self.frames_processed = 0
        self.start_time = None

    def cycle_model(self):
        """등록 순서상 다음 모델로 전환"""
        models = self.session_manager.get_all_models()
        if not models:
            return
        current = self.session_manager.get_active_model_info()
        ids = [m.id for m in models]
        next_index = (ids.index(current.id) + 1) % len(ids) if current and current.id in ids else 0
        print(f"🔄 Switching model → {ids[next_index]}")
        self.monitor.switch_model(ids[next_index])

    def toggle_label(self, position: int):
        labels = self.monitor.current_labels()
        if 0 <= position < len(labels):
            ignored = self.monitor.toggle_ignore(labels[position])
            print(f"{'🚫 Ignoring' if ignored else '✅ Showing'}: {labels[position]}")

    def handle_key(self, key: int) -> bool:
        """
        키 입력 처리

        Returns:
            계속 실행 여부
        """
        if key == ord('q'):
            print("\n⏹️  Quit requested")
            return False
        if key == ord('m'):
            self.cycle_model()
        elif key == ord('r'):
            print("🔁 Reloading model...")
            self.monitor.retry()
        elif key == ord('p'):
            self.monitor.set_active(not self.monitor.is_active)
        elif ord('1') <= key <= ord('8'):
            self.toggle_label(key - ord('1'))
        return True

    def run(self):
        """메인 실행 루프"""
        print("=" * 80)
        print("  Realtime Emotion Monitor")
        print("=" * 80)
        print(f"Source: {self.source}")
        print("Keys: q=quit, m=next model, r=reload, p=pause, 1-8=toggle emotion")
        print("=" * 80)

        if not self.session_manager.initialize(self.model_id):
            print("⚠️  Model could not be loaded. Press 'r' to retry.")

        capture = cv2.VideoCapture(self.source)
        if not capture.isOpened():
            logger.error(f"Cannot open video source: {self.source}")
            print(f"❌ Cannot open video source: {self.source}")
            return

        self.detector = FaceMeshDetector()
        self.start_time = time.time()

        try:
            while True:
                ok, frame = capture.read()
                if not ok:
                    print("\n📼 End of stream")
                    break

                faces = self.detector.detect(frame)
                result = self.monitor.handle_results(frame, faces)
                self.frames_processed += 1

                cv2.imshow(self.window_name, result.image)
                if self.show_close_up and result.close_up is not None:
                    close_up = cv2.imdecode(
                        np.frombuffer(result.close_up, dtype=np.uint8),
                        cv2.IMREAD_COLOR
                    )
                    if close_up is not None:
                        cv2.imshow(f"{self.window_name} - Close-up", close_up)

                if not self.handle_key(cv2.waitKey(1) & 0xFF):
                    break

        except KeyboardInterrupt:
            print("\n\n⚠️  Keyboard interrupt")
        finally:
            capture.release()
            if self.detector is not None:
                self.detector.close()
            cv2.destroyAllWindows()
            self.session_manager.release()

            if self.frames_processed > 0 and self.start_time:
                total_time = time.time() - self.start_time
                print("\n" + "=" * 80)
                print("  Session Statistics")
                print("=" * 80)
                print(f"Total frames: {self.frames_processed}")
                print(f"Average FPS: {self.frames_processed / total_time:.2f}")
                print("=" * 80)


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Realtime facial emotion monitor')
    parser.add_argument('--source', default='0', help='Camera index or video file path (default: 0)')
    parser.add_argument('--model', help='Model ID to load (default: from config)')
    parser.add_argument('--no-close-up', action='store_true', help='Hide the face close-up window')
    parser.add_argument('--list-models', action='store_true', help='Print registered models and exit')

    args = parser.parse_args()

    if args.list_models:
        for model in InferenceSessionManager().get_all_models():
            print(f"{model.id:32s} {model.name} ({model.filename})")
        return

    source = int(args.source) if args.source.isdigit() else args.source

    viewer = RealtimeEmotionViewer(
        source=source,
        model_id=args.model,
        show_close_up=not args.no_close_up
    )
    viewer.run()


if __name__ == "__main__":
    main()
