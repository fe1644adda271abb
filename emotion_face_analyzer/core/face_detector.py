"""MediaPipe FaceMesh 기반 얼굴 랜드마크 검출기"""

import time
from typing import List

import cv2
import mediapipe as mp
import numpy as np

from ..models.landmark_models import Landmark
from ..utils import get_config, get_logger
from ..utils.validators import validate_image

logger = get_logger(__name__)


class FaceMeshDetector:
    """MediaPipe FaceMesh 기반 얼굴 검출기 (refine_landmarks=True → 478개)"""

    def __init__(self):
        """초기화"""
        self.config = get_config()

        mp_config = self.config.mediapipe.detection

        try:
            self.face_mesh = mp.solutions.face_mesh.FaceMesh(
                static_image_mode=mp_config.static_image_mode,
                max_num_faces=mp_config.max_num_faces,
                refine_landmarks=mp_config.refine_landmarks,
                min_detection_confidence=mp_config.min_detection_confidence,
                min_tracking_confidence=mp_config.min_tracking_confidence
            )
            logger.info("MediaPipe FaceMesh initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize MediaPipe FaceMesh: {e}")
            raise

        self.last_processing_time = 0.0

    def detect(self, image: np.ndarray) -> List[List[Landmark]]:
        """
        이미지에서 얼굴 랜드마크 검출

        Args:
            image: BGR 형식 이미지 (H, W, 3)

        Returns:
            얼굴별 Landmark 리스트 (검출 실패 시 빈 리스트)
        """
        validate_image(image)
        start_time = time.time()

        # BGR → RGB 변환 (MediaPipe 요구사항)
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB) if len(image.shape) == 3 else image
        results = self.face_mesh.process(image_rgb)

        self.last_processing_time = (time.time() - start_time) * 1000  # ms

        if not results.multi_face_landmarks:
            logger.debug("No face detected")
            return []

        faces = []
        for face_landmarks in results.multi_face_landmarks:
            faces.append([Landmark(x=lm.x, y=lm.y, z=lm.z) for lm in face_landmarks.landmark])

        logger.debug(f"Detected {len(faces)} face(s), {len(faces[0])} landmarks")
        return faces

    def close(self):
        """리소스 해제"""
        if hasattr(self, 'face_mesh'):
            self.face_mesh.close()
            logger.debug("MediaPipe FaceMesh closed")
