"""얼굴 영역 확대(close-up) crop 단계"""

import base64
from typing import Optional

import cv2
import numpy as np

from ..models.landmark_models import FaceBox
from ..utils import get_config, get_logger
from ..utils.exceptions import EmotionAnalyzerException
from ..utils.validators import validate_image

logger = get_logger(__name__)


class FaceCloseUpStage:
    """
    얼굴 박스 주변을 패딩 → crop → 고정 너비로 리사이즈

    - 패딩: 박스 너비/높이의 padding_factor 비율, 프레임 경계로 clamp
    - 출력 높이: 종횡비 유지, 최소 1px
    """

    def __init__(
        self,
        output_width: Optional[int] = None,
        padding_factor: Optional[float] = None,
        jpeg_quality: Optional[int] = None,
        debug: bool = False
    ):
        """
        Args:
            output_width: 출력 이미지 너비 (None이면 설정 파일 값)
            padding_factor: 박스 대비 패딩 비율 (None이면 설정 파일 값)
            jpeg_quality: JPEG 인코딩 품질 (0-100)
            debug: 상세 로그 출력 여부
        """
        config = get_config()
        self.output_width = int(output_width if output_width is not None
                                else config.get('face_crop.output_width', 256))
        self.padding_factor = float(padding_factor if padding_factor is not None
                                    else config.get('face_crop.padding_factor', 0.2))
        self.jpeg_quality = int(jpeg_quality if jpeg_quality is not None
                                else config.get('face_crop.jpeg_quality', 90))
        self.debug = debug

        if self.output_width < 1:
            raise ValueError(f"output_width must be >= 1, got {self.output_width}")

    def crop(self, image: np.ndarray, face_box: Optional[FaceBox]) -> Optional[np.ndarray]:
        """
        패딩된 얼굴 영역을 잘라 리사이즈

        Args:
            image: BGR 프레임 (H, W, 3)
            face_box: 픽셀 좌표 얼굴 박스

        Returns:
            (out_h, output_width, C) 이미지, 박스가 없거나 비어 있으면 None
        """
        if face_box is None:
            if self.debug:
                logger.debug("No face box provided, skipping crop")
            return None
        if face_box.is_empty:
            logger.debug(f"Empty face box, skipping crop: {face_box}")
            return None

        validate_image(image)
        frame_h, frame_w = image.shape[:2]

        region = face_box.padded(self.padding_factor, frame_w, frame_h)
        x0, y0 = int(round(region.x)), int(round(region.y))
        x1 = min(frame_w, int(round(region.x + region.width)))
        y1 = min(frame_h, int(round(region.y + region.height)))
        w, h = x1 - x0, y1 - y0
        if w <= 0 or h <= 0:
            logger.debug(f"Crop region outside frame: x={x0}, y={y0}, w={w}, h={h}")
            return None

        out_h = max(1, int(round((h / w) * self.output_width)))
        if self.debug:
            logger.debug(f"Crop rect: x={x0}, y={y0}, w={w}, h={h} -> {self.output_width}x{out_h}")

        return cv2.resize(image[y0:y1, x0:x1], (self.output_width, out_h), interpolation=cv2.INTER_AREA)

    def process(self, image: np.ndarray, face_box: Optional[FaceBox]) -> Optional[bytes]:
        """
        crop 결과를 JPEG로 인코딩

        Returns:
            JPEG 바이트, crop할 수 없거나 이미지가 잘못되었으면 None
        """
        try:
            cropped = self.crop(image, face_box)
            if cropped is None:
                return None
            ok, encoded = cv2.imencode('.jpg', cropped, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        except (EmotionAnalyzerException, cv2.error) as e:
            logger.error(f"Face crop failed: {e}")
            return None

        if not ok:
            logger.error("JPEG encoding of face crop failed")
            return None
        return encoded.tobytes()

    @staticmethod
    def to_data_url(jpeg_bytes: Optional[bytes]) -> Optional[str]:
        """JPEG 바이트 → data URL 문자열"""
        if not jpeg_bytes:
            return None
        return "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode('ascii')
