"""커스텀 예외 클래스 정의"""


class EmotionAnalyzerException(Exception):
    """기본 예외 클래스"""
    pass


class ConfigurationError(EmotionAnalyzerException):
    """모델 설정 오류 예외"""
    pass


class ModelLoadError(EmotionAnalyzerException):
    """모델 파일 로드 실패 예외 (모든 경로 시도 실패)"""
    pass


class InferenceError(EmotionAnalyzerException):
    """ONNX 추론 실행 실패 예외"""
    pass


class InvalidLandmarksError(EmotionAnalyzerException):
    """잘못된 랜드마크 입력 예외"""
    pass


class InvalidImageError(EmotionAnalyzerException):
    """잘못된 이미지 입력 예외"""
    pass
