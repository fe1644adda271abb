"""얼굴 랜드마크 인덱스 및 시스템 상수 정의"""

from typing import Dict, List, Tuple

# MediaPipe FaceMesh (refine_landmarks=True) 출력 크기
NUM_LANDMARKS = 478
NUM_COORDS = 3

# 비어 있는 랜드마크 슬롯 채움 값
SENTINEL_VALUE = -1.0

# 0 나눗셈 방지 기준값
SCALE_EPSILON = 1e-6

# FER+ 방식 (inter-ocular) 정규화 기준점
FERPLUS_LANDMARKS: Dict[str, int] = {
    'nose_tip': 1,            # 코끝 (원점)
    'left_eye_inner': 133,    # 왼쪽 내안각
    'right_eye_inner': 362,   # 오른쪽 내안각
}

# Legacy distance 정규화 기준점
DISTANCE_LANDMARKS: Dict[str, int] = {
    'center': 4,              # 코끝 중앙 (원점)
    'left_eye_outer': 33,     # 왼쪽 외안각
    'right_eye_outer': 263,   # 오른쪽 외안각
}

# 기준 거리의 몇 배 밖을 이상치로 볼지
DISTANCE_OUTLIER_FACTOR = 5.0

# Engagement 회귀 모델 점수 구간: (하한, 상한, 클래스 인덱스), [하한, 상한)
ENGAGEMENT_SCORE_BUCKETS: List[Tuple[float, float, int]] = [
    (0.0, 0.175, 4),     # SNP
    (0.175, 0.40, 0),    # Not Engaged
    (0.40, 0.60, 1),     # Barely Engaged
    (0.60, 0.825, 2),    # Engaged
    (0.825, 1.0, 3),     # Highly Engaged (1.0 포함)
]

ENGAGEMENT_LABELS: Dict[int, str] = {
    0: 'Not Engaged',
    1: 'Barely Engaged',
    2: 'Engaged',
    3: 'Highly Engaged',
    4: 'SNP',
}

# 감정별 표시 색상 (BGR)
EMOTION_COLORS: Dict[str, Tuple[int, int, int]] = {
    'Happiness': (36, 191, 251),
    'Happy': (36, 191, 251),
    'Sadness': (246, 130, 59),
    'Sad': (246, 130, 59),
    'Anger': (68, 68, 239),
    'Fear': (246, 92, 139),
    'Surprise': (212, 182, 6),
    'Disgust': (22, 204, 132),
    'Contempt': (128, 114, 107),
    'Neutral': (139, 116, 100),
}
DEFAULT_EMOTION_COLOR: Tuple[int, int, int] = (139, 116, 100)
