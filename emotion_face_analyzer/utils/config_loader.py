"""
Configuration Loader Module
설정 파일(config.yaml)을 로드하고 관리하는 모듈
"""
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_ENV_VAR = 'EMOTION_ANALYZER_CONFIG_PATH'


class Config:
    """
    Configuration Manager

    config.yaml 파일을 로드하고 설정값에 접근할 수 있는 인터페이스 제공

    Usage:
        config = Config()
        interval = config.get('inference.interval_ms')
        # or
        interval = config.inference.interval_ms
    """

    def __init__(self, config_path: str = None):
        """
        Configuration 초기화

        Args:
            config_path: config.yaml 파일 경로 (None이면 패키지 기본 설정 사용)
        """
        if config_path is None:
            # 패키지 루트의 config.yaml
            package_root = Path(__file__).parent.parent
            config_path = package_root / "config.yaml"

            # 환경 변수로 오버라이드 가능
            if CONFIG_ENV_VAR in os.environ:
                config_path = Path(os.environ[CONFIG_ENV_VAR])

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self):
        """config.yaml 파일 로드"""
        if not self.config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {self.config_path}\n"
                f"Please create config.yaml or set {CONFIG_ENV_VAR} environment variable."
            )

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML format in {self.config_path}: {e}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        점(.) 구분자로 중첩된 설정값 가져오기

        Args:
            key_path: 설정 키 경로 (예: 'inference.zoom_interval_ms')
            default: 키가 없을 때 반환할 기본값

        Returns:
            설정값 또는 기본값

        Example:
            >>> config.get('face_crop.padding_factor')
            0.2
        """
        keys = key_path.split('.')
        value = self._config

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def __getattr__(self, name: str):
        """
        속성 접근 방식으로 설정값 가져오기

        Example:
            >>> config.inference.interval_ms
            1000
        """
        if name.startswith('_'):
            raise AttributeError(f"'{self.__class__.__name__}' has no attribute '{name}'")

        if name in self._config:
            value = self._config[name]
            if isinstance(value, dict):
                return ConfigSection(value)
            return value

        raise AttributeError(f"Config has no key '{name}'")

    def reload(self):
        """설정 파일 다시 로드 (runtime에 변경사항 적용)"""
        self._load_config()

    def to_dict(self) -> Dict[str, Any]:
        """전체 설정을 딕셔너리로 반환"""
        return self._config.copy()

    def __repr__(self):
        return f"Config(path={self.config_path})"


class ConfigSection:
    """
    Config의 하위 섹션을 나타내는 헬퍼 클래스
    중첩된 딕셔너리를 속성 접근 방식으로 사용 가능
    """

    def __init__(self, data: Dict[str, Any]):
        self._data = data

    def __getattr__(self, name: str):
        if name.startswith('_'):
            raise AttributeError(f"'{self.__class__.__name__}' has no attribute '{name}'")

        if name in self._data:
            value = self._data[name]
            if isinstance(value, dict):
                return ConfigSection(value)
            return value

        raise AttributeError(f"ConfigSection has no key '{name}'")

    def get(self, key: str, default: Any = None) -> Any:
        """키로 값 가져오기 (기본값 지원)"""
        return self._data.get(key, default)

    def __repr__(self):
        return f"ConfigSection({list(self._data.keys())})"


# Singleton 인스턴스 (전역으로 사용)
_global_config: Optional[Config] = None


def get_config() -> Config:
    """
    전역 Config 인스턴스 반환 (Singleton 패턴)

    Returns:
        Config 인스턴스
    """
    global _global_config

    if _global_config is None:
        _global_config = Config()

    return _global_config


def reload_config():
    """전역 설정 다시 로드"""
    global _global_config
    if _global_config is not None:
        _global_config.reload()
